import math

from .contracts.results import (
    BenchmarkResult,
    CiReport,
    CostSummary,
    ScorerComparison,
    ScorerStats,
)
from .contracts.scorer import lower_is_better
from .statistics import split_group_key

# Coefficient of variation above which repeated runs are considered too noisy
FLAKY_CV_THRESHOLD = 0.30

COST_SCORER = "cost"


def format_delta(delta: float, precision: int = 4) -> str:
    sign = "+" if delta >= 0 else ""
    return f"{sign}{delta:.{precision}f}"


def format_cost(usd: float | None) -> str:
    if usd is None:
        return "—"
    if usd == 0:
        return "$0.00"
    if usd >= 0.01:
        return f"~${usd:.2f}"
    digits = max(4, -math.floor(math.log10(usd)) + 1)
    return f"~${usd:.{digits}f}".rstrip("0")


def compute_cost_summary(
    results: list[BenchmarkResult], budget: float | None = None
) -> CostSummary:
    total_usd = 0.0
    per_provider: dict[str, float] = {}

    for result in results:
        if result.error is not None:
            continue
        cost_score = result.score(COST_SCORER)
        if cost_score is None or not cost_score.available:
            continue

        usd = cost_score.details.get("estimated_usd") or 0.0
        if usd <= 0:
            continue

        total_usd += usd
        per_provider[result.provider_id] = per_provider.get(result.provider_id, 0.0) + usd

    return CostSummary(
        total_usd=total_usd,
        per_provider=per_provider,
        budget=budget,
        over_budget=budget is not None and total_usd > budget,
    )


def detect_regression(
    baseline: ScorerStats,
    current: ScorerStats,
    threshold: float,
    lower_better: bool,
) -> bool:
    if baseline.n == 1 and current.n == 1:
        delta = current.mean - baseline.mean
        return delta > threshold if lower_better else delta < -threshold

    if lower_better:
        return current.ci95_lower - baseline.ci95_upper > threshold

    # The mean guard stops a wide interval alone from flagging a regression
    return (
        baseline.ci95_upper - current.ci95_lower > threshold
        and current.mean < baseline.mean
    )


def detect_improvement(
    baseline: ScorerStats,
    current: ScorerStats,
    threshold: float,
    lower_better: bool,
) -> bool:
    if baseline.n == 1 and current.n == 1:
        delta = current.mean - baseline.mean
        return delta < -threshold if lower_better else delta > threshold

    if lower_better:
        return baseline.ci95_lower - current.ci95_upper > threshold
    return current.ci95_lower - baseline.ci95_upper > threshold


def is_flaky(stats: ScorerStats) -> bool:
    return stats.n > 1 and stats.cv > FLAKY_CV_THRESHOLD


def compare_results(
    baseline_stats: dict[str, ScorerStats] | None,
    current_stats: dict[str, ScorerStats],
    thresholds: dict[str, float],
    budget: float | None = None,
    current_results: list[BenchmarkResult] | None = None,
) -> CiReport:
    comparisons: list[ScorerComparison] = []

    for key, current in current_stats.items():
        provider_id, task_name, scorer_name = split_group_key(key)
        baseline = baseline_stats.get(key) if baseline_stats else None

        delta: float | None = None
        regressed = False
        improved = False

        if baseline is not None:
            delta = current.mean - baseline.mean
            threshold = thresholds.get(scorer_name)

            # Scorers without a threshold never gate
            if threshold is not None:
                lower_better = lower_is_better(scorer_name)
                regressed = detect_regression(baseline, current, threshold, lower_better)
                improved = detect_improvement(baseline, current, threshold, lower_better)

        comparisons.append(
            ScorerComparison(
                provider_id=provider_id,
                task_name=task_name,
                scorer_name=scorer_name,
                baseline=baseline,
                current=current,
                delta=delta,
                regressed=regressed,
                improved=improved,
                flaky=is_flaky(current),
            )
        )

    cost = compute_cost_summary(current_results or [], budget)

    failure_reasons = [
        f"{c.provider_id} × {c.task_name}: {c.scorer_name} regressed by "
        f"{format_delta(c.delta or 0.0)}"
        for c in comparisons
        if c.regressed
    ]
    if cost.over_budget and cost.budget is not None:
        failure_reasons.append(
            f"Total cost ${cost.total_usd:.4f} exceeds budget ${cost.budget:.2f}"
        )

    return CiReport(
        comparisons=comparisons,
        cost=cost,
        failed=bool(failure_reasons),
        flaky_results=[c for c in comparisons if c.flaky],
        failure_reasons=failure_reasons,
    )
