import pytest

from benchlab.domain.contracts.results import BenchmarkResult, RawOutput
from benchlab.domain.contracts.scorer import ScoreResult
from benchlab.domain.regression import (
    compare_results,
    compute_cost_summary,
    detect_improvement,
    detect_regression,
    format_cost,
    format_delta,
    is_flaky,
)
from benchlab.domain.statistics import compute_scorer_stats, group_key


def _stats_map(
    scorer: str, samples: list[float], provider: str = "openai/gpt-4o", task: str = "t1"
):
    return {group_key(provider, task, scorer): compute_scorer_stats(samples)}


def _cost_result(provider_id: str, usd: float | None, run: int = 1) -> BenchmarkResult:
    if usd is None:
        score = ScoreResult.unavailable("cost", "No pricing data available")
    else:
        score = ScoreResult("cost", usd, {"estimated_usd": usd})
    return BenchmarkResult(
        provider_id=provider_id,
        task_name="t1",
        run=run,
        scores=[score],
        raw=RawOutput(output="ok", latency_ms=10),
    )


def test_compare_without_baseline_never_gates():
    current = {
        **_stats_map("correctness", [0.0]),
        **_stats_map("cost", [5.0, 9.0]),
    }

    report = compare_results(None, current, {"correctness": 0.0, "cost": 0.0})

    assert len(report.comparisons) == 2
    for c in report.comparisons:
        assert c.baseline is None
        assert c.delta is None
        assert c.regressed is False
        assert c.improved is False
    assert report.failed is False
    assert report.failure_reasons == []


def test_single_sample_correctness_regression():
    report = compare_results(
        _stats_map("correctness", [0.9]),
        _stats_map("correctness", [0.7]),
        {"correctness": 0.1},
    )

    c = report.comparisons[0]
    assert c.regressed is True
    assert c.improved is False
    assert c.delta == pytest.approx(-0.2)
    assert report.failed is True


def test_single_sample_correctness_within_threshold():
    report = compare_results(
        _stats_map("correctness", [0.9]),
        _stats_map("correctness", [0.85]),
        {"correctness": 0.1},
    )

    assert report.comparisons[0].regressed is False
    assert report.failed is False


def test_single_sample_cost_regression_is_lower_is_better():
    report = compare_results(
        _stats_map("cost", [0.001]),
        _stats_map("cost", [0.01]),
        {"cost": 0.002},
    )

    assert report.comparisons[0].regressed is True
    assert report.failed is True


def test_single_sample_cost_drop_is_improvement():
    report = compare_results(
        _stats_map("cost", [0.01]),
        _stats_map("cost", [0.001]),
        {"cost": 0.002},
    )

    c = report.comparisons[0]
    assert c.improved is True
    assert c.regressed is False
    assert report.improvements == [c]


def test_scorer_without_threshold_is_not_gated():
    report = compare_results(
        _stats_map("correctness", [1.0]),
        _stats_map("correctness", [0.0]),
        {"latency": 0.1},
    )

    c = report.comparisons[0]
    assert c.delta == -1.0
    assert c.regressed is False
    assert report.failed is False


def test_new_group_is_not_compared():
    baseline = _stats_map("correctness", [1.0], provider="anthropic/claude")
    current = _stats_map("correctness", [0.0], provider="openai/gpt-4o")

    report = compare_results(baseline, current, {"correctness": 0.0})

    assert report.comparisons[0].baseline is None
    assert report.comparisons[0].regressed is False


def test_multi_sample_higher_is_better_regression():
    report = compare_results(
        _stats_map("correctness", [1.0, 1.0, 1.0]),
        _stats_map("correctness", [0.5, 0.5, 0.5]),
        {"correctness": 0.05},
    )

    assert report.comparisons[0].regressed is True
    assert report.failure_reasons == [
        "openai/gpt-4o × t1: correctness regressed by -0.5000"
    ]


def test_multi_sample_mean_guard_prevents_width_only_regression():
    # Current is wider but its mean did not drop
    baseline = compute_scorer_stats([0.8, 0.8, 0.8])
    current = compute_scorer_stats([0.6, 1.0, 0.8, 1.0])

    assert baseline.ci95_upper - current.ci95_lower > 0.05
    assert current.mean > baseline.mean
    assert detect_regression(baseline, current, 0.05, lower_better=False) is False


def test_multi_sample_lower_is_better_requires_interval_separation():
    baseline = compute_scorer_stats([0.010, 0.011, 0.009])
    overlapping = compute_scorer_stats([0.011, 0.012, 0.010])
    separated = compute_scorer_stats([0.050, 0.050, 0.050])

    assert detect_regression(baseline, overlapping, 0.0, lower_better=True) is False
    assert detect_regression(baseline, separated, 0.01, lower_better=True) is True
    assert detect_improvement(separated, baseline, 0.01, lower_better=True) is True


def test_multi_sample_higher_is_better_improvement():
    baseline = compute_scorer_stats([0.5, 0.5])
    current = compute_scorer_stats([0.9, 0.9])

    assert detect_improvement(baseline, current, 0.1, lower_better=False) is True
    assert detect_regression(baseline, current, 0.1, lower_better=False) is False


def test_flaky_detection():
    assert is_flaky(compute_scorer_stats([0.3, 1.0, 0.2, 0.9])) is True
    assert is_flaky(compute_scorer_stats([0.3])) is False
    assert is_flaky(compute_scorer_stats([0.9, 0.9, 0.9])) is False


def test_flaky_groups_warn_without_failing():
    report = compare_results(
        None, _stats_map("correctness", [0.3, 1.0, 0.2, 0.9]), {}
    )

    assert len(report.flaky_results) == 1
    assert report.flaky_results[0].scorer_name == "correctness"
    assert report.failed is False


def test_budget_overrun_fails_without_regressions():
    results = [
        _cost_result("openai/gpt-4o", 1.0, run=1),
        _cost_result("openai/gpt-4o", 0.5, run=2),
    ]

    report = compare_results(None, {}, {}, budget=1.0, current_results=results)

    assert report.cost.total_usd == pytest.approx(1.5)
    assert report.cost.over_budget is True
    assert report.failed is True
    assert report.regressions == []
    assert report.failure_reasons == ["Total cost $1.5000 exceeds budget $1.00"]


def test_cost_summary_ignores_errors_and_missing_estimates():
    failed = BenchmarkResult(
        provider_id="openai/gpt-4o",
        task_name="t1",
        run=3,
        scores=[],
        raw=RawOutput(output="", latency_ms=0),
        error="timeout",
    )
    results = [
        _cost_result("openai/gpt-4o", 0.25),
        _cost_result("anthropic/claude", 0.5),
        _cost_result("local/llama", None),
        _cost_result("local/llama", 0.0, run=2),
        failed,
    ]

    summary = compute_cost_summary(results, budget=None)

    assert summary.total_usd == pytest.approx(0.75)
    assert summary.per_provider == {
        "openai/gpt-4o": pytest.approx(0.25),
        "anthropic/claude": pytest.approx(0.5),
    }
    assert summary.budget is None
    assert summary.over_budget is False


def test_cost_summary_under_budget():
    summary = compute_cost_summary([_cost_result("openai/gpt-4o", 0.5)], budget=1.0)

    assert summary.over_budget is False


def test_format_delta_and_cost():
    assert format_delta(0.05) == "+0.0500"
    assert format_delta(-0.2) == "-0.2000"
    assert format_cost(None) == "—"
    assert format_cost(0) == "$0.00"
    assert format_cost(1.234) == "~$1.23"
    assert format_cost(0.00012) == "~$0.00012"


def test_compare_results_refuses_keys_with_extra_separators():
    # A task named "stage::extract" must never be silently left ungated
    baseline = {"openai/gpt-4o::stage::extract::correctness": compute_scorer_stats([0.9])}
    current = {"openai/gpt-4o::stage::extract::correctness": compute_scorer_stats([0.1])}

    with pytest.raises(ValueError, match="Malformed group key"):
        compare_results(baseline, current, {"correctness": 0.1})
