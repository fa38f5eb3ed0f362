import statistics
from dataclasses import dataclass, field
from typing import Callable

from .contracts.results import BenchmarkResult

MEDALS = ("gold", "silver", "bronze")

MEDAL_EMOJI = {"gold": "🥇", "silver": "🥈", "bronze": "🥉"}

_VENDOR_LABELS = {
    "openai": "OpenAI",
    "azure": "OpenAI via Azure",
    "anthropic": "Anthropic",
    "gemini": "Google",
    "google": "Google",
    "mistral": "Mistral",
    "meta": "Meta",
    "deepseek": "DeepSeek",
    "cohere": "Cohere",
    "qwen": "Qwen",
    "xai": "xAI",
    "groq": "Groq",
    "together": "Together AI",
    "fireworks": "Fireworks AI",
}

_API_KEY_HINTS = {
    "openai": "Set: export OPENAI_API_KEY=sk-...",
    "azure": "Set: export AZURE_OPENAI_API_KEY=... and AZURE_OPENAI_ENDPOINT=...",
    "anthropic": "Set: export ANTHROPIC_API_KEY=sk-ant-...",
    "gemini": "Set: export GEMINI_API_KEY=...",
}

_AUTH_ERROR_MARKERS = ("api key", "apikey", "401", "unauthorized", "authentication")


@dataclass(frozen=True)
class ProviderTaskSummary:
    """Averages of one provider's successful runs on one task."""

    provider_id: str
    scores: dict[str, float] = field(default_factory=dict)
    latency_ms: float | None = None
    cost_usd: float | None = None
    total_tokens: int | None = None
    succeeded: int = 0
    failed: int = 0

    @property
    def all_failed(self) -> bool:
        return self.succeeded == 0 and self.failed > 0


@dataclass(frozen=True)
class Highlights:
    correctness_scorer: str
    most_correct: tuple[str, float] | None
    fastest: tuple[str, float] | None
    cheapest: tuple[str, float] | None
    overall_winner: str | None


def _vendor(provider_id: str) -> str:
    return provider_id.split("/", 1)[0]


def provider_label(provider_id: str) -> str:
    vendor = _vendor(provider_id)
    return f"({_VENDOR_LABELS.get(vendor, vendor)})"


def api_key_hint(provider_id: str, error: str) -> str | None:
    lower = error.lower()
    if not any(marker in lower for marker in _AUTH_ERROR_MARKERS):
        return None
    return _API_KEY_HINTS.get(
        _vendor(provider_id), f"Check the API key for {provider_id}"
    )


def unique(values: list[str]) -> list[str]:
    return list(dict.fromkeys(values))


def summarize_provider_task(
    results: list[BenchmarkResult], provider_id: str, task_name: str
) -> ProviderTaskSummary:
    cells = [
        r for r in results if r.provider_id == provider_id and r.task_name == task_name
    ]
    ok = [r for r in cells if r.error is None]
    failed = len(cells) - len(ok)
    if not ok:
        return ProviderTaskSummary(provider_id=provider_id, failed=failed)

    samples: dict[str, list[float]] = {}
    costs: list[float] = []
    tokens: list[int] = []
    for r in ok:
        for score in r.scores:
            if score.available:
                samples.setdefault(score.name, []).append(float(score.value))  # type: ignore[arg-type]
        cost = r.score("cost")
        if cost is not None:
            if cost.details.get("estimated_usd") is not None:
                costs.append(cost.details["estimated_usd"])
            if cost.details.get("total_tokens") is not None:
                tokens.append(cost.details["total_tokens"])

    return ProviderTaskSummary(
        provider_id=provider_id,
        scores={name: statistics.fmean(values) for name, values in samples.items()},
        latency_ms=statistics.fmean(r.raw.latency_ms for r in ok),
        cost_usd=statistics.fmean(costs) if costs else None,
        total_tokens=round(statistics.fmean(tokens)) if tokens else None,
        succeeded=len(ok),
        failed=failed,
    )


def _columns(
    summaries: list[ProviderTaskSummary], scorer_names: list[str]
) -> list[tuple[dict[str, float | None], bool]]:
    # Each column maps provider -> value, plus whether lower values win
    columns: list[tuple[dict[str, float | None], bool]] = []
    valid = [s for s in summaries if not s.all_failed]

    if "latency" in scorer_names:
        columns.append(({s.provider_id: s.latency_ms for s in valid}, True))
    if "cost" in scorer_names:
        columns.append(({s.provider_id: s.cost_usd for s in valid}, True))
        columns.append(({s.provider_id: s.total_tokens for s in valid}, True))
    for name in scorer_names:
        if name in ("latency", "cost"):
            continue
        columns.append(({s.provider_id: s.scores.get(name) for s in valid}, False))
    return columns


def compute_medals(
    summaries: list[ProviderTaskSummary], scorer_names: list[str]
) -> dict[str, str | None]:
    """Award gold, silver and bronze by the number of columns each provider wins.

    A column is won only by a provider holding the best value alone. Tied win
    counts share a medal and the next rank is skipped. Providers without a win,
    or fewer than two providers in total, get no medal. The returned mapping is
    ordered from most wins to fewest, ties broken by provider id.
    """
    provider_ids = [s.provider_id for s in summaries]
    if len(provider_ids) < 2:
        return {provider_id: None for provider_id in provider_ids}

    wins = {provider_id: 0 for provider_id in provider_ids}
    for values, lower_better in _columns(summaries, scorer_names):
        present = {p: v for p, v in values.items() if v is not None}
        if not present:
            continue
        best = min(present.values()) if lower_better else max(present.values())
        holders = [p for p, v in present.items() if v == best]
        if len(holders) == 1:
            wins[holders[0]] += 1

    ranked = sorted(wins.items(), key=lambda item: (-item[1], item[0]))
    if not any(count for _, count in ranked):
        return {provider_id: None for provider_id, _ in ranked}

    medals: dict[str, str | None] = {}
    rank = 0
    for i, (provider_id, count) in enumerate(ranked):
        if i > 0 and count < ranked[i - 1][1]:
            rank = i
        medals[provider_id] = MEDALS[rank] if count > 0 and rank < len(MEDALS) else None
    return medals


def task_winner(medals: dict[str, str | None]) -> str | None:
    return next((p for p, medal in medals.items() if medal == "gold"), None)


def _average_by_provider(
    results: list[BenchmarkResult],
    value_of: Callable[[BenchmarkResult], float | None],
) -> dict[str, float]:
    samples: dict[str, list[float]] = {}
    for r in results:
        if r.error is not None:
            continue
        value = value_of(r)
        if value is not None:
            samples.setdefault(r.provider_id, []).append(float(value))
    return {p: statistics.fmean(values) for p, values in samples.items()}


def _score_value(scorer_name: str) -> Callable[[BenchmarkResult], float | None]:
    def value_of(result: BenchmarkResult) -> float | None:
        score = result.score(scorer_name)
        return score.value if score is not None else None

    return value_of


def rank_providers(
    results: list[BenchmarkResult], scorer_name: str
) -> list[tuple[str, float]]:
    """Providers by their mean score for scorer_name, best first."""
    averages = _average_by_provider(results, _score_value(scorer_name))
    return sorted(averages.items(), key=lambda item: -item[1])


def compute_highlights(results: list[BenchmarkResult]) -> Highlights:
    providers = unique([r.provider_id for r in results])

    judged = _average_by_provider(results, _score_value("llm-judge-correctness"))
    correctness_scorer = "llm-judge-correctness" if judged else "correctness"

    by_correctness = rank_providers(results, correctness_scorer)
    latencies = _average_by_provider(results, lambda r: r.raw.latency_ms)
    costs = _average_by_provider(results, _score_value("cost"))

    most_correct = by_correctness[0] if by_correctness else None
    fastest = min(latencies.items(), key=lambda item: item[1]) if latencies else None
    cheapest = min(costs.items(), key=lambda item: item[1]) if costs else None

    overall_winner = None
    if len(providers) >= 2:
        wins = {provider_id: 0 for provider_id in providers}
        for leader in (most_correct, fastest, cheapest):
            if leader is not None:
                wins[leader[0]] += 1
        top = max(wins.values())
        leaders = [p for p, count in wins.items() if count == top]
        if top > 0 and len(leaders) == 1:
            overall_winner = leaders[0]

    return Highlights(
        correctness_scorer=correctness_scorer,
        most_correct=most_correct,
        fastest=fastest,
        cheapest=cheapest,
        overall_winner=overall_winner,
    )


def dedupe_errors(results: list[BenchmarkResult]) -> list[tuple[str, str, int]]:
    """(provider id, error, occurrences) for each distinct failure."""
    counts: dict[tuple[str, str], int] = {}
    for r in results:
        if r.error is not None:
            key = (r.provider_id, r.error)
            counts[key] = counts.get(key, 0) + 1
    return [(p, error, count) for (p, error), count in counts.items()]
