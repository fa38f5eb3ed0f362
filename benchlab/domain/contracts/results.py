from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .provider import TokenUsage, ToolCall
from .scorer import ScoreResult
from .task import Output

# Unavailable scores are written with this value so baseline files stay
# readable by tools that only understand plain numbers.
UNAVAILABLE_WIRE_VALUE = -1


@dataclass(frozen=True)
class RawOutput:
    output: Output
    latency_ms: float
    token_usage: TokenUsage | None = None
    tool_calls: list[ToolCall] = field(default_factory=list)


@dataclass(frozen=True)
class BenchmarkResult:
    provider_id: str
    task_name: str
    run: int
    scores: list[ScoreResult]
    raw: RawOutput
    error: str | None = None

    def __post_init__(self) -> None:
        if self.run < 1:
            raise ValueError(f"Run index must be >= 1, got {self.run}")
        if self.error is not None and self.scores:
            raise ValueError("A failed result cannot carry scores")

    def score(self, name: str) -> ScoreResult | None:
        for score in self.scores:
            if score.name == name:
                return score
        return None

    def to_dict(self) -> dict[str, Any]:
        raw: dict[str, Any] = {
            "output": self.raw.output,
            "latencyMs": self.raw.latency_ms,
        }
        if self.raw.token_usage is not None:
            raw["tokenUsage"] = {
                "prompt": self.raw.token_usage.prompt,
                "completion": self.raw.token_usage.completion,
            }
        if self.raw.tool_calls:
            raw["toolCalls"] = [
                {"name": tc.name, "arguments": tc.arguments}
                for tc in self.raw.tool_calls
            ]

        data: dict[str, Any] = {
            "providerId": self.provider_id,
            "taskName": self.task_name,
            "run": self.run,
            "scores": [
                {
                    "name": s.name,
                    "value": (
                        s.value if s.value is not None else UNAVAILABLE_WIRE_VALUE
                    ),
                    "details": s.details,
                }
                for s in self.scores
            ],
            "raw": raw,
        }
        if self.error is not None:
            data["error"] = self.error
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BenchmarkResult":
        raw_data = data.get("raw") or {}

        usage_data = raw_data.get("tokenUsage") or raw_data.get("usage")
        token_usage = None
        if usage_data:
            token_usage = TokenUsage(
                prompt=int(usage_data.get("prompt", usage_data.get("promptTokens", 0))),
                completion=int(
                    usage_data.get("completion", usage_data.get("completionTokens", 0))
                ),
            )

        scores = []
        for s in data.get("scores", []):
            value = s.get("value")
            # Older files store "not applicable" as a negative number
            if value is not None and value < 0:
                value = None
            scores.append(
                ScoreResult(name=s["name"], value=value, details=s.get("details") or {})
            )

        return cls(
            provider_id=data["providerId"],
            task_name=data["taskName"],
            run=int(data.get("run", 1)),
            scores=scores,
            raw=RawOutput(
                output=raw_data.get("output", ""),
                latency_ms=raw_data.get("latencyMs", 0),
                token_usage=token_usage,
                tool_calls=[
                    ToolCall(name=tc["name"], arguments=tc.get("arguments", {}))
                    for tc in raw_data.get("toolCalls") or []
                ],
            ),
            error=data.get("error"),
        )


@dataclass(frozen=True)
class ScorerStats:
    mean: float
    stddev: float
    cv: float
    n: int
    ci95_lower: float
    ci95_upper: float


@dataclass(frozen=True)
class ScorerComparison:
    provider_id: str
    task_name: str
    scorer_name: str
    baseline: ScorerStats | None
    current: ScorerStats
    delta: float | None
    regressed: bool
    improved: bool
    flaky: bool


@dataclass(frozen=True)
class CostSummary:
    total_usd: float
    per_provider: dict[str, float]
    budget: float | None
    over_budget: bool


@dataclass(frozen=True)
class CiReport:
    comparisons: list[ScorerComparison]
    cost: CostSummary
    failed: bool
    flaky_results: list[ScorerComparison]
    failure_reasons: list[str]

    @property
    def regressions(self) -> list[ScorerComparison]:
        return [c for c in self.comparisons if c.regressed]

    @property
    def improvements(self) -> list[ScorerComparison]:
        return [c for c in self.comparisons if c.improved]


@dataclass
class BaselineData:
    timestamp: str
    results: list[BenchmarkResult] = field(default_factory=list)


class BaselineStoreContract(ABC):
    @abstractmethod
    def load(self, path: Path) -> BaselineData | None:
        pass

    @abstractmethod
    def save(self, path: Path, results: list[BenchmarkResult]) -> Path:
        pass
