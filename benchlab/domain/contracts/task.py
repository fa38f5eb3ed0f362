from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

# Outputs and expected values are either plain text or a decoded JSON value.
Output = str | dict[str, Any] | list[Any]

DEFAULT_SCORERS = ["latency", "cost", "correctness"]
DEFAULT_TIMEOUT_MS = 60_000
DEFAULT_BASELINE_PATH = Path(".bench-lab/baseline.json")
JUDGE_AGGREGATIONS = ("mean", "median")


@dataclass(frozen=True)
class ToolSpec:
    name: str
    description: str = ""
    parameters: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Task:
    name: str
    prompt: str
    expected: Output | None = None
    output_schema: dict[str, Any] | None = None
    tools: list[ToolSpec] = field(default_factory=list)


@dataclass
class BenchConfig:
    providers: list[str | dict[str, Any]]
    tasks: list[Task]
    scorers: list[str] = field(default_factory=lambda: list(DEFAULT_SCORERS))
    runs: int = 1
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    judge_models: list[str] = field(default_factory=list)
    judge_aggregation: str = "mean"
    thresholds: dict[str, float] = field(default_factory=dict)
    budget: float | None = None
    baseline_path: Path = DEFAULT_BASELINE_PATH
    pricing: dict[str, dict[str, float]] = field(default_factory=dict)


class ConfigLoaderContract(ABC):
    @abstractmethod
    def load(self, path: Path) -> BenchConfig:
        pass
