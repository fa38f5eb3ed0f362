from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable

from .provider import TaskResult
from .task import Task

# Scorers where a lower value is the better outcome. Every other scorer is
# higher-is-better.
LOWER_IS_BETTER = frozenset({"cost"})


@dataclass(frozen=True)
class ScoreResult:
    name: str
    value: float | None
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def available(self) -> bool:
        return self.value is not None and self.value >= 0

    @classmethod
    def unavailable(cls, name: str, reason: str, **details: Any) -> "ScoreResult":
        return cls(name=name, value=None, details={"reason": reason, **details})


@dataclass(frozen=True)
class ScorerContext:
    task: Task
    result: TaskResult


def lower_is_better(scorer_name: str) -> bool:
    return scorer_name in LOWER_IS_BETTER


class ScorerContract(ABC):
    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @abstractmethod
    def score(
        self, context: ScorerContext, provider_id: str
    ) -> ScoreResult | Awaitable[ScoreResult]:
        pass
