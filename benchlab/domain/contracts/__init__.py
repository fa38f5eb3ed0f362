from .provider import ProviderContract, TaskResult, TokenUsage, ToolCall
from .results import (
    BaselineData,
    BaselineStoreContract,
    BenchmarkResult,
    CiReport,
    CostSummary,
    RawOutput,
    ScorerComparison,
    ScorerStats,
)
from .scorer import LOWER_IS_BETTER, ScoreResult, ScorerContext, ScorerContract
from .task import BenchConfig, ConfigLoaderContract, Task, ToolSpec

__all__ = [
    "BaselineData",
    "BaselineStoreContract",
    "BenchConfig",
    "BenchmarkResult",
    "CiReport",
    "ConfigLoaderContract",
    "CostSummary",
    "LOWER_IS_BETTER",
    "ProviderContract",
    "RawOutput",
    "ScoreResult",
    "ScorerComparison",
    "ScorerContext",
    "ScorerContract",
    "ScorerStats",
    "Task",
    "TaskResult",
    "TokenUsage",
    "ToolCall",
    "ToolSpec",
]
