from typing import Callable

from ...domain.contracts.provider import ProviderContract
from ...domain.contracts.scorer import ScorerContract
from ...infrastructure.pricing import PricingRegistry
from .correctness import CorrectnessScorer
from .cost import CostScorer
from .fuzzy_similarity import FuzzySimilarityScorer
from .latency import LatencyScorer
from .llm_judge import LlmJudgeScorer
from .schema_correctness import SchemaCorrectnessScorer
from .tool_usage import ToolUsageScorer

__all__ = [
    "BUILT_IN_SCORERS",
    "CorrectnessScorer",
    "CostScorer",
    "FuzzySimilarityScorer",
    "LatencyScorer",
    "LlmJudgeScorer",
    "SchemaCorrectnessScorer",
    "ToolUsageScorer",
    "resolve_scorers",
]

BUILT_IN_SCORERS = (
    "latency",
    "cost",
    "correctness",
    "schema-correctness",
    "fuzzy-similarity",
    "tool-usage",
    "llm-judge-correctness",
)


def resolve_scorers(
    names: list[str],
    pricing: PricingRegistry | None = None,
    judge_factory: Callable[[], list[ProviderContract]] | None = None,
    judge_aggregation: str = "mean",
) -> list[ScorerContract]:
    """Build scorer instances for the given names, in the given order.

    The judge factory is only called when "llm-judge-correctness" is
    requested, so judge credentials are never needed otherwise.
    """
    scorers: list[ScorerContract] = []
    for name in names:
        if name == "latency":
            scorers.append(LatencyScorer())
        elif name == "cost":
            scorers.append(CostScorer(pricing or PricingRegistry.default()))
        elif name == "correctness":
            scorers.append(CorrectnessScorer())
        elif name == "schema-correctness":
            scorers.append(SchemaCorrectnessScorer())
        elif name == "fuzzy-similarity":
            scorers.append(FuzzySimilarityScorer())
        elif name == "tool-usage":
            scorers.append(ToolUsageScorer())
        elif name == "llm-judge-correctness":
            judges = judge_factory() if judge_factory else []
            scorers.append(LlmJudgeScorer(judges, aggregation=judge_aggregation))
        else:
            raise ValueError(
                f'Unknown scorer: "{name}". Available: {", ".join(BUILT_IN_SCORERS)}'
            )
    return scorers
