import asyncio
import json
import logging
import re
import statistics

from ...domain.contracts.provider import ProviderContract
from ...domain.contracts.scorer import ScoreResult, ScorerContext, ScorerContract
from ...domain.contracts.task import JUDGE_AGGREGATIONS
from ..prompts import render_judge_prompt

logger = logging.getLogger(__name__)

JUDGE_TEMPERATURE = 0.0
JUDGE_MAX_TOKENS = 10

# Judges sometimes append a remark after the number ("0.85 - mostly correct")
_LEADING_NUMBER = re.compile(r"^\s*([0-9]*\.?[0-9]+)")


class JudgeError(Exception):
    pass


def _aggregate_scores(scores: list[float], method: str) -> float:
    if method == "median":
        return statistics.median(scores)
    return statistics.fmean(scores)


def parse_judge_score(content: str) -> float:
    text = content.strip()
    match = _LEADING_NUMBER.match(text)
    if match is None:
        raise JudgeError(f'judge returned unparseable score: "{text}"')

    score = float(match.group(1))
    if not 0.0 <= score <= 1.0:
        raise JudgeError(f'judge returned unparseable score: "{text}"')
    return score


class LlmJudgeScorer(ScorerContract):
    def __init__(
        self,
        judges: list[ProviderContract],
        aggregation: str = "mean",
        timeout_s: float = 60.0,
    ) -> None:
        if aggregation not in JUDGE_AGGREGATIONS:
            raise ValueError(
                f"Invalid aggregation '{aggregation}'. Must be 'mean' or 'median'"
            )
        self._judges = judges
        self._aggregation = aggregation
        self._timeout_s = timeout_s

    @property
    def name(self) -> str:
        return "llm-judge-correctness"

    async def score(self, context: ScorerContext, provider_id: str) -> ScoreResult:
        if context.task.expected is None:
            return ScoreResult.unavailable(self.name, "no expected value")
        if not self._judges:
            return ScoreResult.unavailable(
                self.name, "no API key available for judge model"
            )

        prompt = render_judge_prompt(
            task=context.task.prompt,
            expected=json.dumps(context.task.expected),
            actual=json.dumps(context.result.output),
        )

        individual: dict[str, float] = {}
        for judge in self._judges:
            try:
                individual[judge.id] = await self._evaluate_single(judge, prompt)
            except JudgeError as e:
                logger.warning(f"Judge {judge.id} gave no usable score: {e}")
                return ScoreResult.unavailable(self.name, str(e), model=judge.id)
            except Exception as e:
                logger.warning(f"Judge {judge.id} call failed: {e}")
                return ScoreResult.unavailable(
                    self.name, f"judge call failed: {e}", model=judge.id
                )

        if len(individual) == 1:
            model, score = next(iter(individual.items()))
            return ScoreResult(
                name=self.name,
                value=round(score, 2),
                details={"model": model, "raw_score": score},
            )

        aggregated = _aggregate_scores(list(individual.values()), self._aggregation)
        return ScoreResult(
            name=self.name,
            value=round(aggregated, 2),
            details={
                "aggregation": self._aggregation,
                "individual_scores": [
                    {"model": model, "score": score}
                    for model, score in individual.items()
                ],
            },
        )

    async def _evaluate_single(self, judge: ProviderContract, prompt: str) -> float:
        cancel_event = asyncio.Event()
        try:
            result = await asyncio.wait_for(
                judge.invoke(
                    prompt=prompt,
                    cancel_event=cancel_event,
                    temperature=JUDGE_TEMPERATURE,
                    max_tokens=JUDGE_MAX_TOKENS,
                ),
                timeout=self._timeout_s,
            )
        except asyncio.TimeoutError:
            cancel_event.set()
            raise JudgeError(f"judge timed out after {self._timeout_s}s")

        if not isinstance(result.output, str):
            return parse_judge_score(json.dumps(result.output))
        return parse_judge_score(result.output)
