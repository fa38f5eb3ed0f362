import json
import re
from typing import Any

from ...domain.contracts.scorer import ScoreResult, ScorerContext, ScorerContract

_TOKEN_PATTERN = re.compile(r"\w+")


def _normalize(value: Any) -> str:
    if isinstance(value, str):
        return value.lower()
    return json.dumps(value).lower()


def _tokenize(text: str) -> set[str]:
    return set(_TOKEN_PATTERN.findall(text))


def jaccard_similarity(a: set[str], b: set[str]) -> float:
    if not a and not b:
        return 1.0
    union = len(a | b)
    return len(a & b) / union if union else 1.0


class FuzzySimilarityScorer(ScorerContract):
    @property
    def name(self) -> str:
        return "fuzzy-similarity"

    def score(self, context: ScorerContext, provider_id: str) -> ScoreResult:
        expected = context.task.expected
        if expected is None:
            return ScoreResult.unavailable(self.name, "no expected value")

        expected_tokens = _tokenize(_normalize(expected))
        actual_tokens = _tokenize(_normalize(context.result.output))

        return ScoreResult(
            name=self.name,
            value=round(jaccard_similarity(expected_tokens, actual_tokens), 2),
            details={
                "method": "jaccard",
                "expected_tokens": len(expected_tokens),
                "actual_tokens": len(actual_tokens),
            },
        )
