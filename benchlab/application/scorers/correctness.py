import json
from typing import Any

from ...domain.contracts.scorer import ScoreResult, ScorerContext, ScorerContract


def outputs_match(expected: Any, actual: Any) -> bool:
    """Exact-match comparison.

    Strings are compared trimmed and case-insensitively; structured values
    by their canonical JSON form.
    """
    if isinstance(expected, str) and isinstance(actual, str):
        return expected.strip().lower() == actual.strip().lower()
    return _canonical(expected) == _canonical(actual)


def _canonical(value: Any) -> str:
    return json.dumps(value, sort_keys=True, default=str)


class CorrectnessScorer(ScorerContract):
    @property
    def name(self) -> str:
        return "correctness"

    def score(self, context: ScorerContext, provider_id: str) -> ScoreResult:
        expected = context.task.expected
        if expected is None:
            return ScoreResult.unavailable(self.name, "no expected value")

        actual = context.result.output
        return ScoreResult(
            name=self.name,
            value=1.0 if outputs_match(expected, actual) else 0.0,
            details={"expected": expected, "actual": actual},
        )
