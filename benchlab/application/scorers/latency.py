from ...domain.contracts.scorer import ScoreResult, ScorerContext, ScorerContract

# 1.0 at or below FAST_MS, 0.0 at or above SLOW_MS
FAST_MS = 500
SLOW_MS = 10_000


class LatencyScorer(ScorerContract):
    @property
    def name(self) -> str:
        return "latency"

    def score(self, context: ScorerContext, provider_id: str) -> ScoreResult:
        latency_ms = context.result.latency_ms
        clamped = max(FAST_MS, min(SLOW_MS, latency_ms))
        value = 1 - (clamped - FAST_MS) / (SLOW_MS - FAST_MS)

        return ScoreResult(
            name=self.name,
            value=round(value, 2),
            details={"ms": latency_ms},
        )
