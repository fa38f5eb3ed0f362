from ...domain.contracts.scorer import ScoreResult, ScorerContext, ScorerContract
from ...infrastructure.pricing import PricingRegistry


class CostScorer(ScorerContract):
    def __init__(self, pricing: PricingRegistry) -> None:
        self._pricing = pricing

    @property
    def name(self) -> str:
        return "cost"

    def score(self, context: ScorerContext, provider_id: str) -> ScoreResult:
        usage = context.result.token_usage
        prompt_tokens = usage.prompt if usage else 0
        completion_tokens = usage.completion if usage else 0
        token_details = {
            "prompt_tokens": prompt_tokens,
            "completion_tokens": completion_tokens,
            "total_tokens": prompt_tokens + completion_tokens,
        }

        pricing = self._pricing.lookup(provider_id)
        if pricing is None:
            return ScoreResult.unavailable(
                self.name,
                "No pricing data available for this model",
                estimated_usd=None,
                **token_details,
            )

        usd = pricing.estimate(prompt_tokens, completion_tokens)

        return ScoreResult(
            name=self.name,
            value=usd,
            details={"estimated_usd": usd, **token_details},
        )
