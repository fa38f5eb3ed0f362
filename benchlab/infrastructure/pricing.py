from dataclasses import dataclass
from typing import Any

# USD per token, keyed by provider ID
DEFAULT_CATALOG: dict[str, tuple[float, float]] = {
    "openai/gpt-4o": (2.5e-06, 1.0e-05),
    "openai/gpt-4o-mini": (1.5e-07, 6.0e-07),
    "openai/gpt-4.1": (2.0e-06, 8.0e-06),
    "openai/gpt-4.1-mini": (4.0e-07, 1.6e-06),
    "openai/gpt-4.1-nano": (1.0e-07, 4.0e-07),
    "openai/gpt-5": (1.25e-06, 1.0e-05),
    "openai/gpt-5-mini": (2.5e-07, 2.0e-06),
    "openai/gpt-5-nano": (5.0e-08, 4.0e-07),
    "openai/o3-mini": (1.1e-06, 4.4e-06),
    "anthropic/claude-3-5-haiku-latest": (8.0e-07, 4.0e-06),
    "anthropic/claude-sonnet-4-20250514": (3.0e-06, 1.5e-05),
    "anthropic/claude-opus-4-20250514": (1.5e-05, 7.5e-05),
    "gemini/gemini-2.0-flash": (1.0e-07, 4.0e-07),
    "gemini/gemini-2.5-flash": (3.0e-07, 2.5e-06),
    "gemini/gemini-2.5-pro": (1.25e-06, 1.0e-05),
}


@dataclass(frozen=True)
class ModelPricing:
    input_per_token: float
    output_per_token: float

    def estimate(self, prompt_tokens: int, completion_tokens: int) -> float:
        return (
            self.input_per_token * prompt_tokens
            + self.output_per_token * completion_tokens
        )


class PricingRegistryError(Exception):
    pass


class PricingRegistry:
    def __init__(self, models: dict[str, ModelPricing] | None = None) -> None:
        self._models: dict[str, ModelPricing] = dict(models or {})

    @classmethod
    def default(cls) -> "PricingRegistry":
        return cls(
            {
                provider_id: ModelPricing(input_per_token=i, output_per_token=o)
                for provider_id, (i, o) in DEFAULT_CATALOG.items()
            }
        )

    def register(self, provider_id: str, pricing: ModelPricing) -> None:
        self._models[provider_id] = pricing

    def register_from_config(self, entries: dict[str, dict[str, Any]]) -> None:
        for provider_id, entry in entries.items():
            try:
                pricing = ModelPricing(
                    input_per_token=float(entry["input_per_token"]),
                    output_per_token=float(entry["output_per_token"]),
                )
            except (KeyError, TypeError, ValueError) as e:
                raise PricingRegistryError(
                    f"Invalid pricing for '{provider_id}': {e}"
                )
            self.register(provider_id, pricing)

    def lookup(self, provider_id: str) -> ModelPricing | None:
        """Resolve pricing for a provider ID such as "openai/gpt-4o".

        Tries an exact match, then the model under the "openai/" prefix
        (Azure deployments are priced like the OpenAI model they serve),
        then any catalog entry ending in "/{model}".
        """
        if provider_id in self._models:
            return self._models[provider_id]

        model = provider_id.split("/", 1)[1] if "/" in provider_id else ""
        if not model:
            return None

        as_openai = f"openai/{model}"
        if as_openai in self._models:
            return self._models[as_openai]

        suffix = f"/{model}"
        for key, pricing in self._models.items():
            if key.endswith(suffix):
                return pricing

        return None

    def __contains__(self, provider_id: object) -> bool:
        return isinstance(provider_id, str) and self.lookup(provider_id) is not None
