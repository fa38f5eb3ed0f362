from typing import Any, Callable

from ...domain.contracts.provider import ProviderContract


def parse_provider_id(provider_id: str) -> tuple[str, str]:
    if "/" not in provider_id:
        raise ValueError(
            f"Invalid provider ID '{provider_id}'. Expected format: 'vendor/model'"
        )

    vendor, model = provider_id.split("/", 1)
    if not vendor or not model:
        raise ValueError(
            f"Invalid provider ID '{provider_id}'. Expected format: 'vendor/model'"
        )
    return vendor, model


def _build_registry() -> dict[str, Callable[..., ProviderContract]]:
    from .anthropic import AnthropicProvider
    from .openai import AzureOpenAIProvider, OpenAIProvider, gemini

    return {
        "openai": OpenAIProvider,
        "azure": AzureOpenAIProvider,
        "anthropic": AnthropicProvider,
        "gemini": gemini,
    }


def known_providers() -> frozenset[str]:
    return frozenset(_build_registry().keys()) | {"openai-compatible"}


def get_provider(entry: str | dict[str, Any]) -> ProviderContract:
    """Build a provider from a config entry.

    Entries are either a "vendor/model" string or a mapping with an "id"
    plus optional "api_key_env", "base_url" and "type". Mappings with
    type "openai-compatible" talk to any OpenAI-style endpoint.
    """
    if isinstance(entry, str):
        entry = {"id": entry}

    if "id" not in entry:
        raise ValueError(f"Provider entry missing 'id': {entry}")

    provider_id = entry["id"]
    api_key_env = entry.get("api_key_env")

    if entry.get("type") == "openai-compatible":
        from .openai import OpenAICompatibleProvider

        if not entry.get("base_url"):
            raise ValueError(f"Provider '{provider_id}' requires 'base_url'")
        return OpenAICompatibleProvider(
            provider_id=provider_id,
            model=entry.get("model") or parse_provider_id(provider_id)[1],
            base_url=entry["base_url"],
            api_key_env=api_key_env,
        )

    vendor, model = parse_provider_id(provider_id)
    registry = _build_registry()

    if vendor not in registry:
        raise ValueError(
            f"Unknown provider '{vendor}'. "
            f"Available: {', '.join(sorted(known_providers()))}"
        )

    kwargs: dict[str, Any] = {}
    if api_key_env is not None:
        kwargs["api_key_env"] = api_key_env
    if entry.get("base_url") and vendor == "openai":
        kwargs["base_url"] = entry["base_url"]
    return registry[vendor](model, **kwargs)
