from .anthropic import AnthropicProvider
from .base import Provider, ProviderCancelledError
from .factory import get_provider, known_providers, parse_provider_id
from .openai import AzureOpenAIProvider, OpenAICompatibleProvider, OpenAIProvider

__all__ = [
    "AnthropicProvider",
    "AzureOpenAIProvider",
    "OpenAICompatibleProvider",
    "OpenAIProvider",
    "Provider",
    "ProviderCancelledError",
    "get_provider",
    "known_providers",
    "parse_provider_id",
]
