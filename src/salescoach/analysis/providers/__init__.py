"""LLM provider implementations for sales-conversation analysis.

Supported providers:
- OpenAI (gpt-4o, gpt-4o-mini, ...)
- Anthropic (claude-sonnet-4-5, claude-3-5-haiku, ...)

Usage:
    from salescoach.analysis.providers import create_provider

    provider = create_provider(provider_type="openai", api_key="sk-xxx")
    response = provider.complete(system_prompt="...", user_prompt="...")
"""

import logging
from typing import Literal

from salescoach.analysis.providers.base import LLMProvider, LLMResponse

logger = logging.getLogger(__name__)

ProviderType = Literal["openai", "anthropic"]


def create_provider(
    provider_type: ProviderType,
    api_key: str,
    model: str | None = None,
) -> LLMProvider:
    """Factory function to create LLM providers.

    Args:
        provider_type: The provider to use ("openai" or "anthropic")
        api_key: API key for the provider
        model: Optional model override (uses provider default if not specified)

    Returns:
        Configured LLMProvider instance

    Raises:
        ValueError: If provider_type is unknown or api_key is missing
    """
    if not api_key:
        raise ValueError(f"API key is required for {provider_type} provider")

    if provider_type == "openai":
        from salescoach.analysis.providers.openai_provider import OpenAIProvider

        return OpenAIProvider(api_key=api_key, model=model or "gpt-4o")

    elif provider_type == "anthropic":
        from salescoach.analysis.providers.anthropic_provider import AnthropicProvider

        return AnthropicProvider(
            api_key=api_key,
            model=model or "claude-sonnet-4-5-20250514",
        )

    else:
        raise ValueError(
            f"Unknown provider type: {provider_type}. "
            f"Supported providers: openai, anthropic"
        )


__all__ = [
    "LLMProvider",
    "LLMResponse",
    "ProviderType",
    "create_provider",
]
