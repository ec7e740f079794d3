"""Provider factory functions.

Singleton pattern for the LLM provider instance.
"""

from pathfinder.providers.config import ProviderConfig
from pathfinder.providers.errors import AuthenticationError
from pathfinder.providers.llm.base import LLMProvider
from pathfinder.providers.llm.claude_adapter import ClaudeAdapter
from pathfinder.providers.llm.openai_adapter import OpenAIAdapter

_llm_provider: LLMProvider | None = None

# Provider name -> (adapter class, config attribute holding its API key)
_ADAPTERS: dict[str, tuple[type[LLMProvider], str]] = {
    "claude": (ClaudeAdapter, "anthropic_api_key"),
    "openai": (OpenAIAdapter, "openai_api_key"),
}


def get_llm_provider(config: ProviderConfig | None = None) -> LLMProvider:
    """Get or create the LLM provider singleton.

    WHY SINGLETON:
    - Reuses HTTP connections (performance)
    - Consistent configuration across app

    Args:
        config: Optional provider configuration. If None and no provider
            exists, loads from environment.

    Returns:
        LLMProvider instance.

    Raises:
        ValueError: If the configured provider is unknown.
        AuthenticationError: If the configured provider has no API key.
            Nothing is cached, so a later call can succeed once the key
            is set.
    """
    global _llm_provider

    if _llm_provider is None:
        if config is None:
            config = ProviderConfig.from_env()

        if config.llm_provider not in _ADAPTERS:
            raise ValueError(f"Unknown LLM provider: {config.llm_provider}")

        adapter_cls, key_field = _ADAPTERS[config.llm_provider]
        if not getattr(config, key_field):
            raise AuthenticationError(
                f"No API key configured for LLM provider '{config.llm_provider}'"
            )
        _llm_provider = adapter_cls(config)

    return _llm_provider


def reset_providers() -> None:
    """Reset provider singletons.

    Used in tests to ensure isolation between test cases.
    """
    global _llm_provider
    _llm_provider = None
