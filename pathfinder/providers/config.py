"""Provider configuration management.

Centralized configuration for the AI completion provider.
"""

import os
from dataclasses import dataclass


@dataclass
class ProviderConfig:
    """Centralized provider configuration.

    Attributes:
        llm_provider: Which LLM provider to use ("claude", "openai").
        anthropic_api_key: Anthropic API key (loaded from environment).
        openai_api_key: OpenAI API key (loaded from environment).
        claude_model_routing: Override model routing for Claude.
        openai_model_routing: Override model routing for OpenAI.
        default_max_tokens: Default max output tokens.
        default_temperature: Default sampling temperature.
        max_retries: Max retry attempts for transient errors.
        retry_base_delay_ms: Base delay for exponential backoff.
        retry_max_delay_ms: Max delay cap for exponential backoff.
    """

    # Provider selection
    llm_provider: str = "claude"

    # API keys (loaded from environment)
    anthropic_api_key: str | None = None
    openai_api_key: str | None = None

    # Model routing (can override defaults)
    claude_model_routing: dict[str, str] | None = None
    openai_model_routing: dict[str, str] | None = None

    # Defaults
    default_max_tokens: int = 2048
    default_temperature: float = 0.4

    # Retry policy
    max_retries: int = 2
    retry_base_delay_ms: int = 500
    retry_max_delay_ms: int = 8000

    @classmethod
    def from_env(cls) -> "ProviderConfig":
        """Load configuration from environment variables.

        Returns:
            ProviderConfig instance with values from environment.
        """
        return cls(
            llm_provider=os.getenv("LLM_PROVIDER", "claude"),
            anthropic_api_key=os.getenv("ANTHROPIC_API_KEY"),
            openai_api_key=os.getenv("OPENAI_API_KEY"),
            default_max_tokens=int(os.getenv("DEFAULT_MAX_TOKENS", "2048")),
            default_temperature=float(os.getenv("DEFAULT_TEMPERATURE", "0.4")),
            max_retries=int(os.getenv("LLM_MAX_RETRIES", "2")),
        )
