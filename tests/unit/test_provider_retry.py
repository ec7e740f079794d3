"""Tests for provider retries, deadlines, the factory and SDK error mapping."""

from unittest.mock import AsyncMock, MagicMock

import anthropic
import openai
import pytest

from pathfinder.providers import (
    AuthenticationError,
    ProviderConfig,
    ProviderError,
    ProviderTimeoutError,
    RateLimitError,
    TransientError,
)
from pathfinder.providers import factory
from pathfinder.providers.llm.base import LLMMessage, TaskType
from pathfinder.providers.llm.claude_adapter import ClaudeAdapter
from pathfinder.providers.llm.mock_adapter import MockLLMProvider
from pathfinder.providers.llm.openai_adapter import OpenAIAdapter
from pathfinder.providers.retry import complete_with_deadline, with_retries

_FAST_RETRIES = ProviderConfig(
    max_retries=2, retry_base_delay_ms=1, retry_max_delay_ms=5
)

_MESSAGES = [LLMMessage(role="user", content="Rate this experience.")]


class _Flaky:
    """Fails with the given errors, then returns "ok"."""

    def __init__(self, *errors: Exception) -> None:
        self.errors = list(errors)
        self.attempts = 0

    async def __call__(self) -> str:
        self.attempts += 1
        if self.errors:
            raise self.errors.pop(0)
        return "ok"


# =============================================================================
# with_retries
# =============================================================================


class TestWithRetries:
    """Exponential backoff over retryable provider errors."""

    @pytest.mark.asyncio
    async def test_recovers_after_transient_errors(self) -> None:
        """Two transient failures then success uses all three attempts."""
        func = _Flaky(TransientError("503"), TransientError("503"))

        result = await with_retries(func, _FAST_RETRIES)

        assert result == "ok"
        assert func.attempts == 3

    @pytest.mark.asyncio
    async def test_honours_retry_after_hint(self) -> None:
        """Rate limit errors are retried."""
        func = _Flaky(RateLimitError("slow down", retry_after_seconds=0.001))

        result = await with_retries(func, _FAST_RETRIES)

        assert result == "ok"
        assert func.attempts == 2

    @pytest.mark.asyncio
    async def test_raises_last_error_when_exhausted(self) -> None:
        """After max_retries + 1 attempts the last error propagates."""
        func = _Flaky(*(TransientError(f"fail {i}") for i in range(5)))

        with pytest.raises(TransientError, match="fail 2"):
            await with_retries(func, _FAST_RETRIES)

        assert func.attempts == 3

    @pytest.mark.asyncio
    async def test_non_retryable_error_fails_immediately(self) -> None:
        """Authentication errors are not retried."""
        func = _Flaky(AuthenticationError("bad key"))

        with pytest.raises(AuthenticationError):
            await with_retries(func, _FAST_RETRIES)

        assert func.attempts == 1


# =============================================================================
# complete_with_deadline
# =============================================================================


class TestCompleteWithDeadline:
    """A hard deadline around the whole retry sequence."""

    @pytest.mark.asyncio
    async def test_returns_response_within_deadline(self) -> None:
        """A prompt reply passes straight through."""
        mock = MockLLMProvider({TaskType.COMPETENCY_SCORING: "<score>0.8</score>"})

        response = await complete_with_deadline(
            mock,
            messages=_MESSAGES,
            task=TaskType.COMPETENCY_SCORING,
            timeout_seconds=1.0,
            max_tokens=16,
        )

        assert response.content == "<score>0.8</score>"
        assert mock.calls[0]["kwargs"]["max_tokens"] == 16

    @pytest.mark.asyncio
    async def test_hung_provider_raises_timeout(self) -> None:
        """A provider slower than the deadline raises ProviderTimeoutError."""
        mock = MockLLMProvider()
        mock.delay_seconds = 1.0

        with pytest.raises(ProviderTimeoutError) as exc_info:
            await complete_with_deadline(
                mock,
                messages=_MESSAGES,
                task=TaskType.PERT_GENERATION,
                timeout_seconds=0.05,
            )

        assert exc_info.value.timeout_seconds == 0.05
        assert "pert_generation" in str(exc_info.value)


# =============================================================================
# Factory
# =============================================================================


class TestProviderFactory:
    """get_llm_provider builds one adapter per process."""

    def setup_method(self) -> None:
        factory.reset_providers()

    def teardown_method(self) -> None:
        factory.reset_providers()

    def test_returns_singleton(self) -> None:
        """Repeated calls return the same adapter."""
        config = ProviderConfig(llm_provider="claude", anthropic_api_key="test")

        first = factory.get_llm_provider(config)
        second = factory.get_llm_provider()

        assert first is second
        assert isinstance(first, ClaudeAdapter)

    def test_unknown_provider_raises(self) -> None:
        """An unrecognised provider name is a configuration error."""
        with pytest.raises(ValueError, match="Unknown LLM provider"):
            factory.get_llm_provider(ProviderConfig(llm_provider="nope"))

    @pytest.mark.parametrize("provider", ["claude", "openai"])
    def test_missing_api_key_raises_authentication_error(self, provider: str) -> None:
        """No key is a provider failure, and nothing is cached."""
        with pytest.raises(AuthenticationError, match="No API key"):
            factory.get_llm_provider(ProviderConfig(llm_provider=provider))

        assert factory._llm_provider is None


# =============================================================================
# SDK error translation
# =============================================================================


class TestAdapterErrorTranslation:
    """Client-side SDK errors surface as ProviderError."""

    @pytest.mark.asyncio
    async def test_claude_client_error(self) -> None:
        """anthropic.AnthropicError outside the HTTP error tree is translated."""
        adapter = ClaudeAdapter(ProviderConfig(anthropic_api_key="test"))
        adapter.client = MagicMock()
        adapter.client.messages.create = AsyncMock(
            side_effect=anthropic.AnthropicError("Could not resolve credentials")
        )

        with pytest.raises(ProviderError, match="Could not resolve"):
            await adapter.complete(_MESSAGES, TaskType.COMPETENCY_SCORING)

    @pytest.mark.asyncio
    async def test_openai_client_error(self) -> None:
        """openai.OpenAIError outside the HTTP error tree is translated."""
        adapter = OpenAIAdapter(
            ProviderConfig(llm_provider="openai", openai_api_key="test")
        )
        adapter.client = MagicMock()
        adapter.client.chat.completions.create = AsyncMock(
            side_effect=openai.OpenAIError("Missing credentials")
        )

        with pytest.raises(ProviderError, match="Missing credentials"):
            await adapter.complete(_MESSAGES, TaskType.PERT_GENERATION)
