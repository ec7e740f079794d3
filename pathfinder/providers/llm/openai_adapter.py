"""OpenAI GPT LLM adapter.

Alternative provider, selected with LLM_PROVIDER=openai.
"""

import contextlib
import time
from typing import TYPE_CHECKING, Any

import openai
import structlog
from openai import AsyncOpenAI

from pathfinder.providers.errors import (
    AuthenticationError,
    ContentFilterError,
    ContextLengthError,
    ModelNotFoundError,
    ProviderError,
    RateLimitError,
    TransientError,
)
from pathfinder.providers.llm.base import (
    LLMMessage,
    LLMProvider,
    LLMResponse,
    TaskType,
)

if TYPE_CHECKING:
    from pathfinder.providers.config import ProviderConfig

logger = structlog.get_logger()


DEFAULT_OPENAI_ROUTING: dict[str, str] = {
    "competency_scoring": "gpt-4o-mini",
    "pert_generation": "gpt-4o",
}

# Fallback if task type not in routing table
DEFAULT_OPENAI_MODEL = "gpt-4o"


def _classify_openai_error(error: Exception) -> ProviderError:
    """Map OpenAI SDK exceptions to internal error taxonomy.

    Returns a ProviderError subclass instance (does not raise).
    The caller is responsible for raising via ``raise _classify_openai_error(e) from e``.
    """
    if isinstance(error, openai.RateLimitError):
        retry_after = None
        if hasattr(error, "response") and error.response is not None:
            retry_header = error.response.headers.get("retry-after")
            if retry_header is not None:
                with contextlib.suppress(ValueError):
                    retry_after = float(retry_header)
        return RateLimitError(str(error), retry_after_seconds=retry_after)

    if isinstance(error, openai.AuthenticationError):
        return AuthenticationError(str(error))

    if isinstance(error, openai.NotFoundError):
        return ModelNotFoundError(str(error))

    if isinstance(error, openai.BadRequestError):
        error_msg = str(error).lower()
        if "context_length" in error_msg:
            return ContextLengthError(str(error))
        if "content_policy" in error_msg:
            return ContentFilterError(str(error))
        return ProviderError(str(error))

    if isinstance(error, openai.InternalServerError):
        return TransientError(str(error))

    if isinstance(error, openai.APIConnectionError):
        return TransientError(str(error))

    return ProviderError(str(error))


def _convert_openai_messages(messages: list[LLMMessage]) -> list[dict]:
    """Convert LLMMessages to OpenAI chat-completions message format.

    OpenAI keeps system messages in the messages array.
    """
    return [{"role": msg.role, "content": msg.content} for msg in messages]


def _parse_openai_response(response: Any) -> tuple[str | None, str]:
    """Extract content and finish_reason from the first choice."""
    choice = response.choices[0]
    return choice.message.content, choice.finish_reason or "unknown"


class OpenAIAdapter(LLMProvider):
    """OpenAI GPT adapter using OpenAI SDK."""

    @property
    def provider_name(self) -> str:
        """Return 'openai'."""
        return "openai"

    def __init__(self, config: "ProviderConfig") -> None:
        """Initialize OpenAI adapter.

        Args:
            config: Provider configuration with OpenAI API key.
        """
        super().__init__(config)
        # SDK-level retries are off; with_retries owns the retry policy
        self.client = AsyncOpenAI(api_key=config.openai_api_key, max_retries=0)
        self.model_routing = {**DEFAULT_OPENAI_ROUTING}
        if config.openai_model_routing:
            self.model_routing.update(config.openai_model_routing)

    async def complete(
        self,
        messages: list[LLMMessage],
        task: TaskType,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> LLMResponse:
        """Generate completion using OpenAI GPT.

        Args:
            messages: Conversation history as list of LLMMessage.
            task: Task type for model routing.
            max_tokens: Override default max tokens.
            temperature: Override default temperature.

        Returns:
            LLMResponse with the generated text.
        """
        model = self.get_model_for_task(task)
        api_messages = _convert_openai_messages(messages)

        logger.info(
            "llm_request_start",
            provider="openai",
            model=model,
            task=task.value,
            message_count=len(messages),
        )

        start_time = time.monotonic()

        try:
            response = await self.client.chat.completions.create(
                model=model,
                max_tokens=max_tokens
                if max_tokens is not None
                else self.config.default_max_tokens,
                temperature=temperature
                if temperature is not None
                else self.config.default_temperature,
                messages=api_messages,
            )
        except openai.OpenAIError as e:
            logger.error(
                "llm_request_failed",
                provider="openai",
                model=model,
                task=task.value,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise _classify_openai_error(e) from e

        latency_ms = (time.monotonic() - start_time) * 1000
        content, finish_reason = _parse_openai_response(response)

        logger.info(
            "llm_request_complete",
            provider="openai",
            model=model,
            task=task.value,
            input_tokens=response.usage.prompt_tokens,
            output_tokens=response.usage.completion_tokens,
            latency_ms=latency_ms,
        )

        return LLMResponse(
            content=content,
            model=model,
            input_tokens=response.usage.prompt_tokens,
            output_tokens=response.usage.completion_tokens,
            finish_reason=finish_reason,
            latency_ms=latency_ms,
        )

    def get_model_for_task(self, task: TaskType) -> str:
        """Get model for task using routing table.

        Args:
            task: The task type to get the model for.

        Returns:
            Model identifier string (e.g., "gpt-4o").
        """
        return self.model_routing.get(task.value, DEFAULT_OPENAI_MODEL)
