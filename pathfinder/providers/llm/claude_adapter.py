"""Claude/Anthropic LLM adapter.

Provider-specific adapter for Claude, the default provider for competency
scoring and PERT generation.
"""

import contextlib
import time
from typing import TYPE_CHECKING

import anthropic
import structlog
from anthropic import AsyncAnthropic
from anthropic.types import Message as AnthropicMessage

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


# Scoring is a short numeric judgement per competency (11 calls per
# experience), so it goes to the cheaper model.
DEFAULT_CLAUDE_ROUTING: dict[str, str] = {
    "competency_scoring": "claude-3-5-haiku-20241022",
    "pert_generation": "claude-3-5-sonnet-20241022",
}

# Fallback if task type not in routing table
DEFAULT_CLAUDE_MODEL = "claude-3-5-sonnet-20241022"


def _classify_claude_error(error: Exception) -> ProviderError:
    """Map Claude/Anthropic exceptions to internal error taxonomy.

    Returns a ProviderError subclass instance (does not raise).
    The caller is responsible for raising via ``raise _classify_claude_error(e) from e``.
    """
    if isinstance(error, anthropic.RateLimitError):
        retry_after = None
        if hasattr(error, "response") and error.response is not None:
            retry_header = error.response.headers.get("retry-after")
            if retry_header is not None:
                with contextlib.suppress(ValueError):
                    retry_after = float(retry_header)
        return RateLimitError(str(error), retry_after_seconds=retry_after)

    if isinstance(error, anthropic.AuthenticationError):
        return AuthenticationError(str(error))

    if isinstance(error, anthropic.NotFoundError):
        return ModelNotFoundError(str(error))

    if isinstance(error, anthropic.BadRequestError):
        error_msg = str(error).lower()
        if "context_length" in error_msg or "prompt is too long" in error_msg:
            return ContextLengthError(str(error))
        if "content_policy" in error_msg:
            return ContentFilterError(str(error))
        return ProviderError(str(error))

    if isinstance(error, anthropic.InternalServerError):
        return TransientError(str(error))

    if isinstance(error, anthropic.APIConnectionError):
        return TransientError(str(error))

    return ProviderError(str(error))


def _convert_claude_messages(
    messages: list[LLMMessage],
) -> tuple[str | None, list[dict]]:
    """Convert LLMMessages to Anthropic format, extracting system message.

    Returns:
        Tuple of (system_message, api_messages).
    """
    system_msg = None
    api_messages: list[dict] = []

    for msg in messages:
        if msg.role == "system":
            system_msg = msg.content
        else:
            api_messages.append({"role": msg.role, "content": msg.content})

    return system_msg, api_messages


def _parse_claude_response(response: AnthropicMessage) -> tuple[str | None, str]:
    """Join the text blocks of an Anthropic response.

    Returns:
        Tuple of (content, finish_reason).
    """
    texts = [block.text for block in response.content if block.type == "text"]
    content = "".join(texts) if texts else None
    return content, response.stop_reason or "unknown"


class ClaudeAdapter(LLMProvider):
    """Claude adapter using Anthropic SDK."""

    @property
    def provider_name(self) -> str:
        """Return 'claude'."""
        return "claude"

    def __init__(self, config: "ProviderConfig") -> None:
        """Initialize Claude adapter.

        Args:
            config: Provider configuration with Anthropic API key.
        """
        super().__init__(config)
        # SDK-level retries are off; with_retries owns the retry policy
        self.client = AsyncAnthropic(api_key=config.anthropic_api_key, max_retries=0)
        self.model_routing = {**DEFAULT_CLAUDE_ROUTING}
        if config.claude_model_routing:
            self.model_routing.update(config.claude_model_routing)

    async def complete(
        self,
        messages: list[LLMMessage],
        task: TaskType,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> LLMResponse:
        """Generate completion using Claude.

        Args:
            messages: Conversation history as list of LLMMessage.
            task: Task type for model routing.
            max_tokens: Override default max tokens.
            temperature: Override default temperature.

        Returns:
            LLMResponse with the generated text.
        """
        model = self.get_model_for_task(task)
        system_msg, api_messages = _convert_claude_messages(messages)

        logger.info(
            "llm_request_start",
            provider="claude",
            model=model,
            task=task.value,
            message_count=len(messages),
        )

        start_time = time.monotonic()

        request: dict = {
            "model": model,
            "max_tokens": max_tokens
            if max_tokens is not None
            else self.config.default_max_tokens,
            "temperature": temperature
            if temperature is not None
            else self.config.default_temperature,
            "messages": api_messages,
        }
        if system_msg:
            request["system"] = system_msg

        try:
            response = await self.client.messages.create(**request)
        except anthropic.AnthropicError as e:
            logger.error(
                "llm_request_failed",
                provider="claude",
                model=model,
                task=task.value,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise _classify_claude_error(e) from e

        latency_ms = (time.monotonic() - start_time) * 1000
        content, finish_reason = _parse_claude_response(response)

        logger.info(
            "llm_request_complete",
            provider="claude",
            model=model,
            task=task.value,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            latency_ms=latency_ms,
        )

        return LLMResponse(
            content=content,
            model=model,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            finish_reason=finish_reason,
            latency_ms=latency_ms,
        )

    def get_model_for_task(self, task: TaskType) -> str:
        """Get model for task using routing table.

        Args:
            task: The task type to get the model for.

        Returns:
            Model identifier string.
        """
        return self.model_routing.get(task.value, DEFAULT_CLAUDE_MODEL)
