"""Retry and deadline strategy for provider operations.

Exponential backoff with jitter for transient errors, and a hard deadline
around the whole retry sequence so a hung provider can never hold a request
(and its database transaction) open indefinitely.

WHY JITTER:
- Prevents synchronized retries from multiple clients
"""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, TypeVar

from pathfinder.providers.errors import (
    ProviderTimeoutError,
    RateLimitError,
    TransientError,
)

__all__ = ["with_retries", "complete_with_deadline"]

if TYPE_CHECKING:
    from pathfinder.providers.config import ProviderConfig
    from pathfinder.providers.llm.base import (
        LLMMessage,
        LLMProvider,
        LLMResponse,
        TaskType,
    )

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def with_retries(
    func: Callable[[], Awaitable[T]],
    config: "ProviderConfig",
    retryable_errors: tuple[type[Exception], ...] = (TransientError, RateLimitError),
) -> T:
    """Execute function with exponential backoff retry.

    Args:
        func: Async function to execute (no arguments).
        config: Provider configuration with retry settings.
        retryable_errors: Tuple of error types that should trigger retry.

    Returns:
        Result from successful function execution.

    Raises:
        TransientError: If all retries exhausted due to transient failures.
        RateLimitError: If all retries exhausted due to rate limiting.
        RuntimeError: If retry loop exits unexpectedly without error or result.

    Note:
        If the error is a RateLimitError with retry_after_seconds set,
        that value is used instead of exponential backoff.
    """
    last_error: Exception | None = None

    for attempt in range(config.max_retries + 1):
        try:
            return await func()
        except retryable_errors as e:
            last_error = e

            if attempt == config.max_retries:
                break

            if isinstance(e, RateLimitError) and e.retry_after_seconds:
                delay = e.retry_after_seconds
            else:
                base_delay = config.retry_base_delay_ms * (2**attempt)
                jitter = random.uniform(0, base_delay * 0.1)
                delay = min(base_delay + jitter, config.retry_max_delay_ms) / 1000

            logger.warning(
                "Provider error (attempt %d/%d): %s. Retrying in %.2fs",
                attempt + 1,
                config.max_retries + 1,
                e,
                delay,
            )

            await asyncio.sleep(delay)

    if last_error is not None:
        raise last_error
    raise RuntimeError("Retry loop exited without error or result")


async def complete_with_deadline(
    llm: "LLMProvider",
    *,
    messages: list["LLMMessage"],
    task: "TaskType",
    timeout_seconds: float,
    max_tokens: int | None = None,
    temperature: float | None = None,
) -> "LLMResponse":
    """Run a completion with retries, bounded by an overall deadline.

    Args:
        llm: Provider to call.
        messages: Prompt messages.
        task: Task type for model routing.
        timeout_seconds: Deadline covering all attempts and backoff sleeps.
        max_tokens: Override default max tokens.
        temperature: Override default temperature.

    Returns:
        The provider's response.

    Raises:
        ProviderTimeoutError: If the deadline passes first.
        ProviderError: Any non-retryable provider failure, or the last
            retryable one once retries are exhausted.
    """

    async def _attempt() -> "LLMResponse":
        return await llm.complete(
            messages=messages,
            task=task,
            max_tokens=max_tokens,
            temperature=temperature,
        )

    try:
        return await asyncio.wait_for(
            with_retries(_attempt, llm.config), timeout=timeout_seconds
        )
    except asyncio.TimeoutError as e:
        raise ProviderTimeoutError(
            f"{task.value} completion exceeded {timeout_seconds:.1f}s",
            timeout_seconds=timeout_seconds,
        ) from e
