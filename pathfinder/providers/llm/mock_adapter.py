"""Mock LLM provider for testing.

MockLLMProvider enables unit testing without hitting real LLM APIs, including
simulated failures and hangs for the mapper's degrade path and the
generator's fail-cleanly path.
"""

import asyncio
from typing import Any

from pathfinder.providers.config import ProviderConfig
from pathfinder.providers.llm.base import (
    LLMMessage,
    LLMProvider,
    LLMResponse,
    TaskType,
)


class MockLLMProvider(LLMProvider):
    """Mock provider for testing.

    Attributes:
        responses: Pre-configured responses keyed by TaskType.
        errors: Exceptions to raise instead of responding, keyed by TaskType.
        delay_seconds: Sleep before responding (simulates a slow provider).
        calls: Record of all method invocations for test assertions.
        last_task: The most recent TaskType used in a call.
    """

    @property
    def provider_name(self) -> str:
        """Return 'mock' for testing."""
        return "mock"

    def __init__(
        self,
        responses: dict[TaskType, str] | None = None,
        *,
        config: ProviderConfig | None = None,
    ) -> None:
        """Initialize mock provider with optional pre-configured responses.

        Args:
            responses: Dict mapping TaskType to response content. If not provided
                for a task, returns a default "Mock response for {task}" string.
            config: Provider config. Defaults to no retries so failures
                surface immediately.
        """
        super().__init__(config or ProviderConfig(max_retries=0))
        self.responses: dict[TaskType, str] = dict(responses) if responses else {}
        self.errors: dict[TaskType, Exception] = {}
        self.delay_seconds: float = 0.0
        self.calls: list[dict[str, Any]] = []
        self.last_task: TaskType | None = None

    def set_response(self, task: TaskType, content: str) -> None:
        """Set or update the response for a specific task type."""
        self.responses[task] = content

    def set_error(self, task: TaskType, error: Exception) -> None:
        """Make every call for ``task`` raise ``error``."""
        self.errors[task] = error

    async def complete(
        self,
        messages: list[LLMMessage],
        task: TaskType,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> LLMResponse:
        """Generate a mock completion.

        Records the call, then sleeps, raises, or returns the configured
        response for the task.

        Args:
            messages: Conversation history as list of LLMMessage.
            task: Task type for response lookup.
            max_tokens: Ignored (recorded in kwargs).
            temperature: Ignored (recorded in kwargs).

        Returns:
            LLMResponse with configured or default content.
        """
        self.calls.append(
            {
                "method": "complete",
                "messages": messages,
                "task": task,
                "kwargs": {
                    "max_tokens": max_tokens,
                    "temperature": temperature,
                },
            }
        )
        self.last_task = task

        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)

        if task in self.errors:
            raise self.errors[task]

        content = self.responses.get(task, f"Mock response for {task.value}")

        return LLMResponse(
            content=content,
            model="mock-model",
            input_tokens=100,
            output_tokens=50,
            finish_reason="stop",
            latency_ms=10,
        )

    def get_model_for_task(self, _task: TaskType) -> str:
        """Return 'mock-model' for any task."""
        return "mock-model"

    def assert_called_with_task(self, task: TaskType) -> None:
        """Test helper to verify a task was called.

        Raises:
            AssertionError: If the task was not called.
        """
        tasks_called = [c["task"] for c in self.calls]
        assert task in tasks_called, f"Expected {task}, got {tasks_called}"
