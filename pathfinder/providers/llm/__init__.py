"""LLM provider module.

LLM provider interface and adapters.
"""

from pathfinder.providers.llm.base import (
    LLMMessage,
    LLMProvider,
    LLMResponse,
    TaskType,
)
from pathfinder.providers.llm.claude_adapter import ClaudeAdapter
from pathfinder.providers.llm.mock_adapter import MockLLMProvider
from pathfinder.providers.llm.openai_adapter import OpenAIAdapter

__all__ = [
    # Base types
    "LLMMessage",
    "LLMProvider",
    "LLMResponse",
    "TaskType",
    # Adapters
    "ClaudeAdapter",
    "MockLLMProvider",
    "OpenAIAdapter",
]
