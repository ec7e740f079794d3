"""Provider error taxonomy.

Error classes for the AI completion provider layer. Adapters map SDK
exceptions onto these so services handle failures without knowing which
provider is configured.

WHY SEPARATE ERROR CLASSES:
- Enables callers to handle errors differently based on type
- Clear distinction between retryable and non-retryable errors
- Provider-agnostic error handling (adapters map to these)
"""


__all__ = [
    "ProviderError",
    "RateLimitError",
    "AuthenticationError",
    "ModelNotFoundError",
    "ContentFilterError",
    "ContextLengthError",
    "TransientError",
    "ProviderTimeoutError",
]


class ProviderError(Exception):
    """Base class for all provider errors.

    Catching ProviderError covers every failure a completion call can
    surface, including timeouts.
    """

    pass


class RateLimitError(ProviderError):
    """Rate limit exceeded.

    WHY SEPARATE FROM TRANSIENT:
    - May have specific retry_after_seconds hint from provider
    """

    def __init__(self, message: str, retry_after_seconds: float | None = None):
        """Initialize RateLimitError.

        Args:
            message: Error description from the provider.
            retry_after_seconds: Optional hint from provider on when to retry.
        """
        super().__init__(message)
        self.retry_after_seconds = retry_after_seconds


class AuthenticationError(ProviderError):
    """Invalid or missing API key. Not retryable."""

    pass


class ModelNotFoundError(ProviderError):
    """Requested model doesn't exist or isn't accessible."""

    pass


class ContentFilterError(ProviderError):
    """Content blocked by provider's safety filter."""

    pass


class ContextLengthError(ProviderError):
    """Input exceeded model's context window.

    Long experience descriptions are the usual cause; retrying won't help.
    """

    pass


class TransientError(ProviderError):
    """Temporary failure (network, server overload).

    Safe to retry with exponential backoff.
    """

    pass


class ProviderTimeoutError(ProviderError):
    """Completion did not finish within the caller's deadline.

    Raised by complete_with_deadline. Not retried: the deadline already
    covers every retry attempt.
    """

    def __init__(self, message: str, timeout_seconds: float):
        super().__init__(message)
        self.timeout_seconds = timeout_seconds
