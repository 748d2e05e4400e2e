"""
Errors raised by the completion provider layer.
"""

from typing import Optional


class ProviderConfigurationError(RuntimeError):
    """No completion provider is usable with the current configuration."""


class ProviderCallFailed(Exception):
    """A single attempt against one provider failed."""

    def __init__(self, provider: str, original: BaseException, retryable: bool = False):
        self.provider = provider
        self.original = original
        self.retryable = retryable
        super().__init__(f"{provider}: {original}")


class AllProvidersExhausted(Exception):
    """Every enabled provider failed for a single call."""

    def __init__(self, last_error: Optional[BaseException] = None):
        self.last_error = last_error
        message = str(last_error.original) if isinstance(last_error, ProviderCallFailed) else str(last_error)
        super().__init__(f"All AI providers failed. Last error: {message}")
