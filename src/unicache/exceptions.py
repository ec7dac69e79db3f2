"""
Exception hierarchy for unicache.

All exceptions inherit from UniCacheError, which provides optional context
for structured error handling and logging. Absent keys and missing files are
not errors and never raise; only caller misuse does.
"""

from __future__ import annotations

from typing import Any


class UniCacheError(Exception):
    """Base exception for all cache errors.

    Attributes:
        message: Human-readable error message.
        context: Optional structured context for logging/debugging.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            ctx_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx_str})"
        return self.message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, context={self.context!r})"


class ConfigurationError(UniCacheError):
    """Raised when cache configuration is invalid or missing.

    Examples:
        - Missing or empty cache name
        - Negative sync interval
        - Unknown option names
    """

    pass


class InvalidKeyError(UniCacheError, ValueError):
    """Raised when an object key cannot be used.

    Context should include:
        - key: The rejected key
        - operation: The operation that was attempted
    """

    pass
