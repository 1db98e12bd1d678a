"""
Permission-related exceptions.

Caller-visible failures (CallerError, PermissionDeniedError,
ConsentTimeoutError, ConsentCancelledError) propagate through the tool call.
PersistenceError never leaves the broker.
"""

from toolgate.permission.models import PermissionCategory


class ToolPermissionError(Exception):
    """Base exception for all permission errors."""

    pass


class CallerError(ToolPermissionError, ValueError):
    """Raised when a check receives malformed parameters."""

    pass


class PermissionDeniedError(ToolPermissionError):
    """Raised when the policy or the user denied the request."""

    def __init__(
        self,
        message: str,
        category: PermissionCategory,
        operation: str | None = None,
    ) -> None:
        super().__init__(message)
        self.category = category
        self.operation = operation


class ConsentTimeoutError(ToolPermissionError, TimeoutError):
    """Raised when nobody answered a consent request in time."""

    def __init__(self, timeout_seconds: float) -> None:
        super().__init__(
            f"User interaction timed out after {timeout_seconds:g} seconds."
        )
        self.timeout_seconds = timeout_seconds


class ConsentCancelledError(ToolPermissionError):
    """Raised when the call was cancelled while waiting for consent."""

    def __init__(self, reason: str | None = None) -> None:
        super().__init__(reason or "User interaction was cancelled.")
        self.reason = reason


class PersistenceError(ToolPermissionError):
    """Raised when a persisted permission state cannot be decoded."""

    pass


__all__ = [
    "ToolPermissionError",
    "CallerError",
    "PermissionDeniedError",
    "ConsentTimeoutError",
    "ConsentCancelledError",
    "PersistenceError",
]
