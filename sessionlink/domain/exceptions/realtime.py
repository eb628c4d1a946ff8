"""
Realtime domain exceptions.

Exception Hierarchy:
    RealtimeError (base)
    ├── FrameDecodeError           - Inbound frame is not a valid envelope
    ├── TransportError             - Connection/transport failure
    └── InvalidNotificationError   - Notification payload failed validation

None of these escape the public API: transport errors become state
transitions, decode errors drop the frame.
"""

from typing import Any


class RealtimeError(Exception):
    """Base exception for all realtime errors."""

    def __init__(
        self,
        message: str,
        original_error: Exception | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.original_error = original_error
        self.details = details or {}

    def __str__(self) -> str:
        if self.original_error:
            return f"{self.message} (caused by: {self.original_error})"
        return self.message


class FrameDecodeError(RealtimeError):
    """Raised when an inbound frame cannot be decoded into a message."""

    def __init__(
        self,
        message: str,
        frame: str | bytes | None = None,
        original_error: Exception | None = None,
    ) -> None:
        preview = frame[:200] if frame is not None else None
        super().__init__(message, original_error=original_error, details={"frame": preview})
        self.frame = frame


class TransportError(RealtimeError):
    """Raised by transports when the underlying connection fails."""

    def __init__(
        self,
        message: str,
        url: str | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message, original_error=original_error, details={"url": url})
        self.url = url


class InvalidNotificationError(RealtimeError):
    """Raised when a notification payload fails validation."""
