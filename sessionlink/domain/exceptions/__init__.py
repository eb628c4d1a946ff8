"""
Domain exceptions for SessionLink.
"""

from sessionlink.domain.exceptions.realtime import (
    FrameDecodeError,
    InvalidNotificationError,
    RealtimeError,
    TransportError,
)

__all__ = [
    "RealtimeError",
    "FrameDecodeError",
    "TransportError",
    "InvalidNotificationError",
]
