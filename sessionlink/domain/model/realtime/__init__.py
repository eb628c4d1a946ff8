"""Realtime domain model."""

from sessionlink.domain.model.realtime.connection import (
    BackoffPolicy,
    ConnectionConfig,
    ConnectionState,
)
from sessionlink.domain.model.realtime.identity import (
    GENERAL_CHANNEL,
    SessionIdentity,
    channels_for_identity,
)
from sessionlink.domain.model.realtime.message import InboundMessage, OutboundMessage
from sessionlink.domain.model.realtime.notification import (
    Alert,
    AlertVariant,
    Notification,
    NotificationType,
)

__all__ = [
    "Alert",
    "AlertVariant",
    "BackoffPolicy",
    "ConnectionConfig",
    "ConnectionState",
    "GENERAL_CHANNEL",
    "InboundMessage",
    "Notification",
    "NotificationType",
    "OutboundMessage",
    "SessionIdentity",
    "channels_for_identity",
]
