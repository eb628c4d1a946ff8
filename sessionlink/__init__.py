"""SessionLink - realtime session client."""

from sessionlink.application.services import NotificationAggregator, RealtimeSession
from sessionlink.domain.model.realtime import (
    BackoffPolicy,
    ConnectionConfig,
    ConnectionState,
    InboundMessage,
    Notification,
    NotificationType,
    OutboundMessage,
    SessionIdentity,
    channels_for_identity,
)
from sessionlink.infrastructure.realtime import (
    ChannelSubscriptionRegistry,
    ConnectionManager,
    MessageDispatcher,
    Subscription,
)

__version__ = "0.1.0"

__all__ = [
    "BackoffPolicy",
    "ChannelSubscriptionRegistry",
    "ConnectionConfig",
    "ConnectionManager",
    "ConnectionState",
    "InboundMessage",
    "MessageDispatcher",
    "Notification",
    "NotificationAggregator",
    "NotificationType",
    "OutboundMessage",
    "RealtimeSession",
    "SessionIdentity",
    "Subscription",
    "channels_for_identity",
]
