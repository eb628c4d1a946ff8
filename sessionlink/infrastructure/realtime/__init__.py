"""Realtime infrastructure: connection, subscriptions and dispatch."""

from sessionlink.infrastructure.realtime.channel_registry import ChannelSubscriptionRegistry
from sessionlink.infrastructure.realtime.connection_manager import ConnectionManager
from sessionlink.infrastructure.realtime.dispatcher import MessageDispatcher
from sessionlink.infrastructure.realtime.listeners import ListenerSet, Subscription

__all__ = [
    "ChannelSubscriptionRegistry",
    "ConnectionManager",
    "ListenerSet",
    "MessageDispatcher",
    "Subscription",
]
