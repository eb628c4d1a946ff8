"""Application services."""

from sessionlink.application.services.notification_aggregator import NotificationAggregator
from sessionlink.application.services.realtime_session import RealtimeSession

__all__ = ["NotificationAggregator", "RealtimeSession"]
