"""
Factory functions for building connection configs and realtime sessions.

This module turns environment settings into the runtime objects used by the
rest of the package.
"""

import logging
from typing import Optional

from sessionlink.application.services.realtime_session import RealtimeSession
from sessionlink.configuration.config import Settings, get_settings
from sessionlink.domain.model.realtime.connection import BackoffPolicy, ConnectionConfig
from sessionlink.domain.ports.realtime.alert_port import AlertSink
from sessionlink.domain.ports.realtime.transport_port import TransportConnector

logger = logging.getLogger(__name__)


def build_connection_config(
    settings: Optional[Settings] = None,
    **overrides,
) -> ConnectionConfig:
    """
    Build a ConnectionConfig from settings.

    Args:
        settings: Settings to read; the cached environment settings if omitted
        **overrides: ConnectionConfig fields that take precedence over settings

    Returns:
        ConnectionConfig instance
    """
    settings = settings or get_settings()

    backoff = BackoffPolicy(
        initial_delay=settings.reconnect_initial_delay,
        multiplier=settings.reconnect_multiplier,
        max_delay=settings.reconnect_max_delay,
        jitter=settings.reconnect_jitter,
        max_attempts=settings.reconnect_max_attempts,
    )
    values = {
        "url": settings.url,
        "reconnect": settings.reconnect,
        "auto_connect": settings.auto_connect,
        "debug": settings.debug,
        "backoff": backoff,
        "ping_interval": settings.ping_interval or None,
        "pong_timeout": settings.pong_timeout,
        "outbound_queue_size": settings.outbound_queue_size,
        "connect_timeout": settings.connect_timeout,
        "read_receipts": settings.read_receipts,
    }
    values.update(overrides)
    return ConnectionConfig(**values)


def create_realtime_session(
    settings: Optional[Settings] = None,
    connector: Optional[TransportConnector] = None,
    alert_sink: Optional[AlertSink] = None,
    **overrides,
) -> RealtimeSession:
    """
    Create a RealtimeSession configured from settings.

    Must be called from a running event loop when auto-connect is enabled.
    """
    config = build_connection_config(settings, **overrides)
    logger.info(f"Creating realtime session for {config.url}")
    return RealtimeSession(config, connector=connector, alert_sink=alert_sink)
