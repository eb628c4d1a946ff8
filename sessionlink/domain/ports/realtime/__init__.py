"""Realtime ports."""

from sessionlink.domain.ports.realtime.alert_port import AlertSink
from sessionlink.domain.ports.realtime.transport_port import (
    RealtimeTransport,
    TransportConnector,
)

__all__ = ["AlertSink", "RealtimeTransport", "TransportConnector"]
