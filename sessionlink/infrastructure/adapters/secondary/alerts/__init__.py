"""Alert sink adapters."""

from sessionlink.infrastructure.adapters.secondary.alerts.logging_alert_sink import (
    LoggingAlertSink,
)

__all__ = ["LoggingAlertSink"]
