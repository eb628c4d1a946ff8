"""Alert sink that writes transient alerts to the log."""

import logging

from sessionlink.domain.model.realtime.notification import Alert, AlertVariant

logger = logging.getLogger(__name__)


class LoggingAlertSink:
    """Default AlertSink for headless sessions."""

    def __init__(self, logger_: logging.Logger | None = None) -> None:
        self._logger = logger_ or logger

    def show(self, alert: Alert) -> None:
        level = logging.WARNING if alert.variant == AlertVariant.DESTRUCTIVE else logging.INFO
        if alert.message:
            self._logger.log(level, "[Alert] %s: %s", alert.title, alert.message)
        else:
            self._logger.log(level, "[Alert] %s", alert.title)
