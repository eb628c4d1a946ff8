"""AlertSink port - where transient user alerts are raised."""

from abc import abstractmethod
from typing import Protocol, runtime_checkable

from sessionlink.domain.model.realtime.notification import Alert


@runtime_checkable
class AlertSink(Protocol):
    """Shows a transient, dismissible alert to the user."""

    @abstractmethod
    def show(self, alert: Alert) -> None: ...
