"""Realtime domain model - wire envelopes exchanged over the session connection."""

from dataclasses import dataclass
from typing import Any

from sessionlink.domain.shared_kernel import ValueObject

# Control frame types
SUBSCRIBE = "subscribe"
UNSUBSCRIBE = "unsubscribe"
AUTH = "auth"
PING = "ping"
PONG = "pong"
NOTIFICATION = "notification"
NOTIFICATION_READ = "notification_read"


@dataclass(frozen=True)
class OutboundMessage(ValueObject):
    """Frame sent from the client to the server."""

    type: str
    payload: Any = None
    channel: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.type, "payload": self.payload}
        if self.channel is not None:
            data["channel"] = self.channel
        return data

    @classmethod
    def subscribe(cls, channel: str) -> "OutboundMessage":
        return cls(type=SUBSCRIBE, payload={"channel": channel}, channel=channel)

    @classmethod
    def unsubscribe(cls, channel: str) -> "OutboundMessage":
        return cls(type=UNSUBSCRIBE, payload={"channel": channel}, channel=channel)

    @classmethod
    def auth(cls, token: str) -> "OutboundMessage":
        return cls(type=AUTH, payload={"token": token})

    @classmethod
    def ping(cls) -> "OutboundMessage":
        return cls(type=PING)


@dataclass(frozen=True)
class InboundMessage(ValueObject):
    """Frame pushed by the server."""

    type: str
    payload: Any = None
    channel: str | None = None
