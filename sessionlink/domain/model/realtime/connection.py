"""Realtime connection domain model - connection state, reconnect policy and config."""

import random
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from sessionlink.domain.shared_kernel import ValueObject

# Constants
INITIAL_RECONNECT_DELAY = 2.0  # Initial reconnect delay in seconds
RECONNECT_MULTIPLIER = 1.5  # Growth factor between attempts
MAX_RECONNECT_DELAY = 30.0  # Maximum reconnect delay in seconds
RECONNECT_JITTER = 0.2  # +/- ratio applied to each delay
PING_INTERVAL = 25.0  # Seconds between keepalive pings
PONG_TIMEOUT = 30.0  # Seconds without any inbound frame before the link is dropped
OUTBOUND_QUEUE_SIZE = 1000  # Max frames waiting for the writer task
CONNECT_TIMEOUT = 10.0  # Handshake timeout in seconds


class ConnectionState(str, Enum):
    """State of the single session connection."""

    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


@dataclass(frozen=True)
class BackoffPolicy(ValueObject):
    """Exponential reconnect backoff with jitter and a delay ceiling.

    Attributes:
        initial_delay: Delay before the first reconnect attempt.
        multiplier: Growth factor applied per attempt.
        max_delay: Ceiling for any single delay.
        jitter: Ratio of random spread applied around the computed delay.
        max_attempts: Attempts before giving up; None retries forever.
    """

    initial_delay: float = INITIAL_RECONNECT_DELAY
    multiplier: float = RECONNECT_MULTIPLIER
    max_delay: float = MAX_RECONNECT_DELAY
    jitter: float = RECONNECT_JITTER
    max_attempts: int | None = None

    def __post_init__(self) -> None:
        if self.initial_delay < 0 or self.max_delay < 0:
            raise ValueError("Backoff delays must not be negative")
        if self.multiplier < 1:
            raise ValueError("Backoff multiplier must be >= 1")
        if not 0 <= self.jitter <= 1:
            raise ValueError("Backoff jitter must be between 0 and 1")
        if self.max_attempts is not None and self.max_attempts < 1:
            raise ValueError("max_attempts must be positive or None")

    def delay_for(self, attempt: int, rand: Callable[[], float] = random.random) -> float:
        """Return the delay in seconds before reconnect attempt number ``attempt`` (1-based)."""
        exponent = max(attempt, 1) - 1
        base = min(self.max_delay, self.initial_delay * self.multiplier**exponent)
        if self.jitter:
            base += base * self.jitter * (2 * rand() - 1)
        return min(max(base, 0.0), self.max_delay)

    def exhausted(self, attempt: int) -> bool:
        return self.max_attempts is not None and attempt > self.max_attempts


@dataclass(frozen=True)
class ConnectionConfig(ValueObject):
    """Configuration for a session connection."""

    url: str
    reconnect: bool = True
    auto_connect: bool = True
    debug: bool = False
    backoff: BackoffPolicy = field(default_factory=BackoffPolicy)
    ping_interval: float | None = PING_INTERVAL
    pong_timeout: float = PONG_TIMEOUT
    outbound_queue_size: int = OUTBOUND_QUEUE_SIZE
    connect_timeout: float = CONNECT_TIMEOUT
    read_receipts: bool = False

    def __post_init__(self) -> None:
        if not self.url:
            raise ValueError("WebSocket URL is required")
        if self.outbound_queue_size < 1:
            raise ValueError("outbound_queue_size must be positive")
