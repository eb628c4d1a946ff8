"""Pytest configuration and shared fixtures for testing."""

import asyncio
import json
from collections.abc import Callable
from typing import Any

import pytest

from sessionlink.domain.exceptions.realtime import TransportError
from sessionlink.domain.model.realtime.connection import BackoffPolicy, ConnectionConfig
from sessionlink.infrastructure.realtime.connection_manager import ConnectionManager

TEST_URL = "ws://realtime.test/ws"

# --- Fake transport ---


class FakeTransport:
    """In-memory RealtimeTransport driven by the test."""

    def __init__(self) -> None:
        self.sent: list[str] = []
        self.fail_send = False
        self._inbound: asyncio.Queue[str | bytes | None] = asyncio.Queue()
        self._closed = False
        self.close_calls = 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def sent_messages(self) -> list[dict[str, Any]]:
        return [json.loads(text) for text in self.sent]

    def sent_types(self) -> list[str]:
        return [message["type"] for message in self.sent_messages]

    def push(self, frame: str | bytes | dict[str, Any]) -> None:
        """Deliver a frame from the "server"."""
        if isinstance(frame, dict):
            frame = json.dumps(frame)
        self._inbound.put_nowait(frame)

    def drop(self) -> None:
        """Simulate the server closing the connection."""
        self._closed = True
        self._inbound.put_nowait(None)

    async def send_text(self, data: str) -> None:
        if self._closed or self.fail_send:
            raise TransportError("fake transport cannot send")
        self.sent.append(data)

    async def receive(self) -> str | bytes | None:
        if self._closed:
            return None
        frame = await self._inbound.get()
        if self._closed:
            return None
        return frame

    async def close(self) -> None:
        self.close_calls += 1
        if not self._closed:
            self._closed = True
            self._inbound.put_nowait(None)


class FakeConnector:
    """TransportConnector handing out FakeTransports."""

    def __init__(self) -> None:
        self.transports: list[FakeTransport] = []
        self.headers: list[dict[str, str]] = []
        self.urls: list[str] = []
        self.fail_next = 0
        self.fail_always = False
        # When set, connect() waits on it before handing out a transport
        self.gate: asyncio.Event | None = None

    @property
    def attempts(self) -> int:
        return len(self.urls)

    @property
    def last(self) -> FakeTransport:
        return self.transports[-1]

    async def connect(self, url: str, headers: dict[str, str]) -> FakeTransport:
        self.urls.append(url)
        self.headers.append(dict(headers))
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_always or self.fail_next > 0:
            self.fail_next = max(0, self.fail_next - 1)
            raise TransportError("connection refused", url)
        transport = FakeTransport()
        self.transports.append(transport)
        return transport


# --- Fixtures ---


@pytest.fixture
def connector() -> FakeConnector:
    return FakeConnector()


@pytest.fixture
def make_config() -> Callable[..., ConnectionConfig]:
    """Build a ConnectionConfig suited to fast, deterministic tests."""

    def _make(**overrides: Any) -> ConnectionConfig:
        values: dict[str, Any] = {
            "url": TEST_URL,
            "auto_connect": False,
            "backoff": BackoffPolicy(initial_delay=0, jitter=0),
            "ping_interval": None,
        }
        values.update(overrides)
        return ConnectionConfig(**values)

    return _make


@pytest.fixture
async def make_manager(connector, make_config):
    """Create ConnectionManagers that are destroyed after the test."""
    managers: list[ConnectionManager] = []

    def _make(**overrides: Any) -> ConnectionManager:
        manager = ConnectionManager(make_config(**overrides), connector=connector)
        managers.append(manager)
        return manager

    yield _make

    for manager in managers:
        manager.destroy()
        await manager.wait_closed()


@pytest.fixture
def eventually():
    """Return an awaitable poller for conditions reached by background tasks."""

    async def _eventually(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                raise AssertionError("Condition not reached in time")
            await asyncio.sleep(0.001)

    return _eventually
