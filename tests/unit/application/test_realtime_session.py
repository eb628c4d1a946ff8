"""Unit tests for RealtimeSession."""

from unittest.mock import MagicMock

import pytest

from sessionlink.application.services.realtime_session import RealtimeSession
from sessionlink.domain.model.realtime.connection import ConnectionState
from sessionlink.domain.model.realtime.identity import SessionIdentity


@pytest.fixture
async def make_session(connector, make_config):
    """Create RealtimeSessions that are closed after the test."""
    sessions: list[RealtimeSession] = []

    def _make(**overrides) -> RealtimeSession:
        alert_sink = overrides.pop("alert_sink", MagicMock())
        session = RealtimeSession(
            make_config(**overrides), connector=connector, alert_sink=alert_sink
        )
        sessions.append(session)
        return session

    yield _make

    for session in sessions:
        await session.aclose()


def _channels(transport, message_type: str) -> list[str]:
    return [m["channel"] for m in transport.sent_messages if m["type"] == message_type]


@pytest.mark.unit
class TestRealtimeSession:
    """Tests for RealtimeSession."""

    @pytest.mark.asyncio
    async def test_identity_channels_subscribed_on_open(self, make_session, connector, eventually):
        session = make_session()
        session.set_identity(
            SessionIdentity(user_id=7, role="admin", organization_type="acme", token="tok")
        )

        session.start()
        await eventually(lambda: session.is_connected and len(connector.last.sent) == 5)

        assert connector.headers[0] == {"Authorization": "Bearer tok"}
        assert connector.last.sent_types()[0] == "auth"
        assert _channels(connector.last, "subscribe") == [
            "general",
            "user:7",
            "role:admin",
            "org:acme",
        ]

    @pytest.mark.asyncio
    async def test_identity_change_diffs_channels(self, make_session, connector, eventually):
        session = make_session()
        session.set_identity(SessionIdentity(user_id=7, role="member"))
        session.start()
        await eventually(lambda: session.is_connected and len(connector.last.sent) == 3)

        session.set_identity(SessionIdentity(user_id=7, role="admin"))
        await eventually(lambda: len(connector.last.sent) == 5)

        tail = connector.last.sent_messages[3:]
        assert [(m["type"], m["channel"]) for m in tail] == [
            ("unsubscribe", "role:member"),
            ("subscribe", "role:admin"),
        ]

    @pytest.mark.asyncio
    async def test_manual_channels_survive_identity_change(self, make_session):
        session = make_session()
        session.subscribe("project:1")
        session.set_identity(SessionIdentity(user_id=1))

        session.set_identity(None)

        assert session.channels == ("project:1",)

    @pytest.mark.asyncio
    async def test_user_change_clears_notifications(self, make_session):
        session = make_session()
        session.set_identity(SessionIdentity(user_id=1))
        session.aggregator.receive({"id": "n1"})

        session.set_identity(SessionIdentity(user_id=1, role="admin"))
        assert len(session.notifications) == 1

        session.set_identity(SessionIdentity(user_id=2))
        assert session.notifications == ()

    @pytest.mark.asyncio
    async def test_notifications_from_server(self, make_session, connector, eventually):
        alert_sink = MagicMock()
        session = make_session(alert_sink=alert_sink)
        changes = []
        session.on_notifications_change(changes.append)
        session.start()
        await eventually(lambda: session.is_connected)

        connector.last.push({"type": "notification", "payload": {"id": "n1", "title": "A"}})
        connector.last.push({"type": "notification", "data": {"id": "n2", "title": "B"}})
        await eventually(lambda: len(session.notifications) == 2)

        assert [n.id for n in session.notifications] == ["n2", "n1"]
        assert session.unread_count == 2
        assert alert_sink.show.call_count == 2
        assert len(changes) == 2

        assert session.mark_as_read("n1") is True
        assert session.mark_all_as_read() == 1
        assert session.remove_notification("n2") is True
        session.clear_notifications()
        assert session.unread_count == 0

    @pytest.mark.asyncio
    async def test_read_receipts_disabled_by_default(self, make_session, connector, eventually):
        session = make_session()
        session.start()
        await eventually(lambda: session.is_connected)
        session.aggregator.receive({"id": "n1"})

        session.mark_as_read("n1")
        session.send("marker")
        await eventually(lambda: connector.last.sent)

        assert connector.last.sent_types() == ["marker"]

    @pytest.mark.asyncio
    async def test_read_receipts_sent_when_enabled(self, make_session, connector, eventually):
        session = make_session(read_receipts=True)
        session.start()
        await eventually(lambda: session.is_connected)
        session.aggregator.receive({"id": "n1"})
        session.aggregator.receive({"id": "n2"})

        session.mark_all_as_read()
        await eventually(lambda: connector.last.sent)

        assert connector.last.sent_messages == [
            {"type": "notification_read", "payload": {"ids": ["n2", "n1"]}}
        ]

    @pytest.mark.asyncio
    async def test_send_and_handlers(self, make_session, connector, eventually):
        session = make_session()
        received = []
        session.on("chat", received.append)

        assert session.send("chat", {"text": "early"}) is False

        session.start()
        await eventually(lambda: session.is_connected)
        assert session.send("chat", {"text": "hi"}, channel="room") is True
        connector.last.push({"type": "chat", "payload": {"text": "yo"}})
        await eventually(lambda: received)

        assert received[0].payload == {"text": "yo"}

    @pytest.mark.asyncio
    async def test_close_is_idempotent_and_final(self, make_session, connector, eventually):
        session = make_session()
        states = []
        session.on_status_change(states.append)
        session.start()
        await eventually(lambda: session.is_connected)

        await session.aclose()
        session.close()
        session.start()

        assert session.closed is True
        assert session.state == ConnectionState.CLOSED
        assert connector.attempts == 1
        assert states[-1] == ConnectionState.CLOSED

    @pytest.mark.asyncio
    async def test_auto_connect(self, connector, make_config, eventually):
        async with RealtimeSession(
            make_config(auto_connect=True), connector=connector, alert_sink=MagicMock()
        ) as session:
            await eventually(lambda: session.is_connected)

        assert session.closed is True
