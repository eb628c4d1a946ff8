"""Unit tests for MessageDispatcher."""

import asyncio
import logging

import pytest

from sessionlink.domain.model.realtime.message import InboundMessage
from sessionlink.infrastructure.realtime.dispatcher import MessageDispatcher


def _message(message_type: str = "x", payload=None, channel=None) -> InboundMessage:
    return InboundMessage(type=message_type, payload=payload, channel=channel)


@pytest.mark.unit
class TestMessageDispatcher:
    """Tests for MessageDispatcher."""

    def test_dispatch_by_type(self):
        dispatcher = MessageDispatcher()
        received = []
        dispatcher.on("x", received.append)

        invoked = dispatcher.dispatch(_message("x", {"a": 1}))

        assert invoked == 1
        assert received == [_message("x", {"a": 1})]

    def test_multiple_handlers_in_registration_order(self):
        dispatcher = MessageDispatcher()
        order = []
        dispatcher.on("x", lambda m: order.append("first"))
        dispatcher.on("x", lambda m: order.append("second"))

        dispatcher.dispatch(_message("x"))

        assert order == ["first", "second"]

    def test_unknown_type_is_not_an_error(self):
        dispatcher = MessageDispatcher(debug=True)

        assert dispatcher.dispatch(_message("nobody")) == 0

    def test_throwing_handler_does_not_block_others(self, caplog):
        dispatcher = MessageDispatcher()
        received = []

        def broken(_message):
            raise RuntimeError("boom")

        dispatcher.on("x", broken)
        dispatcher.on("x", lambda m: received.append(("x", m.payload)))
        dispatcher.on("y", lambda m: received.append(("y", m.payload)))

        with caplog.at_level(logging.ERROR):
            dispatcher.dispatch(_message("x", 1))
            dispatcher.dispatch(_message("y", 2))

        assert received == [("x", 1), ("y", 2)]
        assert "Handler error" in caplog.text

    def test_release_stops_delivery(self):
        dispatcher = MessageDispatcher()
        received = []
        subscription = dispatcher.on("x", received.append)

        subscription.release()
        dispatcher.dispatch(_message("x"))

        assert received == []
        assert dispatcher.has_handlers("x") is False

    def test_release_during_dispatch_skips_later_handler(self):
        dispatcher = MessageDispatcher()
        received = []
        holder = {}

        def first(_message):
            holder["second"].release()

        dispatcher.on("x", first)
        holder["second"] = dispatcher.on("x", received.append)

        dispatcher.dispatch(_message("x"))

        assert received == []

    def test_handler_can_release_itself(self):
        dispatcher = MessageDispatcher()
        received = []
        holder = {}

        def once(message):
            received.append(message)
            holder["sub"].release()

        holder["sub"] = dispatcher.on("x", once)
        dispatcher.dispatch(_message("x"))
        dispatcher.dispatch(_message("x"))

        assert len(received) == 1

    def test_channel_and_wildcard_handlers(self):
        dispatcher = MessageDispatcher()
        order = []
        dispatcher.on("x", lambda m: order.append("type"))
        dispatcher.on_channel("user:1", lambda m: order.append("channel"))
        dispatcher.on_any(lambda m: order.append("any"))

        invoked = dispatcher.dispatch(_message("x", channel="user:1"))
        dispatcher.dispatch(_message("other"))

        assert invoked == 3
        assert order == ["type", "channel", "any", "any"]

    def test_empty_registration_keys_rejected(self):
        dispatcher = MessageDispatcher()

        with pytest.raises(ValueError):
            dispatcher.on("", lambda m: None)
        with pytest.raises(ValueError):
            dispatcher.on_channel("", lambda m: None)

    def test_dispatch_raw_drops_malformed_frame(self, caplog):
        dispatcher = MessageDispatcher()
        received = []
        dispatcher.on_any(received.append)

        with caplog.at_level(logging.WARNING):
            assert dispatcher.dispatch_raw("{broken") == 0

        assert received == []
        assert "malformed" in caplog.text

    def test_dispatch_raw_decodes_frame(self):
        dispatcher = MessageDispatcher()
        received = []
        dispatcher.on("notification", received.append)

        dispatcher.dispatch_raw('{"type": "notification", "data": {"id": "n1"}}')

        assert received[0].payload == {"id": "n1"}

    def test_clear_drops_all_handlers(self):
        dispatcher = MessageDispatcher()
        received = []
        dispatcher.on("x", received.append)
        dispatcher.on_any(received.append)

        dispatcher.clear()

        assert dispatcher.dispatch(_message("x")) == 0
        assert received == []


@pytest.mark.unit
class TestMessageDispatcherAsyncHandlers:
    """Tests for coroutine handlers."""

    @pytest.mark.asyncio
    async def test_coroutine_handler_is_scheduled(self):
        dispatcher = MessageDispatcher()
        done = asyncio.Event()
        received = []

        async def handler(message):
            received.append(message.payload)
            done.set()

        dispatcher.on("x", handler)
        dispatcher.dispatch(_message("x", 7))

        await asyncio.wait_for(done.wait(), timeout=1.0)
        assert received == [7]

    @pytest.mark.asyncio
    async def test_coroutine_handler_failure_is_logged(self, caplog):
        dispatcher = MessageDispatcher()
        failed = asyncio.Event()

        async def broken(_message):
            failed.set()
            raise RuntimeError("async boom")

        dispatcher.on("x", broken)
        with caplog.at_level(logging.ERROR):
            dispatcher.dispatch(_message("x"))
            await asyncio.wait_for(failed.wait(), timeout=1.0)
            for _ in range(5):
                await asyncio.sleep(0)

        assert "Async handler error" in caplog.text

    def test_coroutine_handler_without_loop_is_dropped(self, caplog):
        dispatcher = MessageDispatcher()

        async def handler(_message):
            return None

        dispatcher.on("x", handler)
        with caplog.at_level(logging.ERROR):
            assert dispatcher.dispatch(_message("x")) == 1

        assert "No event loop" in caplog.text
