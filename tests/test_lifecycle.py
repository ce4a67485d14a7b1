"""Tests for the per-connection lifecycle state machine."""

import asyncio
import json
import logging
from unittest.mock import AsyncMock
from unittest.mock import patch

import pytest

from blockchat.events import EventType
from blockchat.websocket.connection import Connection
from blockchat.websocket.connection import ConnectionState
from blockchat.websocket.lifecycle import ConnectionLifecycle
from blockchat.websocket.lifecycle import LifecycleState
from tests.helpers.addresses import ALICE
from tests.helpers.addresses import BOB
from tests.helpers.fake_websocket import FakeWebSocket
from tests.helpers.fake_websocket import StalledWebSocket
from tests.helpers.fake_websocket import flush


def frame(**payload):
    return json.dumps(payload)


@pytest.fixture
def make_lifecycle(registry, router, event_bus):
    def _make(websocket=None) -> ConnectionLifecycle:
        conn = Connection(websocket or FakeWebSocket.connected())
        return ConnectionLifecycle(conn, registry, router, event_bus)

    return _make


@pytest.mark.asyncio
class TestEvents:
    async def test_accept_sends_ping(self, make_lifecycle):
        lifecycle = make_lifecycle()

        await lifecycle.on_accept()
        await flush(lifecycle.connection)

        sent = lifecycle.connection.websocket.sent
        assert [m["type"] for m in sent] == ["ping"]
        assert isinstance(sent[0]["timestamp"], int)
        assert lifecycle.state is LifecycleState.UNREGISTERED

    async def test_register_moves_to_registered(self, make_lifecycle, registry):
        lifecycle = make_lifecycle()

        await lifecycle.on_text(frame(type="register", address=ALICE))

        assert lifecycle.state is LifecycleState.REGISTERED
        assert lifecycle.identity == ALICE.lower()
        assert registry.lookup(ALICE.lower()) is lifecycle.connection

    async def test_failed_register_stays_unregistered(self, make_lifecycle, registry):
        lifecycle = make_lifecycle()

        await lifecycle.on_text(frame(type="register"))

        assert lifecycle.state is LifecycleState.UNREGISTERED
        assert lifecycle.identity is None
        assert registry.size() == 0

    @pytest.mark.parametrize("raw", ["{not json", "[1, 2, 3]", '"register"', "null", ""])
    async def test_malformed_frames_are_discarded(self, make_lifecycle, caplog, raw):
        lifecycle = make_lifecycle()

        with caplog.at_level(logging.ERROR, logger="blockchat.websocket.lifecycle"):
            await lifecycle.on_text(raw)

        assert lifecycle.connection.websocket.sent == []
        assert lifecycle.state is LifecycleState.UNREGISTERED
        assert "Message processing error" in caplog.text

    async def test_malformed_frame_does_not_end_the_connection(self, make_lifecycle):
        lifecycle = make_lifecycle()

        await lifecycle.on_text("{oops")
        await lifecycle.on_text(frame(type="register", address=ALICE))

        assert lifecycle.state is LifecycleState.REGISTERED

    async def test_router_failure_is_logged_not_raised(self, make_lifecycle, router, caplog):
        lifecycle = make_lifecycle()

        with patch.object(router, "route", AsyncMock(side_effect=RuntimeError("kaboom"))):
            with caplog.at_level(logging.ERROR, logger="blockchat.websocket.lifecycle"):
                await lifecycle.on_text(frame(type="message", **{"from": ALICE, "to": BOB}))

        assert "kaboom" in caplog.text
        assert lifecycle.state is LifecycleState.UNREGISTERED

    async def test_clean_close_broadcasts_decremented_count(self, make_lifecycle, registry, stats):
        alice = make_lifecycle()
        bob = make_lifecycle()
        await alice.on_text(frame(type="register", address=ALICE))
        await bob.on_text(frame(type="register", address=BOB))

        seen_sizes = []

        async def _capture():
            seen_sizes.append(registry.size())
            return 0

        with patch.object(stats, "broadcast", AsyncMock(side_effect=_capture)) as broadcast:
            await alice.on_close()

        broadcast.assert_awaited_once()
        assert seen_sizes == [1]
        assert registry.lookup(ALICE.lower()) is None
        assert registry.lookup(BOB.lower()) is bob.connection
        assert alice.state is LifecycleState.CLOSED
        assert alice.connection.state is ConnectionState.CLOSED

    async def test_remaining_peer_receives_new_stats_on_close(self, make_lifecycle, stats):
        alice = make_lifecycle()
        bob = make_lifecycle()
        await alice.on_text(frame(type="register", address=ALICE))
        await bob.on_text(frame(type="register", address=BOB))
        await flush(bob.connection)
        bob.connection.websocket.sent.clear()

        await alice.on_close()
        await flush(bob.connection)

        assert bob.connection.websocket.types == ["server-stats"]
        assert bob.connection.websocket.sent[0]["connectedClients"] == 1

    async def test_unregistered_close_publishes_nothing(self, make_lifecycle, event_bus):
        listener = AsyncMock()
        event_bus.subscribe(EventType.REGISTRY_CHANGED, listener)
        lifecycle = make_lifecycle()

        await lifecycle.on_close()

        listener.assert_not_awaited()
        assert lifecycle.state is LifecycleState.CLOSED

    async def test_error_path_unbinds_without_broadcast(self, make_lifecycle, registry, event_bus):
        lifecycle = make_lifecycle()
        await lifecycle.on_text(frame(type="register", address=ALICE))
        listener = AsyncMock()
        event_bus.subscribe(EventType.REGISTRY_CHANGED, listener)

        await lifecycle.on_error(ConnectionResetError("reset"))

        listener.assert_not_awaited()
        assert registry.size() == 0
        assert lifecycle.state is LifecycleState.CLOSED

    async def test_replaced_connection_close_keeps_replacement(self, make_lifecycle, registry):
        first = make_lifecycle()
        second = make_lifecycle()
        await first.on_text(frame(type="register", address=ALICE))
        await second.on_text(frame(type="register", address=ALICE))

        await first.on_close()

        assert registry.lookup(ALICE.lower()) is second.connection

    async def test_teardown_stops_writer_and_drops_pending_frames(self, make_lifecycle, registry):
        stalled = StalledWebSocket.connected()
        lifecycle = make_lifecycle(stalled)
        await lifecycle.on_text(frame(type="register", address=ALICE))
        await asyncio.sleep(0)
        assert lifecycle.connection.pending == 1

        await lifecycle.on_close()
        await asyncio.wait_for(lifecycle.connection.drain(), timeout=1.0)

        assert lifecycle.connection.pending == 0
        assert stalled.sent == []
        assert registry.size() == 0

    async def test_events_after_close_are_ignored(self, make_lifecycle, registry, event_bus):
        lifecycle = make_lifecycle()
        await lifecycle.on_text(frame(type="register", address=ALICE))
        await lifecycle.on_close()
        listener = AsyncMock()
        event_bus.subscribe(EventType.REGISTRY_CHANGED, listener)

        await lifecycle.on_text(frame(type="register", address=BOB))
        await lifecycle.on_close()
        await lifecycle.on_error(RuntimeError("late"))

        listener.assert_not_awaited()
        assert registry.size() == 0


@pytest.mark.asyncio
class TestRun:
    async def test_full_session(self, make_lifecycle, registry, stats):
        ws = FakeWebSocket.connected(
            [
                frame(type="register", address=ALICE),
                frame(type="message", messageId="m1", **{"from": ALICE, "to": BOB}),
            ]
        )
        lifecycle = make_lifecycle(ws)

        await lifecycle.run()

        assert ws.types == ["ping", "registered", "ack", "server-stats", "delivery-failed"]
        assert lifecycle.state is LifecycleState.CLOSED
        assert registry.size() == 0

    async def test_binary_frames_are_decoded(self, make_lifecycle, registry):
        ws = FakeWebSocket.connected([frame(type="register", address=ALICE).encode("utf-8")])
        lifecycle = make_lifecycle(ws)
        registered = []

        async def _spy(envelope, sender_key, sender):
            registered.append(envelope.raw_address)
            return ALICE.lower()

        with patch.object(lifecycle.router, "route", AsyncMock(side_effect=_spy)):
            await lifecycle.run()

        assert registered == [ALICE]

    async def test_transport_error_takes_error_path(self, make_lifecycle, registry, event_bus):
        ws = FakeWebSocket.connected([frame(type="register", address=ALICE), OSError("connection lost")])
        lifecycle = make_lifecycle(ws)
        listener = AsyncMock()
        event_bus.subscribe(EventType.REGISTRY_CHANGED, listener)

        await lifecycle.run()

        # Only the registration was published; the abrupt failure was not.
        assert [call.args[0]["reason"] for call in listener.await_args_list] == ["register"]
        assert registry.size() == 0
        assert lifecycle.state is LifecycleState.CLOSED

    async def test_run_never_raises(self, make_lifecycle):
        ws = FakeWebSocket.connected([RuntimeError("boom")])
        lifecycle = make_lifecycle(ws)

        await lifecycle.run()

        assert lifecycle.state is LifecycleState.CLOSED
