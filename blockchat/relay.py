"""Relay container.

A :class:`Relay` owns the registry and every component that touches it.  The
FastAPI app creates one per process lifetime (stored on ``app.state.relay``)
and injects it into the endpoints; nothing in the core is a module-level
singleton.
"""

from __future__ import annotations

import logging
from typing import Optional

from starlette.websockets import WebSocket

from blockchat.constants import CLOSE_GOING_AWAY
from blockchat.events import EventBus
from blockchat.utils.time import monotonic_seconds
from blockchat.websocket.connection import Connection
from blockchat.websocket.handlers import MessageRouter
from blockchat.websocket.lifecycle import ConnectionLifecycle
from blockchat.websocket.registry import ConnectionRegistry
from blockchat.websocket.stats import StatsBroadcaster
from blockchat.websocket.sweeper import DEFAULT_SWEEP_INTERVAL
from blockchat.websocket.sweeper import LivenessSweeper

logger = logging.getLogger(__name__)


class Relay:
    """Registry, router, broadcaster and sweeper for one server."""

    def __init__(self, sweep_interval: float = DEFAULT_SWEEP_INTERVAL, queue_size: int = Connection.QUEUE_SIZE):
        self.queue_size = queue_size
        self.registry = ConnectionRegistry()
        self.event_bus = EventBus()
        self.router = MessageRouter(self.registry, self.event_bus)
        self.stats = StatsBroadcaster(self.registry, self.event_bus)
        self.sweeper = LivenessSweeper(self.registry, self.event_bus, interval=sweep_interval)
        self.accepting = False
        self._started_at: Optional[float] = None

    @property
    def uptime(self) -> float:
        """Seconds since :meth:`start`; 0 before the relay has started."""
        if self._started_at is None:
            return 0.0
        return monotonic_seconds() - self._started_at

    async def start(self) -> None:
        self._started_at = monotonic_seconds()
        self.accepting = True
        self.sweeper.start()
        logger.info("Relay started (sweep every %ss)", self.sweeper.interval)

    async def handle(self, websocket: WebSocket) -> None:
        """Serve one WebSocket from handshake to teardown."""
        if not self.accepting:
            await websocket.close(code=CLOSE_GOING_AWAY, reason="Server shutting down")
            return

        await websocket.accept()

        forwarded = websocket.headers.get("x-forwarded-for")
        remote = forwarded or (websocket.client.host if websocket.client else "unknown")
        connection = Connection(websocket, queue_size=self.queue_size)
        logger.info("New WebSocket connection %s from %s", connection.client_id, remote)

        lifecycle = ConnectionLifecycle(connection, self.registry, self.router, self.event_bus)
        await lifecycle.run()

    async def shutdown(self) -> None:
        """Stop accepting, close every registered socket, stop the sweeper.

        In-flight messages are dropped without notification.
        """
        self.accepting = False

        closed = await self.registry.close_all(code=CLOSE_GOING_AWAY, reason="Server shutting down")
        if closed:
            logger.info("Closed %s client connections", closed)

        await self.sweeper.stop()
        self.stats.detach()
        logger.info("Relay stopped")


__all__ = ["Relay"]
