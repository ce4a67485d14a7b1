"""Per-connection state machine.

``UNREGISTERED -> REGISTERED -> CLOSED``; a connection may close from either
of the first two states.  The lifecycle owns its :class:`Connection` for the
whole life of the socket and is the only place that tears it down.
"""

from __future__ import annotations

import json
import logging
from enum import Enum
from typing import Optional

from starlette.websockets import WebSocketDisconnect

from blockchat.events import EventBus
from blockchat.events import EventType
from blockchat.schemas.ws_messages import PingMessage
from blockchat.schemas.ws_messages import parse_inbound
from blockchat.websocket.connection import Connection
from blockchat.websocket.handlers import MessageRouter
from blockchat.websocket.registry import ConnectionRegistry

logger = logging.getLogger(__name__)

# Prefix of unparseable frames included in the log line.
_RAW_LOG_LIMIT = 200


class LifecycleState(str, Enum):
    UNREGISTERED = "unregistered"
    REGISTERED = "registered"
    CLOSED = "closed"


class ConnectionLifecycle:
    """Wires one connection's inbound events to the router and registry."""

    def __init__(
        self,
        connection: Connection,
        registry: ConnectionRegistry,
        router: MessageRouter,
        event_bus: EventBus,
    ):
        self.connection = connection
        self.registry = registry
        self.router = router
        self.event_bus = event_bus
        self.identity: Optional[str] = None
        self._state = LifecycleState.UNREGISTERED

    @property
    def state(self) -> LifecycleState:
        return self._state

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    async def on_accept(self) -> None:
        """Liveness/handshake probe; clients do not answer it."""
        await self.connection.send(PingMessage().to_wire())

    async def on_text(self, raw: str) -> None:
        """Parse one frame and hand it to the router."""
        if self._state is LifecycleState.CLOSED:
            return

        try:
            envelope = parse_inbound(json.loads(raw))
        except ValueError as e:
            logger.error("Message processing error: %s", e)
            logger.error("Raw data: %s", raw[:_RAW_LOG_LIMIT])
            return

        try:
            identity = await self.router.route(envelope, self.identity, self.connection)
        except Exception as e:
            logger.error("Message processing error for %s: %s", self.connection.client_id, e)
            return

        if identity is not None:
            self.identity = identity
            self._state = LifecycleState.REGISTERED

    async def on_close(self) -> None:
        """Clean close: release the identity and announce new stats."""
        if self._state is LifecycleState.CLOSED:
            return

        identity = self._teardown()
        if identity is None:
            logger.info("Unregistered client disconnected")
            return

        self.registry.unbind(identity, self.connection)
        logger.info("Client disconnected: %s", identity)
        logger.info("Remaining clients: %s", self.registry.size())
        await self.event_bus.publish(
            EventType.REGISTRY_CHANGED,
            {"reason": "disconnect", "address": identity, "connected": self.registry.size()},
        )

    async def on_error(self, exc: BaseException) -> None:
        """Abrupt failure: release the identity without a stats broadcast.

        Stats self-correct at the next sweep or registry mutation.
        """
        if self._state is LifecycleState.CLOSED:
            return

        logger.error("WebSocket error for %s: %s", self.connection.client_id, exc)
        identity = self._teardown()
        if identity is not None:
            self.registry.unbind(identity, self.connection)

    def _teardown(self) -> Optional[str]:
        identity = self.identity if self._state is LifecycleState.REGISTERED else None
        self._state = LifecycleState.CLOSED
        self.connection.mark_closed()
        return identity

    # ------------------------------------------------------------------
    # Driver
    # ------------------------------------------------------------------

    async def _receive_text(self) -> str:
        message = await self.connection.websocket.receive()
        if message["type"] == "websocket.disconnect":
            raise WebSocketDisconnect(message.get("code", 1000), message.get("reason"))

        text = message.get("text")
        if text is None and message.get("bytes") is not None:
            text = message["bytes"].decode("utf-8", errors="replace")
        return text or ""

    async def run(self) -> None:
        """Drive the connection until it closes.  Never raises."""
        await self.on_accept()
        try:
            while True:
                raw = await self._receive_text()
                await self.on_text(raw)
        except WebSocketDisconnect:
            await self.on_close()
        except Exception as e:
            await self.on_error(e)


__all__ = ["ConnectionLifecycle", "LifecycleState"]
