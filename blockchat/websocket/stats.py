"""Fan-out of the connected-client count."""

from __future__ import annotations

import logging
from typing import Any
from typing import Dict
from typing import Optional

from blockchat.events import EventBus
from blockchat.events import EventType
from blockchat.schemas.ws_messages import ServerStatsMessage
from blockchat.websocket.registry import ConnectionRegistry

logger = logging.getLogger(__name__)


class StatsBroadcaster:
    """Sends ``server-stats`` to every open connection on registry changes."""

    def __init__(self, registry: ConnectionRegistry, event_bus: Optional[EventBus] = None):
        self.registry = registry
        self.event_bus = event_bus
        if event_bus is not None:
            event_bus.subscribe(EventType.REGISTRY_CHANGED, self._handle_registry_changed)

    async def broadcast(self) -> int:
        """Send the current snapshot to every open handle.

        Returns:
            Number of handles the frame was queued for.
        """
        stats = ServerStatsMessage(connected_clients=self.registry.size()).to_wire()

        delivered = 0
        for _key, conn in self.registry.snapshot():
            if not conn.is_open:
                continue
            # Connection.send only queues; it never waits on the peer.
            if await conn.send(stats):
                delivered += 1

        logger.debug("Broadcast server-stats (%s clients) to %s connections", stats["connectedClients"], delivered)
        return delivered

    async def _handle_registry_changed(self, data: Dict[str, Any]) -> None:
        await self.broadcast()

    def detach(self) -> None:
        """Stop listening for registry changes."""
        if self.event_bus is not None:
            self.event_bus.unsubscribe(EventType.REGISTRY_CHANGED, self._handle_registry_changed)


__all__ = ["StatsBroadcaster"]
