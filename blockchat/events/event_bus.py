"""In-process notifications about registry membership."""

import logging
from enum import Enum
from typing import Any
from typing import Awaitable
from typing import Callable
from typing import Dict
from typing import List

logger = logging.getLogger(__name__)

Listener = Callable[[Dict[str, Any]], Awaitable[None]]


class EventType(str, Enum):
    # A key was bound, released on close, or swept
    REGISTRY_CHANGED = "registry_changed"


class EventBus:
    """Awaits each listener in subscription order.

    One bus belongs to one :class:`~blockchat.relay.Relay`.  A listener that
    raises is logged and skipped.
    """

    def __init__(self):
        self._listeners: Dict[EventType, List[Listener]] = {}

    def subscribe(self, event_type: EventType, listener: Listener) -> None:
        listeners = self._listeners.setdefault(event_type, [])
        if listener not in listeners:
            listeners.append(listener)

    def unsubscribe(self, event_type: EventType, listener: Listener) -> None:
        listeners = self._listeners.get(event_type, [])
        if listener in listeners:
            listeners.remove(listener)

    def subscriber_count(self, event_type: EventType) -> int:
        return len(self._listeners.get(event_type, ()))

    async def publish(self, event_type: EventType, data: Dict[str, Any]) -> None:
        # Copy so listeners may unsubscribe while being notified.
        for listener in list(self._listeners.get(event_type, ())):
            try:
                await listener(data)
            except Exception as e:
                logger.error("Listener for %s failed: %s", event_type.value, e)
