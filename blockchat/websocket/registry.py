"""Identity-keyed connection registry.

The registry is the single source of truth for "who is online": a mapping
from identity key to exactly one :class:`~blockchat.websocket.connection.Connection`.

Every method that touches the mapping is synchronous and never awaits, so
on the relay's single asyncio event loop each call runs to completion before
any other coroutine can observe it.  That is the registry's only
synchronization.  :meth:`close_all` awaits, but only over a snapshot.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict
from typing import List
from typing import Optional
from typing import Tuple

from blockchat import metrics
from blockchat.utils.address import short_address
from blockchat.websocket.connection import Connection

logger = logging.getLogger(__name__)


class ConnectionRegistry:
    """Mapping of identity key to its live connection."""

    def __init__(self):
        self._entries: Dict[str, Connection] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def _update_gauge(self) -> None:
        metrics.connected_clients.set(len(self._entries))

    def bind(self, key: str, connection: Connection) -> Optional[Connection]:
        """Bind *key* to *connection*, replacing any previous handle.

        A replaced handle gets a close request; failures while requesting it
        are ignored.

        Returns:
            The replaced handle, or ``None``.
        """
        previous = self._entries.get(key)
        if previous is connection:
            previous = None
        elif previous is not None:
            logger.info("Replacing existing connection for %s", short_address(key))
            try:
                previous.request_close()
            except Exception as e:  # noqa: BLE001 – best-effort
                logger.debug("Ignoring close failure for replaced connection: %s", e)

        self._entries[key] = connection
        self._update_gauge()
        return previous

    def lookup(self, key: str) -> Optional[Connection]:
        return self._entries.get(key)

    def unbind(self, key: str, connection: Optional[Connection] = None) -> bool:
        """Remove the entry for *key*.

        When *connection* is given the entry is only removed if it still
        points at that handle, so a replaced connection tearing down cannot
        evict its replacement.

        Returns:
            True when an entry was removed.
        """
        current = self._entries.get(key)
        if current is None:
            return False
        if connection is not None and current is not connection:
            return False

        del self._entries[key]
        self._update_gauge()
        return True

    def size(self) -> int:
        return len(self._entries)

    def sweep(self) -> int:
        """Drop every entry whose handle is not open; return how many."""
        stale = [key for key, conn in self._entries.items() if not conn.is_open]
        for key in stale:
            del self._entries[key]
        if stale:
            self._update_gauge()
        return len(stale)

    def snapshot(self) -> List[Tuple[str, Connection]]:
        """Point-in-time copy of the entries, safe to iterate across awaits."""
        return list(self._entries.items())

    async def close_all(self, code: int = 1000, reason: Optional[str] = None) -> int:
        """Close every registered socket; failures are ignored.

        Entries stay in place: each lifecycle releases its own key as its
        socket goes away.

        Returns:
            Number of handles a close was attempted on.
        """
        entries = self.snapshot()
        results = await asyncio.gather(
            *(conn.close(code=code, reason=reason) for _key, conn in entries),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, Exception):
                logger.debug("Ignoring close failure: %s", result)
        return len(entries)


__all__ = ["ConnectionRegistry"]
