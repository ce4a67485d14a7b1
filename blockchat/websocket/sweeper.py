"""Periodic eviction of stale registry entries.

Sockets that drop at the network level do not always produce a clean close
event; the sweeper is the backstop that reclaims their registry entries.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from blockchat import metrics
from blockchat.events import EventBus
from blockchat.events import EventType
from blockchat.websocket.registry import ConnectionRegistry

logger = logging.getLogger(__name__)

DEFAULT_SWEEP_INTERVAL = 30.0


class LivenessSweeper:
    """Runs :meth:`ConnectionRegistry.sweep` on a fixed interval."""

    def __init__(
        self,
        registry: ConnectionRegistry,
        event_bus: EventBus,
        interval: float = DEFAULT_SWEEP_INTERVAL,
    ):
        self.registry = registry
        self.event_bus = event_bus
        self.interval = interval
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def tick(self) -> int:
        """One sweep pass; announces new stats when anything was removed."""
        removed = self.registry.sweep()
        if removed > 0:
            metrics.swept_connections_total.inc(removed)
            logger.info("Cleaned up %s dead connections", removed)
            await self.event_bus.publish(
                EventType.REGISTRY_CHANGED,
                {"reason": "sweep", "removed": removed, "connected": self.registry.size()},
            )
        return removed

    def start(self) -> None:
        """Start the background loop on the running event loop (idempotent)."""
        if self.running:
            return
        self._task = asyncio.create_task(self._sweep_loop())

    async def stop(self) -> None:
        """Cancel the background loop and wait for it to finish."""
        if self._task is None:
            return
        if not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None

    async def _sweep_loop(self) -> None:
        try:
            while True:
                await asyncio.sleep(self.interval)
                try:
                    await self.tick()
                except Exception as e:
                    logger.error("Liveness sweep failed: %s", e)
        except asyncio.CancelledError:  # graceful shutdown
            logger.info("Liveness sweeper cancelled")
            raise


__all__ = ["LivenessSweeper", "DEFAULT_SWEEP_INTERVAL"]
