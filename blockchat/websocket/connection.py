"""Connection handle wrapping one accepted WebSocket."""

from __future__ import annotations

import asyncio
import logging
import uuid
from enum import Enum
from typing import Any
from typing import Dict
from typing import Optional

from starlette.websockets import WebSocket
from starlette.websockets import WebSocketState

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    """Readiness of a :class:`Connection`."""

    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


class Connection:
    """Exclusively-owned handle to one live duplex WebSocket.

    The handle is ``OPEN`` until someone asks it to close, the lifecycle marks
    it closed, or either side of the socket leaves the ``CONNECTED`` state.

    Outbound frames go through a per-connection queue drained by a writer
    task, so :meth:`send` never waits on the peer.  A peer that stops reading
    fills its own queue; on overflow (or any transport error) the handle is
    closed and its pending frames are dropped.
    """

    QUEUE_SIZE = 100  # Maximum pending frames per connection; 0 means unbounded

    def __init__(self, websocket: WebSocket, client_id: Optional[str] = None, queue_size: int = QUEUE_SIZE):
        self.websocket = websocket
        self.client_id = client_id or str(uuid.uuid4())
        self._close_requested = False
        self._closed = False
        self._close_task: Optional[asyncio.Task] = None
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._writer_task: Optional[asyncio.Task] = None

    def __repr__(self) -> str:
        return f"<Connection {self.client_id} {self.state.value}>"

    # ------------------------------------------------------------------
    # Readiness
    # ------------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        if self._closed:
            return ConnectionState.CLOSED
        if self._close_requested:
            return ConnectionState.CLOSING
        ws = self.websocket
        if ws.client_state != WebSocketState.CONNECTED or ws.application_state != WebSocketState.CONNECTED:
            return ConnectionState.CLOSED
        return ConnectionState.OPEN

    @property
    def is_open(self) -> bool:
        return self.state is ConnectionState.OPEN

    @property
    def close_requested(self) -> bool:
        return self._close_requested

    @property
    def pending(self) -> int:
        """Frames queued but not yet handed to the transport."""
        return self._queue.qsize()

    def mark_closed(self) -> None:
        """Record that the socket is gone (called once by the lifecycle)."""
        self._closed = True
        self.stop_writer()

    # ------------------------------------------------------------------
    # I/O
    # ------------------------------------------------------------------

    async def send(self, payload: Dict[str, Any]) -> bool:
        """Queue one JSON frame for the writer task.

        Returns:
            True when the frame was queued, False when the handle is not open
            or its queue is full.
        """
        if not self.is_open:
            logger.debug("Skipping send to %s (state=%s)", self.client_id, self.state.value)
            return False

        if self._writer_task is None:
            self._writer_task = asyncio.create_task(self._writer())

        try:
            self._queue.put_nowait(payload)
        except asyncio.QueueFull:
            logger.warning("Send queue full for client %s, closing", self.client_id)
            self._abandon()
            return False
        return True

    async def drain(self) -> None:
        """Wait until every queued frame was written or dropped."""
        await self._queue.join()

    def stop_writer(self) -> None:
        """Cancel the writer task and drop whatever is still queued."""
        task = self._writer_task
        if task is not None and not task.done():
            task.cancel()
        self._discard_pending()

    def request_close(self, code: int = 1000, reason: Optional[str] = None) -> None:
        """Ask the socket to close without waiting for the handshake.

        Idempotent.  The close runs as a background task on the running loop;
        any error it raises is ignored.
        """
        if self._close_requested or self._closed:
            return
        self._close_requested = True

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running loop, cannot schedule close for %s", self.client_id)
            return

        self._close_task = loop.create_task(self.close(code=code, reason=reason))

    async def close(self, code: int = 1000, reason: Optional[str] = None) -> None:
        """Stop the writer and close the socket, ignoring transport errors."""
        self._close_requested = True
        self.stop_writer()
        try:
            await self.websocket.close(code=code, reason=reason)
        except Exception as e:  # noqa: BLE001 – ignore errors during close
            logger.debug("Ignoring error while closing %s: %s", self.client_id, e)

    # ------------------------------------------------------------------
    # Writer
    # ------------------------------------------------------------------

    async def _writer(self) -> None:
        """Hand queued frames to the transport one at a time, in order."""
        try:
            while True:
                payload = await self._queue.get()
                try:
                    await self.websocket.send_json(payload)
                except Exception as e:
                    logger.error("Error sending to client %s: %s", self.client_id, e)
                    self._abandon()
                    return
                finally:
                    self._queue.task_done()
        except asyncio.CancelledError:
            logger.debug("Writer task for client %s cancelled", self.client_id)

    def _abandon(self) -> None:
        self._discard_pending()
        self.request_close()

    def _discard_pending(self) -> None:
        while True:
            try:
                self._queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            self._queue.task_done()


__all__ = ["Connection", "ConnectionState"]
