"""WebSocket routing module.

Every socket is handed to the app's :class:`~blockchat.relay.Relay`, which
drives it until it closes.
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi import Depends
from fastapi import WebSocket

from blockchat.constants import WS_ENDPOINT
from blockchat.dependencies import get_ws_relay
from blockchat.relay import Relay

router = APIRouter()


@router.websocket(WS_ENDPOINT)
@router.websocket("/")
async def websocket_endpoint(websocket: WebSocket, relay: Relay = Depends(get_ws_relay)):
    """Relay endpoint; also mounted at ``/`` for clients that dial the bare host."""
    await relay.handle(websocket)
