"""Health endpoint (public, read-only)."""

from typing import Any
from typing import Dict

from fastapi import APIRouter
from fastapi import Depends
from fastapi import status

from blockchat.constants import HEALTH_PATH
from blockchat.dependencies import get_relay
from blockchat.relay import Relay

router = APIRouter(tags=["system"])


@router.get(HEALTH_PATH, status_code=status.HTTP_200_OK)
def health(relay: Relay = Depends(get_relay)) -> Dict[str, Any]:
    """Readiness probe with the registered-client count and relay uptime."""

    return {
        "status": "ok",
        "connectedClients": relay.registry.size(),
        "uptime": relay.uptime,
    }
