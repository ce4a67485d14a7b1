"""Route paths and protocol constants shared across the relay."""

from typing import Final

# WebSocket endpoint.  Legacy clients connect to the bare host, so the
# endpoint is mounted at "/" as well.
WS_ENDPOINT: Final[str] = "/ws"

HEALTH_PATH: Final[str] = "/health"
UPLOAD_PATH: Final[str] = "/upload"
UPLOADS_MOUNT: Final[str] = "/uploads"
METRICS_PATH: Final[str] = "/metrics"

# Envelope kinds that earn the sender a ``message-delivered`` receipt.
CONTENT_MESSAGE_TYPES: Final[frozenset[str]] = frozenset({"message", "media", "voice"})

DELIVERY_FAILED_REASON: Final[str] = "Recipient not connected"

# Close code sent to sockets that arrive while the relay is shutting down.
CLOSE_GOING_AWAY: Final[int] = 1001
