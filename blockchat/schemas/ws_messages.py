"""WebSocket protocol messages.

Inbound frames are parsed into a tagged union: :class:`RegisterMessage` for
``type == "register"`` and :class:`RoutedMessage` for everything else.  The
routed variant is deliberately open (extra fields allowed, no type checks on
``from``/``to``) because clients invent new message kinds faster than the
relay learns about them; all the relay needs is something to route on.

Outbound frames are individual models whose :meth:`to_wire` output is the
exact JSON object sent to the client.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated
from typing import Any
from typing import Dict
from typing import Literal
from typing import Optional
from typing import Union

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Discriminator
from pydantic import Field
from pydantic import PrivateAttr
from pydantic import Tag
from pydantic import TypeAdapter

from blockchat.utils.time import epoch_ms


class MessageType(str, Enum):
    """Envelope ``type`` values the relay itself produces or interprets."""

    # Connection / identity
    PING = "ping"
    REGISTER = "register"
    REGISTERED = "registered"
    ACK = "ack"
    ERROR = "error"

    # Content kinds that earn a delivery receipt
    MESSAGE = "message"
    MEDIA = "media"
    VOICE = "voice"

    # Delivery feedback
    MESSAGE_DELIVERED = "message-delivered"
    DELIVERY_FAILED = "delivery-failed"

    # Broadcasts
    SERVER_STATS = "server-stats"


# ---------------------------------------------------------------------------
# Outbound (server → client)
# ---------------------------------------------------------------------------


class OutboundMessage(BaseModel):
    """Base class for frames the relay sends."""

    model_config = ConfigDict(populate_by_name=True)

    type: str

    def to_wire(self) -> Dict[str, Any]:
        """JSON-ready dict using the camelCase wire names."""
        return self.model_dump(by_alias=True)


class PingMessage(OutboundMessage):
    """Sent once right after a connection is accepted."""

    type: Literal["ping"] = MessageType.PING.value
    timestamp: int = Field(default_factory=epoch_ms)


class RegisteredMessage(OutboundMessage):
    type: Literal["registered"] = MessageType.REGISTERED.value
    address: str
    timestamp: int = Field(default_factory=epoch_ms)


class AckMessage(OutboundMessage):
    """Duplicate of :class:`RegisteredMessage` for clients that wait on ``ack``."""

    type: Literal["ack"] = MessageType.ACK.value
    address: str


class ErrorMessage(OutboundMessage):
    type: Literal["error"] = MessageType.ERROR.value
    message: str


class MessageDeliveredMessage(OutboundMessage):
    """Receipt sent to the sender after a content message was forwarded."""

    type: Literal["message-delivered"] = MessageType.MESSAGE_DELIVERED.value
    message_id: Any = Field(default=None, alias="messageId")
    to: str
    timestamp: int = Field(default_factory=epoch_ms)

    def to_wire(self) -> Dict[str, Any]:
        payload = super().to_wire()
        if "message_id" not in self.model_fields_set:
            # Omitted when the client sent none; an explicit null is echoed.
            payload.pop("messageId", None)
        return payload


class DeliveryFailedMessage(OutboundMessage):
    type: Literal["delivery-failed"] = MessageType.DELIVERY_FAILED.value
    original_message: Dict[str, Any] = Field(alias="originalMessage")
    reason: str
    timestamp: int = Field(default_factory=epoch_ms)


class ServerStatsMessage(OutboundMessage):
    type: Literal["server-stats"] = MessageType.SERVER_STATS.value
    connected_clients: int = Field(ge=0, alias="connectedClients")
    timestamp: int = Field(default_factory=epoch_ms)


# ---------------------------------------------------------------------------
# Inbound (client → server)
# ---------------------------------------------------------------------------


class InboundMessage(BaseModel):
    """Base class for parsed client frames; keeps the untouched payload."""

    # Wire names only: ``wallet_address`` or ``from_`` in a frame are plain
    # extra fields, not aliases.
    model_config = ConfigDict(extra="allow")

    _raw: Dict[str, Any] = PrivateAttr(default_factory=dict)

    @property
    def raw(self) -> Dict[str, Any]:
        """The payload exactly as the client sent it."""
        return self._raw


class RegisterMessage(InboundMessage):
    """``{type: "register", address | walletAddress}``."""

    type: Literal["register"]
    address: Any = None
    wallet_address: Any = Field(default=None, alias="walletAddress")

    @property
    def raw_address(self) -> Any:
        """First truthy value of ``address`` and ``walletAddress``."""
        return self.address or self.wallet_address or None


class RoutedMessage(InboundMessage):
    """Catch-all for every non-register frame.

    ``from``/``to`` are left untyped so that malformed values reach the
    router, which drops them after normalization fails.
    """

    type: Any = None
    from_: Any = Field(default=None, alias="from")
    to: Any = None
    message_id: Any = Field(default=None, alias="messageId")


def _inbound_kind(value: Any) -> str:
    kind = value.get("type") if isinstance(value, dict) else getattr(value, "type", None)
    return "register" if kind == MessageType.REGISTER.value else "routed"


Inbound = Annotated[
    Union[
        Annotated[RegisterMessage, Tag("register")],
        Annotated[RoutedMessage, Tag("routed")],
    ],
    Discriminator(_inbound_kind),
]

_INBOUND_ADAPTER: TypeAdapter[Union[RegisterMessage, RoutedMessage]] = TypeAdapter(Inbound)


def parse_inbound(payload: Any) -> Union[RegisterMessage, RoutedMessage]:
    """Validate a decoded JSON value into an inbound message.

    Raises:
        ValueError: *payload* is not a JSON object (pydantic's
            ``ValidationError`` is a ``ValueError`` subclass and is raised for
            schema problems).
    """

    if not isinstance(payload, dict):
        raise ValueError(f"Envelope must be a JSON object, got {type(payload).__name__}")

    message = _INBOUND_ADAPTER.validate_python(payload)
    message._raw = payload
    return message


__all__ = [
    "MessageType",
    "OutboundMessage",
    "PingMessage",
    "RegisteredMessage",
    "AckMessage",
    "ErrorMessage",
    "MessageDeliveredMessage",
    "DeliveryFailedMessage",
    "ServerStatsMessage",
    "InboundMessage",
    "RegisterMessage",
    "RoutedMessage",
    "parse_inbound",
]
