"""Message routing between registered wallets.

Routing is at-most-once and fire-and-forget: there is no queue, so an
offline recipient never sees a message sent while it was away.  The sender
only hears about a failed delivery when it is itself a registered peer,
which keeps ephemeral connections from being spammed with failure notices.
"""

from __future__ import annotations

import logging
from typing import Any
from typing import Optional
from typing import Union

from blockchat import metrics
from blockchat.constants import CONTENT_MESSAGE_TYPES
from blockchat.constants import DELIVERY_FAILED_REASON
from blockchat.events import EventBus
from blockchat.events import EventType
from blockchat.schemas.ws_messages import AckMessage
from blockchat.schemas.ws_messages import DeliveryFailedMessage
from blockchat.schemas.ws_messages import ErrorMessage
from blockchat.schemas.ws_messages import MessageDeliveredMessage
from blockchat.schemas.ws_messages import RegisteredMessage
from blockchat.schemas.ws_messages import RegisterMessage
from blockchat.schemas.ws_messages import RoutedMessage
from blockchat.utils.address import normalize_address
from blockchat.utils.address import short_address
from blockchat.websocket.connection import Connection
from blockchat.websocket.registry import ConnectionRegistry

logger = logging.getLogger(__name__)

# Message types tracked individually in metrics; anything else is "other".
_METRIC_TYPES = CONTENT_MESSAGE_TYPES | {"typing", "read", "call-offer", "call-answer", "ice-candidate"}


def _is_content_type(message_type: Any) -> bool:
    return isinstance(message_type, str) and message_type in CONTENT_MESSAGE_TYPES


def _metric_label(message_type: Any) -> str:
    if isinstance(message_type, str) and message_type in _METRIC_TYPES:
        return message_type
    return "other"


class MessageRouter:
    """Dispatches inbound envelopes for one relay."""

    def __init__(self, registry: ConnectionRegistry, event_bus: EventBus):
        self.registry = registry
        self.event_bus = event_bus

    async def route(
        self,
        envelope: Union[RegisterMessage, RoutedMessage],
        sender_key: Optional[str],
        sender: Connection,
    ) -> Optional[str]:
        """Handle one envelope from *sender*.

        Args:
            envelope: Parsed inbound frame
            sender_key: Identity the sending connection is registered under,
                or ``None`` while it is unregistered
            sender: The sending connection

        Returns:
            The sender's identity after this envelope: the new key after a
            successful registration, otherwise *sender_key* unchanged.
        """
        if isinstance(envelope, RegisterMessage):
            return await self.handle_register(envelope, sender_key, sender)

        await self.handle_routed(envelope, sender_key, sender)
        return sender_key

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    async def handle_register(
        self,
        envelope: RegisterMessage,
        sender_key: Optional[str],
        sender: Connection,
    ) -> Optional[str]:
        raw_address = envelope.raw_address
        if not raw_address:
            logger.error("Registration failed: no address provided")
            await sender.send(ErrorMessage(message="No wallet address provided").to_wire())
            return sender_key

        key = normalize_address(raw_address)
        if key is None:
            logger.error("Registration failed: invalid address format")
            await sender.send(ErrorMessage(message="Invalid wallet address format").to_wire())
            return sender_key

        # A connection holds a single identity; re-registering under a new key
        # releases the old one.
        if sender_key is not None and sender_key != key:
            if self.registry.unbind(sender_key, sender):
                logger.info("Released previous identity %s for %s", short_address(sender_key), sender.client_id)

        self.registry.bind(key, sender)
        metrics.registrations_total.inc()

        logger.info("Registered wallet: %s", key)
        logger.info("Total connected clients: %s", self.registry.size())

        await sender.send(RegisteredMessage(address=key).to_wire())
        await sender.send(AckMessage(address=key).to_wire())

        await self.event_bus.publish(
            EventType.REGISTRY_CHANGED,
            {"reason": "register", "address": key, "connected": self.registry.size()},
        )
        return key

    # ------------------------------------------------------------------
    # Peer-to-peer delivery
    # ------------------------------------------------------------------

    async def handle_routed(
        self,
        envelope: RoutedMessage,
        sender_key: Optional[str],
        sender: Connection,
    ) -> None:
        from_key = normalize_address(envelope.from_)
        to_key = normalize_address(envelope.to)

        if from_key is None or to_key is None:
            logger.warning("Message missing from/to addresses: %s", envelope.type)
            return

        logger.info(
            "Routing message type=%s from=%s to=%s",
            envelope.type,
            short_address(from_key),
            short_address(to_key),
        )

        recipient = self.registry.lookup(to_key)
        if recipient is None or not recipient.is_open:
            logger.warning("Recipient not connected: %s", to_key)
            metrics.delivery_failed_total.inc()

            if sender_key is not None and from_key in self.registry:
                failure = DeliveryFailedMessage(original_message=envelope.raw, reason=DELIVERY_FAILED_REASON)
                await sender.send(failure.to_wire())
            return

        if not await recipient.send(envelope.raw):
            logger.error("Failed to queue message %s for %s", envelope.type, short_address(to_key))
            return

        metrics.messages_routed_total.labels(type=_metric_label(envelope.type)).inc()
        logger.info(
            "Message delivered: %s from %s to %s",
            envelope.type,
            short_address(from_key),
            short_address(to_key),
        )

        if _is_content_type(envelope.type):
            echoed = {"message_id": envelope.message_id} if "message_id" in envelope.model_fields_set else {}
            receipt = MessageDeliveredMessage(to=to_key, **echoed)
            await sender.send(receipt.to_wire())


__all__ = ["MessageRouter"]
