"""Registry change notifications."""

from blockchat.events.event_bus import EventBus
from blockchat.events.event_bus import EventType

__all__ = ["EventBus", "EventType"]
