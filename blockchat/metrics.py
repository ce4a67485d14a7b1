"""Prometheus metrics for the relay.

All collectors live in one module so registration happens exactly once per
process.  Components simply ``from blockchat.metrics import …`` and
increment.
"""

from __future__ import annotations

from prometheus_client import Counter
from prometheus_client import Gauge

messages_routed_total = Counter(
    "relay_messages_routed_total",
    "Envelopes forwarded to an online recipient",
    labelnames=("type",),
)

delivery_failed_total = Counter(
    "relay_delivery_failed_total",
    "Envelopes whose recipient was not connected",
)

registrations_total = Counter(
    "relay_registrations_total",
    "Successful wallet registrations",
)

swept_connections_total = Counter(
    "relay_swept_connections_total",
    "Stale registry entries removed by the liveness sweeper",
)

uploads_total = Counter(
    "relay_uploads_total",
    "Files accepted by the upload endpoint",
)

connected_clients = Gauge(
    "relay_connected_clients",
    "Registered connections currently in the registry",
)


__all__ = [
    "messages_routed_total",
    "delivery_failed_total",
    "registrations_total",
    "swept_connections_total",
    "uploads_total",
    "connected_clients",
]
