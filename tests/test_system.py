"""Tests for the health and metrics endpoints and app wiring."""

from fastapi.testclient import TestClient

from blockchat.main import create_app
from blockchat.websocket.connection import Connection


def test_health(client):
    resp = client.get("/health")

    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "ok"
    assert body["connectedClients"] == 0
    assert body["uptime"] >= 0


def test_metrics_exposes_relay_collectors(client):
    resp = client.get("/metrics")

    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/plain")
    for name in ("relay_connected_clients", "relay_registrations_total", "relay_delivery_failed_total"):
        assert name in resp.text


def test_cors_allows_any_origin_by_default(client):
    resp = client.get("/health", headers={"Origin": "https://wallet.example"})

    assert resp.headers["access-control-allow-origin"] == "*"


def test_send_queues_are_unbounded_under_testing(client):
    assert client.app.state.relay.queue_size == 0


def test_send_queues_are_capped_outside_testing(test_settings):
    test_settings.override(testing=False)

    with TestClient(create_app(test_settings)) as client:
        assert client.app.state.relay.queue_size == Connection.QUEUE_SIZE
