import os

# Must be set before anything reads the settings.
os.environ["TESTING"] = "1"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from blockchat.config import Settings  # noqa: E402
from blockchat.events import EventBus  # noqa: E402
from blockchat.main import create_app  # noqa: E402
from blockchat.websocket.connection import Connection  # noqa: E402
from blockchat.websocket.handlers import MessageRouter  # noqa: E402
from blockchat.websocket.registry import ConnectionRegistry  # noqa: E402
from blockchat.websocket.stats import StatsBroadcaster  # noqa: E402
from tests.helpers.fake_websocket import FakeWebSocket  # noqa: E402


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Settings isolated to a temporary uploads directory."""
    return Settings(
        testing=True,
        environment="test",
        log_level="INFO",
        host="127.0.0.1",
        port=3001,
        allowed_cors_origins="*",
        uploads_dir=tmp_path / "uploads",
        max_upload_bytes=1024,
        sweep_interval_seconds=3600,
    )


@pytest.fixture
def app(test_settings):
    return create_app(test_settings)


@pytest.fixture
def client(app):
    """TestClient with the lifespan running (relay started/stopped)."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def registry() -> ConnectionRegistry:
    return ConnectionRegistry()


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def router(registry, event_bus) -> MessageRouter:
    return MessageRouter(registry, event_bus)


@pytest.fixture
def stats(registry, event_bus) -> StatsBroadcaster:
    return StatsBroadcaster(registry, event_bus)


@pytest.fixture
def make_connection():
    """Factory for handles around already-accepted fake sockets.

    ``make_connection.wrap(ws)`` builds a handle around a custom socket.
    """

    def _make(queue_size: int = Connection.QUEUE_SIZE, **kwargs) -> Connection:
        return Connection(FakeWebSocket.connected(**kwargs), queue_size=queue_size)

    def _wrap(websocket, queue_size: int = Connection.QUEUE_SIZE) -> Connection:
        return Connection(websocket, queue_size=queue_size)

    _make.wrap = _wrap
    return _make
