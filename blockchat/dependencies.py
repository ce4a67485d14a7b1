"""FastAPI dependencies exposing the app-owned relay and settings."""

from fastapi import Request
from fastapi import WebSocket

from blockchat.config import Settings
from blockchat.relay import Relay


def get_relay(request: Request) -> Relay:
    """Relay attached to the application by the lifespan handler."""
    return request.app.state.relay


def get_ws_relay(websocket: WebSocket) -> Relay:
    return websocket.app.state.relay


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


__all__ = ["get_relay", "get_ws_relay", "get_app_settings"]
