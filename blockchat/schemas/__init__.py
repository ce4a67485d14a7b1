"""Pydantic models for the WebSocket protocol."""
