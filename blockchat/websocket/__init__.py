"""WebSocket relay core: connection handles, registry, routing and liveness."""
