"""FastAPI application factory.

``create_app`` wires logging, CORS, the routers, the ``/uploads`` static mount
and a lifespan that owns the :class:`~blockchat.relay.Relay`.  Run it with
``uvicorn --factory blockchat.main:create_app`` or ``python -m blockchat``.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi import Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from blockchat.config import Settings
from blockchat.config import get_settings
from blockchat.constants import UPLOADS_MOUNT
from blockchat.relay import Relay
from blockchat.routers.metrics import router as metrics_router
from blockchat.routers.system import router as system_router
from blockchat.routers.uploads import router as uploads_router
from blockchat.routers.websocket import router as websocket_router
from blockchat.websocket.connection import Connection

logger = logging.getLogger(__name__)

# Per-message routing logs; far too chatty for production.
_NOISY_MODULES = ("blockchat.websocket.handlers", "blockchat.websocket.connection")


# --------------------------------------------------------------------------
# LOGGING CONFIGURATION:
# - Default log level: INFO
# - LOG_LEVEL env overrides it (e.g. LOG_LEVEL=WARNING for CI)
# - Routing chatter is suppressed to WARNING when ENVIRONMENT=production
# --------------------------------------------------------------------------
def configure_logging(settings: Settings) -> None:
    level = getattr(logging, settings.log_level.upper(), None)
    if not isinstance(level, int):
        level = logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s - %(name)s - %(message)s", handlers=[logging.StreamHandler()])

    if settings.environment == "production":
        for noisy in _NOISY_MODULES:
            logging.getLogger(noisy).setLevel(logging.WARNING)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the relay application."""

    settings = settings or get_settings()
    configure_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # The synchronous TestClient can outpace the writer tasks, so the
        # per-connection cap is lifted under TESTING.
        queue_size = 0 if settings.testing else Connection.QUEUE_SIZE
        relay = Relay(sweep_interval=settings.sweep_interval_seconds, queue_size=queue_size)
        app.state.relay = relay
        await relay.start()
        logger.info("BlockChat relay server running on port %s", settings.port)
        try:
            yield
        finally:
            await relay.shutdown()

    app = FastAPI(title="BlockChat Relay", lifespan=lifespan)
    app.state.settings = settings

    @app.exception_handler(Exception)
    async def unhandled_exception(request: Request, exc: Exception):
        logger.error("Unhandled exception: %s", exc, exc_info=True)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials="*" not in settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # StaticFiles refuses to mount a missing directory.
    settings.uploads_dir.mkdir(parents=True, exist_ok=True)
    app.mount(UPLOADS_MOUNT, StaticFiles(directory=str(settings.uploads_dir)), name="uploads")

    app.include_router(system_router)
    app.include_router(uploads_router)
    app.include_router(metrics_router)
    app.include_router(websocket_router)

    return app


__all__ = ["create_app", "configure_logging"]
