"""
Device Relay — FastAPI application entry point.

Run with:
    uvicorn device_relay.main:app --host 0.0.0.0 --port 3000
or:
    device-relay
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from device_relay.api.routes import auth as auth_router
from device_relay.api.routes import command as command_router
from device_relay.api.routes import status as status_router
from device_relay.api.routes import websocket as websocket_router
from device_relay.config import Settings, settings
from device_relay.registry import ConnectionRegistry
from device_relay.routing import MessageRouter

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

logger = logging.getLogger(__name__)


class _HealthCheckNoiseFilter(logging.Filter):
    """Drop uvicorn access-log lines for the health endpoint.

    Hosting platforms and uptime monitors poll /health every few seconds,
    which buries the connection events worth reading.
    """

    _PATHS = frozenset(["/health", "/api/health"])

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name != "uvicorn.access":
            return True
        args = record.args
        # uvicorn passes (client, method, path, http_version, status)
        if isinstance(args, tuple) and len(args) >= 3:
            return args[2] not in self._PATHS
        return True


_health_filter = _HealthCheckNoiseFilter()


def _mask(secret: str) -> str:
    if len(secret) <= 4:
        return "*" * len(secret)
    return secret[:2] + "*" * (len(secret) - 4) + secret[-2:]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Log the startup banner; close every relay connection on shutdown."""
    # uvicorn.access does not propagate to root, so filter the logger itself.
    logging.getLogger("uvicorn.access").addFilter(_health_filter)

    cfg: Settings = app.state.settings
    logger.info("Device relay running")
    logger.info("HTTP server: http://%s:%d", cfg.host, cfg.port)
    logger.info("WebSocket server: ws://%s:%d/ws", cfg.host, cfg.port)
    logger.info("Device token: %s", _mask(cfg.esp32_token))
    logger.info("Web password: %s", _mask(cfg.web_password))
    try:
        yield
    finally:
        await app.state.registry.close_all()
        logger.info("Device relay stopped")


def create_app(app_settings: Settings | None = None) -> FastAPI:
    """Build the relay application with its own registry."""
    app_settings = app_settings or settings

    app = FastAPI(
        title="Device Relay",
        description="WebSocket relay between one device and its observers.",
        version="0.1.0",
        lifespan=lifespan,
    )

    registry = ConnectionRegistry()
    app.state.settings = app_settings
    app.state.registry = registry
    app.state.message_router = MessageRouter(registry, app_settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Routers ──────────────────────────────────────────────────────────────
    app.include_router(status_router.router, tags=["health"])
    app.include_router(auth_router.router, tags=["auth"])
    app.include_router(command_router.router, tags=["command"])
    app.include_router(websocket_router.router, tags=["websocket"])

    # Mounted last so API and WebSocket routes take precedence over "/".
    static_dir = Path(app_settings.static_dir)
    if static_dir.is_dir():
        app.mount("/", StaticFiles(directory=static_dir, html=True), name="static")
        logger.info("Serving static files from %s", static_dir.resolve())

    return app


app = create_app()


def run() -> None:
    uvicorn.run(app, host=settings.host, port=settings.port)
