"""
Shared fixtures: an in-memory stand-in for a FastAPI WebSocket and isolated
relay applications.
"""

import json
from typing import Any

import pytest
from fastapi.websockets import WebSocketState

from device_relay.config import Settings
from device_relay.main import create_app
from device_relay.registry import Connection, ConnectionRegistry
from device_relay.routing import MessageRouter

DEVICE_TOKEN = "test-device-token"
WEB_PASSWORD = "test-password"


class FakeWebSocket:
    """Records everything sent to it; ``fail`` makes sends raise."""

    def __init__(self, fail: bool = False) -> None:
        self.sent: list[str] = []
        self.fail = fail
        self.client_state = WebSocketState.CONNECTED
        self.application_state = WebSocketState.CONNECTED
        self.close_code: int | None = None

    async def send_text(self, text: str) -> None:
        if self.fail:
            raise ConnectionResetError("peer gone")
        self.sent.append(text)

    async def close(self, code: int = 1000, reason: str | None = None) -> None:
        self.close_code = code
        self.application_state = WebSocketState.DISCONNECTED

    def drop(self) -> None:
        """Simulate the peer going away without a close handshake."""
        self.client_state = WebSocketState.DISCONNECTED

    @property
    def messages(self) -> list[dict[str, Any]]:
        return [json.loads(text) for text in self.sent]


def make_conn(**kwargs) -> Connection:
    return Connection(websocket=FakeWebSocket(**kwargs), remote="127.0.0.1:5000")


@pytest.fixture
def settings() -> Settings:
    return Settings(
        esp32_token=DEVICE_TOKEN,
        web_password=WEB_PASSWORD,
        web_access_token="granted",
        static_dir="does-not-exist",
    )


@pytest.fixture
def registry() -> ConnectionRegistry:
    return ConnectionRegistry()


@pytest.fixture
def message_router(registry, settings) -> MessageRouter:
    return MessageRouter(registry, settings)


@pytest.fixture
def relay_app(settings):
    return create_app(settings)
