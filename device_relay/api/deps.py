"""
Shared FastAPI dependencies.

The registry, router and settings live on ``app.state`` (set up by
``create_app``) so every HTTP route and WebSocket handler in one application
shares the same instances, while tests can build isolated applications.
"""

from fastapi.requests import HTTPConnection

from device_relay.config import Settings
from device_relay.registry import ConnectionRegistry
from device_relay.routing import MessageRouter


def get_settings(connection: HTTPConnection) -> Settings:
    return connection.app.state.settings


def get_registry(connection: HTTPConnection) -> ConnectionRegistry:
    return connection.app.state.registry


def get_message_router(connection: HTTPConnection) -> MessageRouter:
    return connection.app.state.message_router
