"""
Per-connection message routing.

Every connection starts ``UNASSIGNED``.  Its first role-claim message makes
it the device (``device_connect`` with the shared token) or an observer
(``observer_connect``).  After that:

- device   -> every open observer (raw text, unmodified)
- observer -> the device (raw text, unmodified), or an ``error`` reply when
  no device is connected
- unassigned -> dropped

Control messages
----------------
    {"type": "device_connect", "token": "<shared secret>"}
    {"type": "observer_connect"}

``esp32_connect`` and ``web_connect`` are accepted as aliases.

Replies and notifications
-------------------------
    {"type": "connected", "message": "..."}          to a newly accepted device
    {"type": "esp32_status", "connected": true}      to observers
    {"type": "error", "message": "device not connected"}
"""

import logging
import secrets
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError

from device_relay.config import Settings
from device_relay.registry import Connection, ConnectionRegistry, Role

logger = logging.getLogger(__name__)

DEVICE_CONNECT_TYPES = frozenset({"device_connect", "esp32_connect"})
OBSERVER_CONNECT_TYPES = frozenset({"observer_connect", "web_connect"})

DEVICE_NOT_CONNECTED = "device not connected"


class Envelope(BaseModel):
    """Minimal shape every inbound message must have.

    Only ``type`` is checked; every other field is carried through untouched.
    """

    model_config = ConfigDict(extra="allow")

    type: str

    def extra_field(self, name: str) -> Any:
        return (self.model_extra or {}).get(name)


def status_message(connected: bool) -> dict[str, Any]:
    return {"type": "esp32_status", "connected": connected}


def error_message(message: str) -> dict[str, Any]:
    return {"type": "error", "message": message}


class MessageRouter:
    def __init__(self, registry: ConnectionRegistry, settings: Settings) -> None:
        self.registry = registry
        self.settings = settings

    def _token_valid(self, token: Any) -> bool:
        if not isinstance(token, str) or not token:
            return False
        return secrets.compare_digest(
            token.encode("utf-8"), self.settings.esp32_token.encode("utf-8")
        )

    async def handle_message(self, conn: Connection, raw: str) -> None:
        """Route one inbound text frame from *conn*."""
        if conn.closed:
            logger.debug("Dropping message from closed %s", conn)
            return

        try:
            envelope = Envelope.model_validate_json(raw)
        except ValidationError as exc:
            logger.warning(
                "Malformed message from %s: %s", conn, exc.errors()[0]["msg"]
            )
            return

        if envelope.type in DEVICE_CONNECT_TYPES:
            await self._device_connect(conn, envelope)
        elif envelope.type in OBSERVER_CONNECT_TYPES:
            await self._observer_connect(conn)
        elif conn.role is Role.DEVICE:
            logger.debug("Device -> observers: %s", envelope.type)
            await self.registry.broadcast_to_observers(raw)
        elif conn.role is Role.OBSERVER:
            try:
                sent = await self.registry.send_to_device(raw)
            except Exception as exc:
                logger.warning("Failed to forward to device from %s: %s", conn, exc)
                sent = False
            if sent:
                logger.debug("Observer -> device: %s", envelope.type)
            else:
                await conn.send_json(error_message(DEVICE_NOT_CONNECTED))
        else:
            logger.debug("Dropping %r from unidentified %s", envelope.type, conn)

    async def _device_connect(self, conn: Connection, envelope: Envelope) -> None:
        if conn.role is not Role.UNASSIGNED:
            logger.warning("Ignoring device_connect from %s", conn)
            return
        if not self._token_valid(envelope.extra_field("token")):
            logger.warning("Invalid device token from %s", conn)
            return

        conn.assign(Role.DEVICE)
        await self.registry.set_device(conn)
        await self.registry.broadcast_to_observers(status_message(True))
        await conn.send_json(
            {"type": "connected", "message": "Device successfully connected to relay"}
        )

    async def _observer_connect(self, conn: Connection) -> None:
        if conn.role is Role.DEVICE:
            logger.warning("Ignoring observer_connect from %s", conn)
            return
        if conn.role is Role.UNASSIGNED:
            conn.assign(Role.OBSERVER)
            await self.registry.add_observer(conn)
        await conn.send_json(status_message(self.registry.is_device_connected()))

    async def handle_close(self, conn: Connection) -> None:
        """Drop *conn* from the registry and announce a device disconnect."""
        removed = await self.registry.remove(conn)
        if removed is Role.DEVICE:
            await self.registry.broadcast_to_observers(status_message(False))
