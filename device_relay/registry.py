"""
Connection registry for the relay.

Tracks at most one device connection and any number of observer connections,
and fans device traffic out to every open observer.

Concurrency
-----------
All mutations (``set_device``, ``add_observer``, ``remove``, ``close_all``)
are serialized by a single ``asyncio.Lock``.  Broadcasts take a snapshot of
the observer set under the lock and send outside it, so a concurrent
disconnect never invalidates an in-progress broadcast and a slow observer
never blocks registry mutations.
"""

import asyncio
import enum
import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from fastapi.websockets import WebSocketState

logger = logging.getLogger(__name__)

# Close code sent to a device connection that is replaced by a newer one.
REPLACED_CLOSE_CODE: int = 4000


class Role(enum.Enum):
    UNASSIGNED = "unassigned"
    DEVICE = "device"
    OBSERVER = "observer"


@dataclass(eq=False)
class Connection:
    """One accepted WebSocket and the role it has claimed."""

    websocket: Any
    remote: str = ""
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    connected_at: datetime = field(default_factory=datetime.now)
    role: Role = Role.UNASSIGNED
    closed: bool = False

    def assign(self, role: Role) -> None:
        """Move out of UNASSIGNED.  Roles are write-once."""
        if self.role is not Role.UNASSIGNED:
            raise ValueError(f"connection {self.id} already has role {self.role.value}")
        self.role = role

    @property
    def is_open(self) -> bool:
        return (
            not self.closed
            and self.websocket.client_state == WebSocketState.CONNECTED
            and self.websocket.application_state == WebSocketState.CONNECTED
        )

    async def send_text(self, text: str) -> None:
        await self.websocket.send_text(text)

    async def send_json(self, payload: dict[str, Any]) -> None:
        await self.send_text(json.dumps(payload))

    async def close(self, code: int = 1000, reason: str | None = None) -> None:
        """Close the underlying socket once; later calls are no-ops."""
        if self.closed:
            return
        self.closed = True
        try:
            await self.websocket.close(code=code, reason=reason)
        except Exception as exc:
            logger.debug("Close of %s failed: %s", self, exc)

    def __str__(self) -> str:
        return f"{self.role.value}:{self.id}@{self.remote or '?'}"


def _serialize(message: dict[str, Any] | str) -> str:
    return message if isinstance(message, str) else json.dumps(message)


class ConnectionRegistry:
    """Holds the device slot and the observer set."""

    def __init__(self) -> None:
        self._device: Connection | None = None
        self._observers: set[Connection] = set()
        self._lock = asyncio.Lock()

    @property
    def device(self) -> Connection | None:
        return self._device

    @property
    def observer_count(self) -> int:
        return len(self._observers)

    def is_device_connected(self) -> bool:
        return self._device is not None and self._device.is_open

    async def set_device(self, conn: Connection) -> Connection | None:
        """
        Install *conn* as the device, evicting any previous occupant.

        The previous device is taken out of the slot and closed before *conn*
        is installed.  Returns the evicted connection, or ``None``.
        """
        async with self._lock:
            evicted = self._device
            if evicted is conn:
                return None
            self._observers.discard(conn)
            self._device = None
            if evicted is not None:
                logger.warning("Device already connected, replacing %s", evicted)
                await evicted.close(code=REPLACED_CLOSE_CODE, reason="replaced")
            self._device = conn
        logger.info("Device connected: %s", conn)
        return evicted

    async def add_observer(self, conn: Connection) -> None:
        async with self._lock:
            if self._device is conn:
                raise ValueError(f"{conn} is registered as the device")
            self._observers.add(conn)
        logger.info("Observer connected: %s (total: %d)", conn, len(self._observers))

    async def remove(self, conn: Connection) -> Role | None:
        """
        Remove *conn* from whichever slot holds it.

        Returns the role it was removed as, or ``None`` when it was not
        registered (already evicted, or never identified).
        """
        async with self._lock:
            if self._device is conn:
                self._device = None
                removed = Role.DEVICE
            elif conn in self._observers:
                self._observers.remove(conn)
                removed = Role.OBSERVER
            else:
                return None
        if removed is Role.DEVICE:
            logger.info("Device disconnected: %s", conn)
        else:
            logger.info(
                "Observer disconnected: %s (remaining: %d)",
                conn,
                len(self._observers),
            )
        return removed

    async def broadcast_to_observers(self, message: dict[str, Any] | str) -> int:
        """
        Send *message* to every open observer.

        Dicts are serialized once; strings are forwarded as-is.  Closed
        observers are skipped and a failed send does not stop the others.
        Returns the number of observers the message was handed to.
        """
        text = _serialize(message)

        async with self._lock:
            targets = [conn for conn in self._observers if conn.is_open]

        if not targets:
            return 0

        results = await asyncio.gather(
            *(conn.send_text(text) for conn in targets), return_exceptions=True
        )
        delivered = 0
        for conn, result in zip(targets, results):
            if isinstance(result, Exception):
                logger.warning("Failed to send to %s: %s", conn, result)
            else:
                delivered += 1
        return delivered

    async def send_to_device(self, message: dict[str, Any] | str) -> bool:
        """Send *message* to the device.  Returns ``False`` if none is open."""
        device = self._device
        if device is None or not device.is_open:
            return False
        await device.send_text(_serialize(message))
        return True

    async def close_all(self) -> None:
        """Close every registered connection and empty the registry."""
        async with self._lock:
            conns = list(self._observers)
            if self._device is not None:
                conns.append(self._device)
            self._device = None
            self._observers.clear()
        for conn in conns:
            await conn.close(code=1001, reason="server shutdown")
        if conns:
            logger.info("Closed %d connection(s)", len(conns))
