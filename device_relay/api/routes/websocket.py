"""
WebSocket endpoint shared by the device and its observers.

WebSocket / and /ws
-------------------
A connection is anonymous until it identifies itself with its first control
message.

Device
------
    {"type": "device_connect", "token": "<ESP32_TOKEN>"}

The relay answers ``{"type": "connected", ...}`` and tells every observer
``{"type": "esp32_status", "connected": true}``.  A wrong token is ignored.
Only one device is kept; a newer one closes the older (code 4000).

Observer
--------
    {"type": "observer_connect"}

The relay answers with the current ``esp32_status``.  From then on the
observer receives everything the device sends, and anything it sends is
forwarded to the device.

Usage
-----
    import websockets

    async with websockets.connect("ws://localhost:3000/ws") as ws:
        await ws.send(json.dumps({"type": "observer_connect"}))
        status = json.loads(await ws.recv())

        async for frame in ws:
            print(json.loads(frame))
"""

import logging

import anyio
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from device_relay.api.deps import get_message_router
from device_relay.registry import Connection
from device_relay.routing import MessageRouter

logger = logging.getLogger(__name__)
router = APIRouter()


def _remote_address(websocket: WebSocket) -> str:
    if websocket.client is None:
        return ""
    return f"{websocket.client.host}:{websocket.client.port}"


@router.websocket("/")
@router.websocket("/ws")
async def websocket_endpoint(
    websocket: WebSocket,
    message_router: MessageRouter = Depends(get_message_router),
) -> None:
    await websocket.accept()

    conn = Connection(websocket=websocket, remote=_remote_address(websocket))
    logger.info("New WebSocket connection from %s", conn.remote or "unknown")

    try:
        while True:
            frame = await websocket.receive()
            if frame["type"] == "websocket.disconnect":
                break

            if frame.get("text") is not None:
                raw = frame["text"]
            elif frame.get("bytes") is not None:
                try:
                    raw = frame["bytes"].decode("utf-8")
                except UnicodeDecodeError:
                    logger.warning("Non UTF-8 binary frame from %s", conn)
                    continue
            else:
                continue

            await message_router.handle_message(conn, raw)

    except WebSocketDisconnect:
        pass
    except Exception as exc:
        logger.error("WebSocket error on %s: %s", conn, exc)
    finally:
        # Cleanup must finish even when the handler task is being cancelled.
        with anyio.CancelScope(shield=True):
            await message_router.handle_close(conn)
