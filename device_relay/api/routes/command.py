"""
POST /command — push a command to the connected device over its WebSocket.

Request body
------------
``command`` : any JSON value; delivered to the device as
              ``{"type": "command", "data": <command>}``.

Responses
---------
- **200** — ``{"success": true, "message": "Command sent to device"}``
- **500** — the send to the device failed.
- **503** — no device is connected.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from device_relay.api.deps import get_registry
from device_relay.registry import ConnectionRegistry
from device_relay.routing import DEVICE_NOT_CONNECTED

logger = logging.getLogger(__name__)

router = APIRouter()


class CommandRequest(BaseModel):
    command: Any = None


class CommandResponse(BaseModel):
    success: bool
    message: str


@router.post("/command", response_model=CommandResponse)
@router.post("/api/command", response_model=CommandResponse, include_in_schema=False)
async def send_command(
    body: CommandRequest,
    registry: ConnectionRegistry = Depends(get_registry),
):
    try:
        sent = await registry.send_to_device({"type": "command", "data": body.command})
    except Exception as exc:
        logger.error("Failed to send command to device: %s", exc)
        return JSONResponse(
            status_code=500, content={"success": False, "message": str(exc)}
        )

    if not sent:
        return JSONResponse(
            status_code=503,
            content={"success": False, "message": DEVICE_NOT_CONNECTED},
        )

    logger.info("Command sent to device")
    return CommandResponse(success=True, message="Command sent to device")
