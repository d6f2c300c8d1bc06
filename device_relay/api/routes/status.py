"""
GET /health — relay liveness and connection counts.
"""

import logging
import time

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from device_relay.api.deps import get_registry
from device_relay.registry import ConnectionRegistry

router = APIRouter()
logger = logging.getLogger(__name__)

_STARTED_AT: float = time.monotonic()


class HealthResponse(BaseModel):
    status: str
    deviceConnected: bool
    observerCount: int
    uptimeSeconds: float


def uptime_seconds() -> float:
    return round(time.monotonic() - _STARTED_AT, 3)


@router.get("/health", response_model=HealthResponse)
@router.get("/api/health", response_model=HealthResponse, include_in_schema=False)
def get_health(registry: ConnectionRegistry = Depends(get_registry)) -> HealthResponse:
    """
    Returns relay status.

    - **status**: always ``"online"`` while the process is serving requests.
    - **deviceConnected**: ``true`` if a device holds an open connection.
    - **observerCount**: number of registered observer connections.
    - **uptimeSeconds**: seconds since the process started.
    """
    return HealthResponse(
        status="online",
        deviceConnected=registry.is_device_connected(),
        observerCount=registry.observer_count,
        uptimeSeconds=uptime_seconds(),
    )
