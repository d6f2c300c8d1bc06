"""
POST /auth — web dashboard login.

Request body
------------
``password`` : the configured ``WEB_PASSWORD``.

Responses
---------
- **200** — ``{"success": true, "token": "<WEB_ACCESS_TOKEN>"}``
- **401** — ``{"success": false, "message": "Invalid password"}``
"""

import logging
import secrets

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from device_relay.api.deps import get_settings
from device_relay.config import Settings

logger = logging.getLogger(__name__)

router = APIRouter()


class AuthRequest(BaseModel):
    password: str = ""


class AuthResponse(BaseModel):
    success: bool
    token: str


def _password_matches(candidate: str, expected: str) -> bool:
    return secrets.compare_digest(candidate.encode("utf-8"), expected.encode("utf-8"))


@router.post("/auth", response_model=AuthResponse)
@router.post("/api/auth", response_model=AuthResponse, include_in_schema=False)
def login(body: AuthRequest, settings: Settings = Depends(get_settings)):
    if not _password_matches(body.password, settings.web_password):
        logger.warning("Rejected web login: invalid password")
        return JSONResponse(
            status_code=401,
            content={"success": False, "message": "Invalid password"},
        )

    logger.info("Web login accepted")
    return AuthResponse(success=True, token=settings.web_access_token)
