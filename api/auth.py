"""
API Authentication for SlotKeeper.

Single shared token taken from SLOTKEEPER_API_TOKEN. Without it, auth is
disabled (development mode) and a warning is logged per request.

Token extraction order:
1. Authorization: Bearer <token> header
2. X-API-Token header

Usage:
    from api.auth import require_auth

    router = APIRouter(dependencies=[Depends(require_auth)])
"""

import logging
import os
import secrets

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

logger = logging.getLogger(__name__)

ENV_API_TOKEN = "SLOTKEEPER_API_TOKEN"

# Security scheme for OpenAPI docs
security = HTTPBearer(auto_error=False)


def _get_token_from_request(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:]
    return request.headers.get("X-API-Token") or None


async def require_auth(
    request: Request, credentials: HTTPAuthorizationCredentials | None = Depends(security)
) -> str:
    """
    Dependency that requires a valid token when one is configured.

    Raises HTTPException 401 on a missing or wrong token.
    """
    expected_token = os.environ.get(ENV_API_TOKEN)
    if not expected_token:
        logger.warning(f"{ENV_API_TOKEN} not set - authentication disabled!")
        return "auth_disabled"

    provided_token = _get_token_from_request(request)
    if not provided_token:
        logger.warning(f"Auth failed: no token provided for {request.url.path}")
        raise HTTPException(
            status_code=401,
            detail="Authentication required. Provide Bearer token in Authorization header.",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not secrets.compare_digest(provided_token, expected_token):
        logger.warning(f"Auth failed: invalid token for {request.url.path}")
        raise HTTPException(
            status_code=401,
            detail="Invalid authentication token.",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return provided_token
