"""Request dependencies for caller identification and route guards."""
from __future__ import annotations

import logging
import secrets

from fastapi import Header, HTTPException, status

from .config import settings

logger = logging.getLogger(__name__)


def _unauthorized() -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


async def get_current_user_id(x_user_id: str | None = Header(default=None)) -> str:
    """Authenticated user id forwarded by the auth proxy.

    Raises:
        HTTPException: 401 when no user is identified
    """
    if not x_user_id or not x_user_id.strip():
        raise _unauthorized()
    return x_user_id.strip()


async def require_admin(x_admin_key: str | None = Header(default=None)) -> None:
    """Guard admin routes when an admin key is configured."""
    expected = settings.admin_api_key
    if not expected:
        return
    if not x_admin_key or not secrets.compare_digest(x_admin_key, expected):
        logger.warning("Rejected admin request with missing or bad key")
        raise _unauthorized()


async def verify_cron_secret(authorization: str | None = Header(default=None)) -> None:
    """Require ``Authorization: Bearer <CRON_SECRET>``."""
    secret = settings.cron_secret
    if not secret:
        logger.error("CRON_SECRET not configured")
        raise _unauthorized()
    if not authorization or not secrets.compare_digest(authorization, f"Bearer {secret}"):
        raise _unauthorized()
