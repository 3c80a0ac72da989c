"""Signup and contact form notifications."""
from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, status

from ..config import settings
from ..notifications import (
    create_contact_form_notification,
    create_new_user_notification,
    send_discord_notification,
)
from ..schemas import ContactRequest, NotifyRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["notifications"])

NOTIFICATION_BUILDERS = {
    "new_user": create_new_user_notification,
}


def _require_webhook() -> None:
    if not settings.discord.webhook_url:
        logger.error("Discord webhook URL not configured")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Discord webhook not configured",
        )


@router.post("/notify-discord")
async def notify_discord(request: NotifyRequest) -> dict:
    _require_webhook()

    builder = NOTIFICATION_BUILDERS.get(request.type)
    if builder is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid notification type")

    if not await send_discord_notification(builder(request.email)):
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to send notification",
        )
    return {"message": "Notification sent successfully"}


@router.post("/contact")
async def contact(request: ContactRequest) -> dict:
    """Forward a contact form message to the team channel."""
    _require_webhook()

    payload = create_contact_form_notification(request.name, request.email, request.subject, request.message)
    if not await send_discord_notification(payload):
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to send message",
        )
    logger.info("Forwarded contact form message")
    return {"message": "Message sent successfully"}
