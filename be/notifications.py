"""Chat webhook notifications for signups and contact form messages."""
from __future__ import annotations

import logging
from typing import Any

import httpx

from .config import settings
from .models import utcnow

logger = logging.getLogger(__name__)

NEW_USER_COLOR = 0x00FF00
CONTACT_COLOR = 0x1FB8CD
MAX_MESSAGE_CHARS = 1000


def _timestamp() -> str:
    return utcnow().isoformat() + "Z"


def create_new_user_notification(email: str) -> dict[str, Any]:
    return {
        "embeds": [
            {
                "title": "🎉 New User Registration",
                "description": "A new user has signed up for Finance Exam Prep!",
                "color": NEW_USER_COLOR,
                "timestamp": _timestamp(),
                "fields": [
                    {"name": "Email", "value": email, "inline": True},
                    {"name": "Time", "value": utcnow().strftime("%Y-%m-%d %H:%M:%S UTC"), "inline": True},
                ],
            }
        ]
    }


def create_contact_form_notification(name: str, email: str, subject: str, message: str) -> dict[str, Any]:
    if len(message) > MAX_MESSAGE_CHARS:
        message = message[:MAX_MESSAGE_CHARS] + "..."
    return {
        "embeds": [
            {
                "title": "📬 New Contact Form Submission",
                "description": "Someone has sent a message via the contact form.",
                "color": CONTACT_COLOR,
                "timestamp": _timestamp(),
                "fields": [
                    {"name": "Name", "value": name, "inline": True},
                    {"name": "Email", "value": email, "inline": True},
                    {"name": "Subject", "value": subject, "inline": False},
                    {"name": "Message", "value": message, "inline": False},
                ],
            }
        ]
    }


async def send_discord_notification(
    payload: dict[str, Any],
    webhook_url: str | None = None,
    client: httpx.AsyncClient | None = None,
) -> bool:
    """POST a payload to the webhook.

    Returns:
        True on a 2xx response; False on any failure or missing URL
    """
    url = webhook_url or settings.discord.webhook_url
    if not url:
        logger.error("Discord webhook URL not configured")
        return False

    owns_client = client is None
    client = client or httpx.AsyncClient(timeout=settings.discord.timeout)
    try:
        response = await client.post(url, json=payload)
        if not response.is_success:
            logger.warning(
                f"Discord webhook returned {response.status_code}",
                extra={"status_code": response.status_code},
            )
        return response.is_success
    except httpx.HTTPError as e:
        logger.error(f"Failed to send Discord notification: {e}")
        return False
    finally:
        if owns_client:
            await client.aclose()
