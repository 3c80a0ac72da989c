"""Search engine URL submission for newly published blog posts.

Bing's URL submission API and IndexNow are supported. Each submitter
reports ``{"success", "message"}`` and never raises.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from .config import settings

logger = logging.getLogger(__name__)

BING_SUBMIT_URL = "https://ssl.bing.com/webmaster/api.svc/json/SubmitUrl"
INDEXNOW_URL = "https://api.indexnow.org/indexnow"


def _result(success: bool, message: str) -> dict[str, Any]:
    return {"success": success, "message": message}


def post_url(slug: str) -> str:
    return f"{settings.site_url.rstrip('/')}/blog/{slug}"


async def submit_to_bing(url: str, client: httpx.AsyncClient) -> dict[str, Any]:
    api_key = settings.indexing.bing_api_key
    if not api_key:
        logger.info("Bing API key not configured, skipping")
        return _result(False, "Bing API key not configured")

    try:
        response = await client.post(
            BING_SUBMIT_URL,
            params={"apikey": api_key},
            json={"siteUrl": settings.site_url, "url": url},
        )
    except httpx.HTTPError as e:
        logger.error(f"Bing submission error: {e}")
        return _result(False, str(e))

    if not response.is_success:
        logger.error(f"Bing submission failed: {response.text}", extra={"status_code": response.status_code})
        return _result(False, f"Bing submission failed: {response.text}")
    logger.info(f"Submitted to Bing: {url}")
    return _result(True, "Submitted to Bing")


async def submit_to_indexnow(url: str, client: httpx.AsyncClient) -> dict[str, Any]:
    api_key = settings.indexing.indexnow_api_key
    if not api_key:
        logger.info("IndexNow API key not configured, skipping")
        return _result(False, "IndexNow API key not configured")

    try:
        response = await client.get(INDEXNOW_URL, params={"url": url, "key": api_key})
    except httpx.HTTPError as e:
        logger.error(f"IndexNow submission error: {e}")
        return _result(False, str(e))

    if response.status_code in (200, 202):
        logger.info(f"Submitted to IndexNow: {url}")
        return _result(True, "Submitted to IndexNow (Bing, Yandex, etc.)")
    logger.error(f"IndexNow submission failed: {response.status_code}", extra={"status_code": response.status_code})
    return _result(False, f"IndexNow submission failed: {response.status_code}")


async def submit_to_search_engines(
    url: str,
    client: httpx.AsyncClient | None = None,
) -> dict[str, dict[str, Any]]:
    """Submit ``url`` to every configured engine concurrently."""
    logger.info(f"Submitting URL to search engines: {url}")
    owns_client = client is None
    client = client or httpx.AsyncClient(timeout=settings.indexing.timeout)
    try:
        bing, indexnow = await asyncio.gather(
            submit_to_bing(url, client),
            submit_to_indexnow(url, client),
        )
    finally:
        if owns_client:
            await client.aclose()
    return {"bing": bing, "indexNow": indexnow}
