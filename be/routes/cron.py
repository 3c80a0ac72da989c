"""Scheduled jobs triggered by the platform cron."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_session
from ..deps import verify_cron_secret
from ..indexing import post_url, submit_to_search_engines
from ..pipelines.blog_generation import run_scheduled_generation

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cron", tags=["cron"], dependencies=[Depends(verify_cron_secret)])


@router.get("/generate-blog")
async def generate_blog(session: AsyncSession = Depends(get_session)) -> dict:
    """Publish one generated post for the least recently served category."""
    logger.info("Starting scheduled blog generation")
    result = await run_scheduled_generation(session)
    if result.get("slug"):
        result["indexing"] = await submit_to_search_engines(post_url(result["slug"]))
    return result
