"""Admin user overview and connectivity check."""
from __future__ import annotations

import logging
from collections import Counter
from datetime import timedelta

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from .. import models
from ..db import get_session
from ..deps import require_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(require_admin)])


@router.get("/users")
async def list_users(session: AsyncSession = Depends(get_session)) -> dict:
    """All profiles, newest first, with signup and plan breakdowns."""
    profiles = (await session.execute(
        select(models.UserProfile).order_by(models.UserProfile.created_at.desc())
    )).scalars().all()

    now = models.utcnow()
    week_ago = now - timedelta(days=7)
    month_ago = now - timedelta(days=30)

    users = [
        {
            "id": p.id,
            "email": p.email,
            "full_name": p.full_name,
            "exam_level": p.exam_level,
            "subscription_plan": p.subscription_plan,
            "created_at": p.created_at.isoformat() if p.created_at else None,
        }
        for p in profiles
    ]
    return {
        "users": users,
        "stats": {
            "totalUsers": len(profiles),
            "newUsersThisWeek": sum(1 for p in profiles if p.created_at >= week_ago),
            "newUsersThisMonth": sum(1 for p in profiles if p.created_at >= month_ago),
            "subscriptionStats": dict(Counter(p.subscription_plan for p in profiles)),
            "examLevelStats": dict(Counter(p.exam_level for p in profiles)),
        },
    }


@router.get("/debug")
async def debug(session: AsyncSession = Depends(get_session)) -> dict:
    """Database connectivity check with a small category sample."""
    try:
        rows = (await session.execute(
            select(models.BlogCategory.id, models.BlogCategory.name).limit(3)
        )).all()
    except SQLAlchemyError as e:
        logger.error(f"Debug category query failed: {e}")
        await session.rollback()
        return {"status": "ok", "categories": {"count": 0, "error": str(e)}}

    return {
        "status": "ok",
        "categories": {
            "count": len(rows),
            "sample": [{"id": r.id, "name": r.name} for r in rows],
            "error": None,
        },
    }
