"""Per-user progress, study sessions, analytics and subscription endpoints."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_session
from ..deps import get_current_user_id
from ..pipelines.analytics import (
    create_study_session,
    get_user_analytics,
    get_user_progress,
    get_user_sessions,
    upsert_user_progress,
)
from ..schemas import ProgressUpdate, SessionCreate
from ..subscription import get_subscription_info

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/user", tags=["user"])


@router.get("/progress")
async def read_progress(
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
) -> dict:
    return {"progress": await get_user_progress(session, user_id)}


@router.post("/progress")
async def write_progress(
    request: ProgressUpdate,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
) -> dict:
    """Store cumulative totals for one topic."""
    progress = await upsert_user_progress(
        session,
        user_id,
        request.topic,
        request.questions_answered,
        request.correct_answers,
        request.study_time_minutes,
    )
    return {"success": True, "progress": progress}


@router.get("/session")
async def read_sessions(
    limit: int = Query(default=10, ge=1, le=100),
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
) -> dict:
    return {"sessions": await get_user_sessions(session, user_id, limit)}


@router.post("/session")
async def write_session(
    request: SessionCreate,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
) -> dict:
    study_session = await create_study_session(
        session,
        user_id,
        request.session_type,
        request.questions_attempted,
        request.questions_correct,
        topic=request.topic,
        duration_minutes=request.duration_minutes,
        score_percentage=request.score_percentage,
        session_data=request.session_data,
    )
    return {"success": True, "session": study_session}


@router.get("/analytics")
async def read_analytics(
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
) -> dict:
    return {"analytics": await get_user_analytics(session, user_id)}


@router.get("/subscription")
async def read_subscription(
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
) -> dict:
    """Plan entitlements and remaining usage.

    Raises:
        HTTPException: 404 when the user has no profile yet
    """
    info = await get_subscription_info(session, user_id)
    if info is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User profile not found")
    return {"subscription": info.to_dict()}
