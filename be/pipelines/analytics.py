"""Per-user study progress, sessions, streaks and dashboard analytics."""
from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from be import models

logger = logging.getLogger(__name__)

ANALYTICS_SESSION_WINDOW = 50
RECENT_SESSIONS = 10
WEEK = timedelta(days=7)


def _iso(value) -> str | None:
    return value.isoformat() if value is not None else None


def progress_to_dict(row: models.UserProgress) -> dict[str, Any]:
    return {
        "id": row.id,
        "user_id": row.user_id,
        "topic": row.topic,
        "total_questions": row.total_questions,
        "correct_answers": row.correct_answers,
        "study_time_minutes": row.study_time_minutes,
        "last_studied": _iso(row.last_studied),
    }


def session_to_dict(row: models.StudySession) -> dict[str, Any]:
    return {
        "id": row.id,
        "user_id": row.user_id,
        "session_type": row.session_type,
        "topic": row.topic,
        "questions_attempted": row.questions_attempted,
        "questions_correct": row.questions_correct,
        "duration_minutes": row.duration_minutes,
        "score_percentage": row.score_percentage,
        "session_data": row.session_data,
        "created_at": _iso(row.created_at),
    }


def profile_to_dict(row: models.UserProfile) -> dict[str, Any]:
    return {
        "id": row.id,
        "email": row.email,
        "full_name": row.full_name,
        "avatar_url": row.avatar_url,
        "exam_level": row.exam_level,
        "exam_date": _iso(row.exam_date),
        "study_goal": row.study_goal,
        "subscription_plan": row.subscription_plan,
        "subscription_status": row.subscription_status,
        "trial_ends_at": _iso(row.trial_ends_at),
        "created_at": _iso(row.created_at),
    }


async def get_user_progress(session: AsyncSession, user_id: str) -> list[dict[str, Any]]:
    result = await session.execute(
        select(models.UserProgress)
        .where(models.UserProgress.user_id == user_id)
        .order_by(models.UserProgress.topic)
    )
    return [progress_to_dict(p) for p in result.scalars().all()]


async def upsert_user_progress(
    session: AsyncSession,
    user_id: str,
    topic: str,
    total_questions: int,
    correct_answers: int,
    study_time_minutes: int = 0,
) -> dict[str, Any]:
    """Set the totals for one (user, topic) pair, creating it if needed.

    Values replace the stored totals; callers send cumulative numbers.
    """
    result = await session.execute(
        select(models.UserProgress).where(
            models.UserProgress.user_id == user_id,
            models.UserProgress.topic == topic,
        )
    )
    progress = result.scalars().first()
    if progress is None:
        progress = models.UserProgress(user_id=user_id, topic=topic)
        session.add(progress)

    progress.total_questions = total_questions
    progress.correct_answers = correct_answers
    progress.study_time_minutes = study_time_minutes
    progress.last_studied = models.utcnow()
    await session.commit()
    return progress_to_dict(progress)


def advance_streak(streak: models.StudyStreak, today: date) -> None:
    """Extend, keep or reset a streak for a study day."""
    last = streak.last_study_date
    if last == today:
        return
    if last == today - timedelta(days=1):
        streak.current_streak += 1
    else:
        streak.current_streak = 1
    streak.longest_streak = max(streak.longest_streak, streak.current_streak)
    streak.last_study_date = today


async def create_study_session(
    session: AsyncSession,
    user_id: str,
    session_type: str,
    questions_attempted: int,
    questions_correct: int,
    topic: str | None = None,
    duration_minutes: int = 0,
    score_percentage: float | None = None,
    session_data: dict | None = None,
) -> dict[str, Any]:
    """Record a finished session and advance the user's streak."""
    row = models.StudySession(
        user_id=user_id,
        session_type=session_type,
        topic=topic,
        questions_attempted=questions_attempted,
        questions_correct=questions_correct,
        duration_minutes=duration_minutes,
        score_percentage=score_percentage,
        session_data=session_data,
    )
    session.add(row)

    streak = (await session.execute(
        select(models.StudyStreak).where(models.StudyStreak.user_id == user_id)
    )).scalars().first()
    if streak is None:
        streak = models.StudyStreak(user_id=user_id, current_streak=0, longest_streak=0)
        session.add(streak)
    advance_streak(streak, models.utcnow().date())

    await session.commit()
    logger.info(f"Recorded {session_type} session", extra={"user_id": user_id})
    return session_to_dict(row)


async def get_user_sessions(session: AsyncSession, user_id: str, limit: int = 10) -> list[dict[str, Any]]:
    result = await session.execute(
        select(models.StudySession)
        .where(models.StudySession.user_id == user_id)
        .order_by(models.StudySession.created_at.desc(), models.StudySession.id.desc())
        .limit(limit)
    )
    return [session_to_dict(s) for s in result.scalars().all()]


async def get_user_analytics(session: AsyncSession, user_id: str) -> dict[str, Any]:
    """Dashboard payload: profile, progress, streak and derived stats.

    Session-based counts cover the latest 50 sessions.
    """
    profile = await session.get(models.UserProfile, user_id)
    progress = await get_user_progress(session, user_id)
    sessions = await get_user_sessions(session, user_id, ANALYTICS_SESSION_WINDOW)

    achievements = (await session.execute(
        select(models.UserAchievement)
        .where(models.UserAchievement.user_id == user_id)
        .order_by(models.UserAchievement.earned_at.desc())
    )).scalars().all()
    streak = (await session.execute(
        select(models.StudyStreak).where(models.StudyStreak.user_id == user_id)
    )).scalars().first()

    total_questions = sum(p["total_questions"] for p in progress)
    total_correct = sum(p["correct_answers"] for p in progress)
    total_study_time = sum(p["study_time_minutes"] for p in progress)
    average_score = round(total_correct / total_questions * 100) if total_questions else 0

    week_ago = (models.utcnow() - WEEK).isoformat()
    weekly = [s for s in sessions if s["created_at"] and s["created_at"] >= week_ago]

    return {
        "profile": profile_to_dict(profile) if profile else None,
        "progress": progress,
        "achievements": [
            {
                "achievement_type": a.achievement_type,
                "achievement_name": a.achievement_name,
                "description": a.description,
                "earned_at": _iso(a.earned_at),
            }
            for a in achievements
        ],
        "streak": {
            "current_streak": streak.current_streak,
            "longest_streak": streak.longest_streak,
            "last_study_date": _iso(streak.last_study_date),
        } if streak else None,
        "stats": {
            "totalQuestions": total_questions,
            "totalCorrect": total_correct,
            "totalStudyTime": total_study_time,
            "averageScore": average_score,
            "sessionCount": len(sessions),
            "weeklySessionCount": len(weekly),
        },
        "recentSessions": sessions[:RECENT_SESSIONS],
    }
