"""Subscription plans and usage-based entitlement checks."""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Literal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from . import models

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = ("active", "trialing")

# None means unlimited
PLAN_LIMITS: dict[str, dict[str, Any]] = {
    "trial": {
        "name": "Free Trial",
        "mock_exams": 1,
        "questions": 100,
        "duration_hours": 24,
        "price": 0,
        "features": ["1 mock exam", "100 practice questions", "24-hour access", "Basic analytics"],
    },
    "basic": {
        "name": "Basic",
        "mock_exams": 5,
        "questions": 2000,
        "duration_hours": None,
        "price": 30,
        "features": [
            "5 mock exams per month",
            "2,000 practice questions",
            "Performance analytics",
            "Email support",
        ],
    },
    "premium": {
        "name": "Premium",
        "mock_exams": None,
        "questions": None,
        "duration_hours": None,
        "price": 50,
        "features": [
            "Unlimited mock exams",
            "Full question bank access",
            "Advanced analytics",
            "Direct contact with CFA analysts",
            "Priority email support",
        ],
    },
}


@dataclass
class SubscriptionInfo:
    plan: str
    status: str
    trial_ends_at: datetime | None
    is_trial_expired: bool
    can_access_mock_exams: bool
    can_access_questions: bool
    mock_exams_remaining: int | None
    questions_remaining: int | None
    limits: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["trial_ends_at"] = self.trial_ends_at.isoformat() if self.trial_ends_at else None
        return data


def plan_limits(plan: str | None) -> dict[str, Any]:
    """Limits for a plan; unknown or legacy names get trial limits."""
    return PLAN_LIMITS.get(plan or "trial", PLAN_LIMITS["trial"])


def _remaining(limit: int | None, used: int) -> int | None:
    return None if limit is None else max(0, limit - used)


def _can_access(expired: bool, status: str, remaining: int | None) -> bool:
    return not expired and status in ACTIVE_STATUSES and (remaining is None or remaining > 0)


async def get_usage_counts(session: AsyncSession, user_id: str, now: datetime) -> tuple[int, int]:
    """Mock exams this calendar month and question attempts all time."""
    start_of_month = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    mock_exams = (await session.execute(
        select(func.count()).select_from(models.MockExam).where(
            models.MockExam.user_id == user_id,
            models.MockExam.created_at >= start_of_month,
        )
    )).scalar_one()
    questions = (await session.execute(
        select(func.count()).select_from(models.UserQuestionAttempt).where(
            models.UserQuestionAttempt.user_id == user_id,
        )
    )).scalar_one()
    return int(mock_exams), int(questions)


async def get_subscription_info(
    session: AsyncSession,
    user_id: str,
    now: datetime | None = None,
) -> SubscriptionInfo | None:
    """Entitlements for a user, or None when there is no profile."""
    profile = await session.get(models.UserProfile, user_id)
    if profile is None:
        return None

    now = now or models.utcnow()
    plan = profile.subscription_plan or "trial"
    status = profile.subscription_status or "trialing"
    trial_ends_at = profile.trial_ends_at
    is_trial_expired = plan == "trial" and trial_ends_at is not None and now > trial_ends_at

    limits = plan_limits(plan)
    mock_exams_used, questions_used = await get_usage_counts(session, user_id, now)
    mock_remaining = _remaining(limits["mock_exams"], mock_exams_used)
    questions_remaining = _remaining(limits["questions"], questions_used)

    return SubscriptionInfo(
        plan=plan,
        status=status,
        trial_ends_at=trial_ends_at,
        is_trial_expired=is_trial_expired,
        can_access_mock_exams=_can_access(is_trial_expired, status, mock_remaining),
        can_access_questions=_can_access(is_trial_expired, status, questions_remaining),
        mock_exams_remaining=mock_remaining,
        questions_remaining=questions_remaining,
        limits=limits,
    )


def format_time_remaining(trial_ends_at: datetime, now: datetime | None = None) -> str:
    """``"Xh Ym remaining"``, ``"Ym remaining"`` or ``"Expired"``."""
    seconds = int((trial_ends_at - (now or models.utcnow())).total_seconds())
    if seconds <= 0:
        return "Expired"
    hours, rest = divmod(seconds, 3600)
    minutes = rest // 60
    if hours > 0:
        return f"{hours}h {minutes}m remaining"
    return f"{minutes}m remaining"


def get_plan_upgrade_message(plan: str, feature: Literal["mock_exams", "questions"]) -> str:
    """Upsell text shown when a limit is hit; empty for the top plan."""
    if plan == "trial":
        if feature == "mock_exams":
            return "Upgrade to Basic for 5 mock exams/month or Premium for unlimited access."
        return "Upgrade to Basic for 2,000 questions or Premium for full access."
    if plan == "basic":
        if feature == "mock_exams":
            return "Upgrade to Premium for unlimited mock exams."
        return "Upgrade to Premium for full question bank access."
    return ""
