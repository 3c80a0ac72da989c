"""Tests for progress tracking, streaks, analytics and subscription entitlements."""

from datetime import date, datetime, timedelta

import pytest

from be import models
from be.pipelines.analytics import (
    advance_streak,
    create_study_session,
    get_user_analytics,
    get_user_progress,
    get_user_sessions,
    upsert_user_progress,
)
from be.subscription import (
    format_time_remaining,
    get_plan_upgrade_message,
    get_subscription_info,
    plan_limits,
)

USER = "user-123"
NOW = datetime(2026, 3, 15, 12, 0, 0)


class TestStreak:
    @pytest.mark.parametrize("last, current, expected", [
        (date(2026, 3, 14), 4, 5),
        (date(2026, 3, 15), 4, 4),
        (date(2026, 3, 10), 4, 1),
        (None, 0, 1),
    ])
    def test_advance(self, last, current, expected):
        streak = models.StudyStreak(user_id=USER, current_streak=current, longest_streak=4, last_study_date=last)
        advance_streak(streak, date(2026, 3, 15))
        assert streak.current_streak == expected
        assert streak.longest_streak == max(4, expected)


async def test_upsert_progress_overwrites(db_session):
    await upsert_user_progress(db_session, USER, "Economics", 10, 7, 15)
    updated = await upsert_user_progress(db_session, USER, "Economics", 20, 15, 30)

    assert updated["total_questions"] == 20
    progress = await get_user_progress(db_session, USER)
    assert len(progress) == 1
    assert progress[0]["correct_answers"] == 15


async def test_sessions_newest_first_and_streak_started(db_session):
    await create_study_session(db_session, USER, "practice", 10, 8, topic="Economics")
    await create_study_session(db_session, USER, "mock_exam", 90, 60, score_percentage=66.7)

    sessions = await get_user_sessions(db_session, USER)
    assert [s["session_type"] for s in sessions] == ["mock_exam", "practice"]
    assert len(await get_user_sessions(db_session, USER, limit=1)) == 1

    analytics = await get_user_analytics(db_session, USER)
    assert analytics["streak"]["current_streak"] == 1


async def test_analytics_stats(db_session):
    db_session.add(models.UserProfile(id=USER, email="candidate@example.com"))
    await db_session.commit()
    await upsert_user_progress(db_session, USER, "Economics", 30, 20, 40)
    await upsert_user_progress(db_session, USER, "Derivatives", 10, 10, 20)
    await create_study_session(db_session, USER, "practice", 40, 30)

    analytics = await get_user_analytics(db_session, USER)

    assert analytics["profile"]["email"] == "candidate@example.com"
    assert analytics["stats"] == {
        "totalQuestions": 40,
        "totalCorrect": 30,
        "totalStudyTime": 60,
        "averageScore": 75,
        "sessionCount": 1,
        "weeklySessionCount": 1,
    }
    assert len(analytics["recentSessions"]) == 1


async def test_analytics_for_new_user(db_session):
    analytics = await get_user_analytics(db_session, "nobody")
    assert analytics["profile"] is None
    assert analytics["streak"] is None
    assert analytics["stats"]["averageScore"] == 0


class TestSubscription:
    async def _profile(self, session, **fields):
        session.add(models.UserProfile(id=USER, email="candidate@example.com", **fields))
        await session.commit()

    async def test_no_profile(self, db_session):
        assert await get_subscription_info(db_session, USER, NOW) is None

    async def test_active_trial_counts_usage(self, db_session):
        await self._profile(db_session, subscription_plan="trial", subscription_status="trialing",
                            trial_ends_at=NOW + timedelta(hours=5))
        db_session.add_all([models.UserQuestionAttempt(user_id=USER) for _ in range(40)])
        db_session.add(models.MockExam(user_id=USER, created_at=NOW - timedelta(days=1)))
        await db_session.commit()

        info = await get_subscription_info(db_session, USER, NOW)

        assert info.is_trial_expired is False
        assert info.questions_remaining == 60
        assert info.mock_exams_remaining == 0
        assert info.can_access_questions is True
        assert info.can_access_mock_exams is False

    async def test_expired_trial_blocks_everything(self, db_session):
        await self._profile(db_session, subscription_plan="trial", subscription_status="trialing",
                            trial_ends_at=NOW - timedelta(minutes=1))

        info = await get_subscription_info(db_session, USER, NOW)

        assert info.is_trial_expired is True
        assert info.can_access_questions is False
        assert info.to_dict()["trial_ends_at"] == (NOW - timedelta(minutes=1)).isoformat()

    async def test_mock_exams_reset_monthly(self, db_session):
        await self._profile(db_session, subscription_plan="basic", subscription_status="active")
        db_session.add_all([
            models.MockExam(user_id=USER, created_at=datetime(2026, 2, 27)),
            models.MockExam(user_id=USER, created_at=datetime(2026, 3, 2)),
        ])
        await db_session.commit()

        info = await get_subscription_info(db_session, USER, NOW)
        assert info.mock_exams_remaining == 4

    async def test_premium_unlimited_unless_inactive(self, db_session):
        await self._profile(db_session, subscription_plan="premium", subscription_status="active")

        info = await get_subscription_info(db_session, USER, NOW)
        assert info.questions_remaining is None
        assert info.can_access_mock_exams is True

        profile = await db_session.get(models.UserProfile, USER)
        profile.subscription_status = "canceled"
        await db_session.commit()
        assert (await get_subscription_info(db_session, USER, NOW)).can_access_questions is False

    def test_unknown_plan_gets_trial_limits(self):
        assert plan_limits("legacy") == plan_limits("trial")

    @pytest.mark.parametrize("delta, expected", [
        (timedelta(hours=3, minutes=25), "3h 25m remaining"),
        (timedelta(minutes=42, seconds=10), "42m remaining"),
        (timedelta(seconds=-1), "Expired"),
    ])
    def test_format_time_remaining(self, delta, expected):
        assert format_time_remaining(NOW + delta, NOW) == expected

    def test_upgrade_messages(self):
        assert "Premium for unlimited access" in get_plan_upgrade_message("trial", "mock_exams")
        assert get_plan_upgrade_message("basic", "questions") == "Upgrade to Premium for full question bank access."
        assert get_plan_upgrade_message("premium", "questions") == ""
