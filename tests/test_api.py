"""API tests for health, questions, users, notifications, cron and admin endpoints."""

import pytest
from sqlalchemy.exc import SQLAlchemyError

from be import models
from be.config import settings
from tests.conftest import sample_question

USER_HEADERS = {"X-User-Id": "user-123"}


async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "version": settings.version}


async def test_validation_error_envelope(client):
    response = await client.post("/api/admin/save-questions", json={"questions": []})

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Invalid request data"
    assert body["details"][0]["field"] == "questions"


class TestQuestionRoutes:
    async def test_generate_question_and_save(self, client, llm_replies):
        llm_replies.append(sample_question())

        response = await client.post("/api/admin/generate-question", json={
            "topic_area": "Economics",
            "difficulty": "beginner",
            "save_to_database": True,
            "created_by": "admin-1",
        })

        body = response.json()
        assert response.status_code == 200
        assert body["saved"] is True
        assert body["question"]["topic_area"] == "Economics"

        listed = (await client.get("/api/questions", params={"topic_area": "Economics"})).json()
        assert listed["total"] == 1
        assert listed["questions"][0]["id"] == body["database_id"]
        assert listed["questions"][0]["source"] == "AI-Generated"

    async def test_generate_question_unknown_topic(self, client, llm_replies):
        response = await client.post("/api/admin/generate-question", json={"topic_area": "Astrology"})

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid topic area"

    async def test_generate_question_llm_failure(self, client, llm_replies):
        llm_replies.append({"question_text": "Incomplete"})

        response = await client.post("/api/admin/generate-question", json={"topic_area": "Economics"})

        assert response.status_code == 500
        assert response.json()["error"] == "Failed to generate question"

    async def test_rag_not_configured(self, client):
        info = (await client.get("/api/admin/generate-rag-question")).json()
        assert info["rag_configured"] is False
        assert info["setup_instructions"] == "Run: python ingest_materials.py"

        response = await client.post("/api/admin/generate-rag-question", json={"topic_area": "Economics"})
        assert response.status_code == 500
        assert response.json()["error"].startswith("RAG system not configured")

    async def test_material_without_api_key(self, client, monkeypatch):
        monkeypatch.setattr(settings.openai, "api_key", None)

        response = await client.post("/api/admin/generate-from-material", json={
            "topic_id": "derivatives", "topic_name": "Derivatives",
        })

        assert response.status_code == 500
        assert response.json()["error"] == "OPENAI_API_KEY environment variable is not set"

    async def test_save_questions_and_stats(self, client):
        questions = [
            sample_question(topic_area="Economics", difficulty_level="beginner"),
            sample_question(topic_area="Derivatives", difficulty_level="advanced", learning_objective_id="LO-7"),
        ]

        saved = (await client.post("/api/admin/save-questions", json={"questions": questions})).json()
        stats = (await client.get("/api/admin/question-stats")).json()

        assert saved["saved_count"] == 2
        assert stats["summary"]["totalQuestions"] == 2
        assert stats["summary"]["totalWithLO"] == 1
        assert stats["topicStats"]["Derivatives"]["advanced"] == 1

    async def test_save_questions_rejects_bad_answer(self, client):
        response = await client.post("/api/admin/save-questions", json={
            "questions": [sample_question(correct_answer="D")],
        })
        assert response.status_code == 400
        assert response.json()["details"][0]["field"] == "questions.0.correct_answer"

    async def test_import_csv(self, client):
        csv = b"Question,A,B,C,Answer\nWhat is GDP?,Output,Income,Exports,A\n"

        response = await client.post(
            "/api/admin/questions/import",
            data={"created_by": "admin-1"},
            files={"file": ("bank.csv", csv, "text/csv")},
        )

        assert response.status_code == 200
        assert response.json()["saved_count"] == 1

    async def test_import_rejects_non_spreadsheet(self, client):
        response = await client.post(
            "/api/admin/questions/import",
            files={"file": ("bank.txt", b"just text", "text/plain")},
        )
        assert response.status_code == 400
        assert response.json()["error"] == "Failed to parse file"

    async def test_public_list_limit_bounds(self, client):
        response = await client.get("/api/questions", params={"limit": 500})
        assert response.status_code == 400


class TestUserRoutes:
    async def test_requires_user(self, client):
        response = await client.get("/api/user/progress")
        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized", "details": None}

    async def test_progress_round_trip(self, client):
        response = await client.post("/api/user/progress", headers=USER_HEADERS, json={
            "topic": "Economics", "questionsAnswered": 12, "correctAnswers": 9, "studyTimeMinutes": 20,
        })
        assert response.json()["success"] is True

        progress = (await client.get("/api/user/progress", headers=USER_HEADERS)).json()["progress"]
        assert progress[0]["total_questions"] == 12
        assert (await client.get("/api/user/progress", headers={"X-User-Id": "other"})).json() == {"progress": []}

    async def test_session_and_analytics(self, client):
        response = await client.post("/api/user/session", headers=USER_HEADERS, json={
            "sessionType": "practice", "questionsAttempted": 10, "questionsCorrect": 7, "topic": "Economics",
        })
        assert response.json()["session"]["questions_correct"] == 7

        sessions = (await client.get("/api/user/session", headers=USER_HEADERS)).json()["sessions"]
        analytics = (await client.get("/api/user/analytics", headers=USER_HEADERS)).json()["analytics"]

        assert len(sessions) == 1
        assert analytics["streak"]["current_streak"] == 1
        assert analytics["stats"]["sessionCount"] == 1

    async def test_session_type_validated(self, client):
        response = await client.post("/api/user/session", headers=USER_HEADERS, json={
            "sessionType": "cramming", "questionsAttempted": 1, "questionsCorrect": 1,
        })
        assert response.status_code == 400

    async def test_subscription(self, client, db_session):
        missing = await client.get("/api/user/subscription", headers=USER_HEADERS)
        assert missing.status_code == 404

        db_session.add(models.UserProfile(
            id="user-123", email="candidate@example.com", subscription_plan="basic", subscription_status="active",
        ))
        await db_session.commit()

        subscription = (await client.get("/api/user/subscription", headers=USER_HEADERS)).json()["subscription"]
        assert subscription["plan"] == "basic"
        assert subscription["questions_remaining"] == 2000
        assert subscription["limits"]["name"] == "Basic"


class TestNotificationRoutes:
    @pytest.fixture
    def sent(self, monkeypatch):
        payloads = []

        async def send(payload, webhook_url=None, client=None):
            payloads.append(payload)
            return True

        monkeypatch.setattr(settings.discord, "webhook_url", "https://hooks.example.com/x")
        monkeypatch.setattr("be.routes.notifications.send_discord_notification", send)
        return payloads

    async def test_webhook_not_configured(self, client):
        response = await client.post("/api/contact", json={
            "name": "Ana", "email": "ana@example.com", "subject": "Hi", "message": "Hello",
        })
        assert response.status_code == 500
        assert response.json()["error"] == "Discord webhook not configured"

    async def test_notify_new_user(self, client, sent):
        response = await client.post("/api/notify-discord", json={"email": "new@example.com", "type": "new_user"})

        assert response.json() == {"message": "Notification sent successfully"}
        assert sent[0]["embeds"][0]["fields"][0]["value"] == "new@example.com"

    async def test_notify_unknown_type(self, client, sent):
        response = await client.post("/api/notify-discord", json={"email": "new@example.com", "type": "churn"})
        assert response.status_code == 400
        assert sent == []

    async def test_contact_send_failure(self, client, monkeypatch):
        async def send(payload, webhook_url=None, client=None):
            return False

        monkeypatch.setattr(settings.discord, "webhook_url", "https://hooks.example.com/x")
        monkeypatch.setattr("be.routes.notifications.send_discord_notification", send)

        response = await client.post("/api/contact", json={
            "name": "Ana", "email": "ana@example.com", "subject": "Hi", "message": "Hello",
        })
        assert response.status_code == 500
        assert response.json()["error"] == "Failed to send message"


class TestCronRoutes:
    async def test_rejected_without_configured_secret(self, client):
        response = await client.get("/api/cron/generate-blog", headers={"Authorization": "Bearer anything"})
        assert response.status_code == 401

    async def test_rejected_with_wrong_secret(self, client, monkeypatch):
        monkeypatch.setattr(settings, "cron_secret", "s3cret")
        response = await client.get("/api/cron/generate-blog", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401

    async def test_generates_and_indexes(self, client, monkeypatch):
        monkeypatch.setattr(settings, "cron_secret", "s3cret")

        async def run(session):
            return {"success": True, "post_id": 1, "slug": "ethics-basics", "category": "Ethics"}

        async def submit(url, client=None):
            return {"bing": {"success": False, "message": url}, "indexNow": {"success": False, "message": url}}

        monkeypatch.setattr("be.routes.cron.run_scheduled_generation", run)
        monkeypatch.setattr("be.routes.cron.submit_to_search_engines", submit)

        response = await client.get("/api/cron/generate-blog", headers={"Authorization": "Bearer s3cret"})

        body = response.json()
        assert body["success"] is True
        assert body["indexing"]["bing"]["message"].endswith("/blog/ethics-basics")


class TestAdminRoutes:
    async def test_users_overview(self, client, db_session):
        db_session.add_all([
            models.UserProfile(id="u1", email="a@example.com", subscription_plan="trial"),
            models.UserProfile(id="u2", email="b@example.com", subscription_plan="premium",
                               created_at=models.utcnow().replace(year=2020)),
        ])
        await db_session.commit()

        body = (await client.get("/api/admin/users")).json()

        assert [u["id"] for u in body["users"]] == ["u1", "u2"]
        assert body["stats"]["totalUsers"] == 2
        assert body["stats"]["newUsersThisWeek"] == 1
        assert body["stats"]["subscriptionStats"] == {"trial": 1, "premium": 1}
        assert body["stats"]["examLevelStats"] == {"Level I": 2}

    async def test_debug(self, client, db_session):
        db_session.add(models.BlogCategory(name="Economics", slug="economics", sort_order=1))
        await db_session.commit()

        body = (await client.get("/api/admin/debug")).json()

        assert body["status"] == "ok"
        assert body["categories"]["count"] == 1
        assert body["categories"]["sample"][0]["name"] == "Economics"

    async def test_admin_key_guard(self, client, monkeypatch):
        monkeypatch.setattr(settings, "admin_api_key", "admin-secret")

        assert (await client.get("/api/admin/question-stats")).status_code == 401
        allowed = await client.get("/api/admin/question-stats", headers={"X-Admin-Key": "admin-secret"})
        assert allowed.status_code == 200


async def test_database_error_envelope(client, monkeypatch):
    async def unavailable(session):
        raise SQLAlchemyError("connection refused")

    monkeypatch.setattr("be.routes.questions.compute_question_stats", unavailable)

    response = await client.get("/api/admin/question-stats")

    assert response.status_code == 500
    assert response.json() == {"error": "Database error", "details": None}


async def test_material_info_lists_available_topics(client, tmp_path, monkeypatch):
    folder = tmp_path / "Derivatives"
    folder.mkdir()
    (folder / "Swaps basics.pdf").write_bytes(b"%PDF-1.4")
    monkeypatch.setattr(settings.materials, "root", str(tmp_path))

    body = (await client.get("/api/admin/generate-from-material")).json()

    assert body["available_topics"]["derivatives"] == ["Swaps basics.pdf"]
    assert body["available_topics"]["economics"] == []
