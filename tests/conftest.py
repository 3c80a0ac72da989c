"""Shared fixtures: in-memory database, API client and fake AI services.

Every test gets a fresh in-memory SQLite database. ``get_session`` is
overridden so routes use it. Embedding and completion calls are replaced
with fakes so nothing reaches the network.
"""

import os

# Settings are read at import time, so the environment is set first
os.environ["DB_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["OPENAI_API_KEY"] = "sk-test-fake-key"
os.environ["EMBEDDING_DIM"] = "128"
os.environ["LOG_FORMAT"] = "text"
os.environ["RAG_QUESTION_DELAY_SECONDS"] = "0"
os.environ["BLOG_ENHANCE_DELAY_SECONDS"] = "0"
os.environ["BLOG_EMBED_BATCH_DELAY_SECONDS"] = "0"
os.environ.pop("CRON_SECRET", None)
os.environ.pop("ADMIN_API_KEY", None)
os.environ.pop("DISCORD_WEBHOOK_URL", None)

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from be.api import app
from be.config import settings
from be.db import get_session
from be.models import Base

EMBEDDING_DIM = settings.embeddings.dim


def fake_vector(seed: float = 0.1) -> list[float]:
    return [seed] * EMBEDDING_DIM


def sample_question(**overrides) -> dict:
    data = {
        "question_text": "Which measure of central tendency is most affected by outliers?",
        "option_a": "Median",
        "option_b": "Arithmetic mean",
        "option_c": "Mode",
        "correct_answer": "B",
        "explanation": "The arithmetic mean uses every observation, so extreme values pull it.",
        "keywords": ["mean", "outliers"],
    }
    data.update(overrides)
    return data


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory):
    """API client with the DB dependency overridden."""
    async def override_get_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture
def fake_embeddings(monkeypatch):
    """Deterministic embeddings for every module that embeds text."""
    async def embed_texts(texts):
        return [fake_vector() for _ in texts]

    async def embed_single(text):
        return fake_vector()

    monkeypatch.setattr("be.pipelines.rag.embed_single", embed_single)
    monkeypatch.setattr("be.pipelines.blog_rag.embed_single", embed_single)
    monkeypatch.setattr("be.pipelines.blog_rag.embed_texts", embed_texts)
    monkeypatch.setattr("be.pipelines.ingest.embed_texts", embed_texts)
    return embed_texts


@pytest.fixture
def llm_replies(monkeypatch):
    """Queue of JSON replies returned by ``ai.llm.complete_json``.

    Append dicts (or exceptions to raise) before the code under test runs.
    Each call is recorded in ``llm_replies.calls``.
    """
    class Replies(list):
        calls: list[dict]

    replies = Replies()
    replies.calls = []

    async def complete_json(system, user, **kwargs):
        replies.calls.append({"system": system, "user": user, **kwargs})
        if not replies:
            raise AssertionError("Unexpected LLM call")
        reply = replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    monkeypatch.setattr("ai.llm.complete_json", complete_json)
    return replies
