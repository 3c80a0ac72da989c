"""Tests for blog post generation, enhancement and the scheduled run."""

from datetime import timedelta

import httpx
import pytest
from sqlalchemy import select

from ai.llm import LLMError
from be import models
from be.config import settings
from be.pipelines import blog_generation
from be.pipelines.blog_generation import (
    BlogGenerationError,
    enhance_blog_content,
    fetch_reference_material,
    generate_blog_post,
    html_to_text,
    pick_cron_category,
    run_generation_job,
    run_scheduled_generation,
    seed_categories,
    split_sections,
    suggest_blog_topics,
    unique_slug,
)
from config.curriculum import CFA_LEVEL_1_TOPICS


def blog_reply(**overrides) -> dict:
    data = {
        "title": "Mastering Bond Duration for CFA Level 1",
        "slug": "Mastering Bond Duration!",
        "excerpt": "Duration explained for exam day.",
        "content": "## Introduction\n\n" + "Duration measures price sensitivity. " * 50,
        "meta_title": "Bond Duration | CFA Level 1",
        "meta_description": "Learn duration.",
        "meta_keywords": "duration, convexity",
        "tags": ["fixed income"],
        "faq_items": [{"question": "What is duration?", "answer": "Rate sensitivity."}],
    }
    data.update(overrides)
    return data


@pytest.fixture
def enhance_replies(monkeypatch):
    calls = []

    async def complete(system, user, **kwargs):
        calls.append(user)
        return "## Enhanced\n\nExpanded section."

    monkeypatch.setattr("ai.llm.complete", complete)
    return calls


@pytest.fixture
async def category(db_session):
    category = models.BlogCategory(name="Fixed Income", slug="fixed-income", sort_order=1)
    db_session.add(category)
    await db_session.commit()
    return category


async def test_generate_blog_post_normalizes_reply(llm_replies):
    llm_replies.append(blog_reply(read_time_minutes=None))

    post = await generate_blog_post("context", "Fixed Income", "Bond duration", ["duration"])

    assert post.slug == "mastering-bond-duration"
    assert post.meta_keywords == ["duration", "convexity"]
    assert post.read_time_minutes == 2
    assert post.faq_items[0].question == "What is duration?"
    assert llm_replies.calls[0]["model"] == settings.openai.blog_model
    assert llm_replies.calls[0]["max_tokens"] == 4096


async def test_generate_blog_post_missing_content(llm_replies):
    llm_replies.append({"title": "No body"})
    with pytest.raises(BlogGenerationError, match="missing fields"):
        await generate_blog_post("context", "Fixed Income", "Bond duration")


async def test_generate_blog_post_default_keywords(llm_replies):
    llm_replies.append(blog_reply())
    await generate_blog_post("context", "Fixed Income", "Bond duration")
    assert "Bond duration, CFA Level 1, CFA exam prep, finance certification" in llm_replies.calls[0]["user"]


def test_split_sections():
    content = "Intro line\n\n## One\nBody one\n\n## Two\nBody two"
    assert split_sections(content) == ["Intro line\n\n", "## One\nBody one\n\n", "## Two\nBody two"]


async def test_enhance_skips_short_and_conclusion(enhance_replies):
    long_body = "Coupon rates and yields move inversely. " * 10
    content = f"## Basics\n{long_body}\n## Short\nTiny.\n## Conclusion\n{long_body}"

    enhanced = await enhance_blog_content(content, "Bonds", ["yield"])

    assert len(enhance_replies) == 1
    assert "Expanded section." in enhanced
    assert "## Short\nTiny." in enhanced
    assert f"## Conclusion\n{long_body}" in enhanced


async def test_enhance_keeps_section_on_failure(monkeypatch):
    async def failing(*args, **kwargs):
        raise LLMError("No response from OpenAI")

    monkeypatch.setattr("ai.llm.complete", failing)
    body = "## Basics\n" + "Credit spreads compensate for default risk. " * 10

    assert await enhance_blog_content(body, "Credit", []) == body


async def test_suggest_blog_topics(llm_replies):
    llm_replies.append({"topics": [{"title": "Yield curves", "description": "Shapes", "keywords": ["curve"]}]})

    result = await suggest_blog_topics("Fixed Income", "context", ["Existing post"])

    assert result == {"topics": [{"title": "Yield curves", "description": "Shapes", "keywords": ["curve"]}]}
    assert llm_replies.calls[0]["temperature"] == 0.8
    assert "Existing post" in llm_replies.calls[0]["user"]


def test_html_to_text_drops_boilerplate():
    html = (
        "<html><head><style>p{}</style></head><body><nav>Menu</nav>"
        "<main><h1>Duration</h1><p>Macaulay duration</p></main>"
        "<footer>Copyright</footer><script>x()</script></body></html>"
    )
    assert html_to_text(html) == "Duration\nMacaulay duration"


async def test_fetch_reference_material_truncates(monkeypatch):
    monkeypatch.setattr(settings.blog, "reference_max_chars", 500)

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="a" * 1000, headers={"content-type": "text/plain"})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        text = await fetch_reference_material("https://example.com/ref", client=client)

    assert text == "a" * 500 + "..."


async def test_fetch_reference_material_http_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(BlogGenerationError, match="Failed to fetch reference URL"):
            await fetch_reference_material("https://example.com/missing", client=client)


async def test_unique_slug(db_session, category):
    for slug in ("bond-basics", "bond-basics-2"):
        db_session.add(models.BlogPost(
            category_id=category.id, slug=slug, title=slug, content="x", author_name="Team",
        ))
    await db_session.commit()

    assert await unique_slug(db_session, "bond-basics") == "bond-basics-3"
    assert await unique_slug(db_session, "yield-curves") == "yield-curves"


async def test_run_generation_job_creates_draft(db_session, category, llm_replies, fake_embeddings):
    category_id = category.id
    llm_replies.append(blog_reply())

    outcome = await run_generation_job(
        db_session, category_id, "Fixed Income", "Bond duration", ["duration"], enhance=False,
    )

    job = await db_session.get(models.BlogGenerationJob, outcome.job_id)
    post = await db_session.get(models.BlogPost, outcome.post_id)
    assert job.status == "completed"
    assert job.result_post_id == post.id
    assert job.completed_at is not None
    assert post.status == "draft"
    assert post.published_at is None
    assert post.slug == "mastering-bond-duration"
    assert post.author_name == settings.blog.author_name
    # no resources, so the generic context is used
    assert "Bond duration in the context of CFA Level 1" in llm_replies.calls[0]["user"]


async def test_run_generation_job_records_failure(db_session, category, llm_replies, fake_embeddings):
    category_id = category.id
    llm_replies.append(LLMError("No response from OpenAI"))

    with pytest.raises(BlogGenerationError):
        await run_generation_job(db_session, category_id, "Fixed Income", "Bond duration", enhance=False)

    job = (await db_session.execute(select(models.BlogGenerationJob))).scalars().one()
    assert job.status == "failed"
    assert "No response from OpenAI" in job.error_message


async def test_reference_fetch_failure_is_not_fatal(db_session, category, llm_replies, fake_embeddings, monkeypatch):
    category_id = category.id

    async def unreachable(url, client=None):
        raise BlogGenerationError("Failed to fetch reference URL: timeout")

    monkeypatch.setattr(blog_generation, "fetch_reference_material", unreachable)
    llm_replies.append(blog_reply())

    outcome = await run_generation_job(
        db_session, category_id, "Fixed Income", "Bond duration",
        enhance=False, reference_url="https://example.com/slow",
    )
    assert outcome.status == "draft"


async def test_seed_categories_once(db_session):
    assert await seed_categories(db_session) == len(CFA_LEVEL_1_TOPICS)
    assert await seed_categories(db_session) == 0

    first = await pick_cron_category(db_session)
    assert first.name == CFA_LEVEL_1_TOPICS[0]["name"]


async def test_pick_cron_category_prefers_fewest_recent_posts(db_session):
    busy = models.BlogCategory(name="Economics", slug="economics", sort_order=1)
    quiet = models.BlogCategory(name="Derivatives", slug="derivatives", sort_order=2)
    db_session.add_all([busy, quiet])
    await db_session.flush()
    db_session.add(models.BlogPost(category_id=busy.id, slug="gdp", title="GDP", content="x", author_name="Team"))
    db_session.add(models.BlogPost(
        category_id=quiet.id, slug="old", title="Old", content="x", author_name="Team",
        created_at=models.utcnow() - timedelta(days=30),
    ))
    await db_session.commit()

    assert (await pick_cron_category(db_session)).name == "Derivatives"


async def test_run_scheduled_generation_publishes(db_session, llm_replies, enhance_replies, fake_embeddings):
    llm_replies.append({"topics": [{"title": "Ethics case studies", "keywords": []}]})
    llm_replies.append(blog_reply(title="Ethics Case Studies", slug="ethics-case-studies"))

    result = await run_scheduled_generation(db_session)

    assert result["success"] is True
    assert result["category"] == "Ethical and Professional Standards"
    assert result["topic"] == "Ethics case studies"
    assert result["slug"] == "ethics-case-studies"
    post = await db_session.get(models.BlogPost, result["post_id"])
    assert post.status == "published"
    assert post.published_at is not None
    job = (await db_session.execute(select(models.BlogGenerationJob))).scalars().one()
    assert job.keywords == CFA_LEVEL_1_TOPICS[0]["blog_keywords"]


async def test_run_scheduled_generation_without_topics(db_session, llm_replies, fake_embeddings):
    llm_replies.append({"topics": []})

    result = await run_scheduled_generation(db_session)

    assert result == {"message": "No new topics to generate", "category": "Ethical and Professional Standards"}


async def test_fetch_reference_material_malformed_url():
    with pytest.raises(BlogGenerationError, match="Failed to fetch reference URL"):
        await fetch_reference_material("http://[::1")


async def test_malformed_reference_url_is_not_fatal(db_session, category, llm_replies, fake_embeddings):
    category_id = category.id
    llm_replies.append(blog_reply())

    outcome = await run_generation_job(
        db_session, category_id, "Fixed Income", "Bond duration",
        enhance=False, reference_url="http://[::1",
    )

    job = await db_session.get(models.BlogGenerationJob, outcome.job_id)
    assert job.status == "completed"


async def test_unexpected_error_marks_job_failed(db_session, category, monkeypatch):
    category_id = category.id

    async def broken(*args, **kwargs):
        raise RuntimeError("context store offline")

    monkeypatch.setattr(blog_generation, "build_blog_context", broken)

    with pytest.raises(BlogGenerationError, match="context store offline"):
        await run_generation_job(db_session, category_id, "Fixed Income", "Bond duration", enhance=False)

    job = (await db_session.execute(select(models.BlogGenerationJob))).scalars().one()
    assert job.status == "failed"
    assert job.completed_at is not None


async def test_schema_markup_stored_on_post(db_session, category, llm_replies, fake_embeddings):
    category_id = category.id
    schema = {"@context": "https://schema.org", "@type": "Article"}
    llm_replies.append(blog_reply(schema_json=schema))

    outcome = await run_generation_job(db_session, category_id, "Fixed Income", "Bond duration", enhance=False)

    post = await db_session.get(models.BlogPost, outcome.post_id)
    assert post.schema_json == schema
