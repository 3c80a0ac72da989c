"""SEO blog post generation for the CFA Level 1 blog.

The flow for one post:
1. Build reference context from the category's uploaded resources
2. Ask the blog model for a full post as JSON
3. Optionally expand each ``##`` section with a cheaper model
4. Store the post with a unique slug and record the job outcome

The scheduled cron path also seeds categories, picks the least recently
covered one and asks the model for a fresh topic first.
"""
from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

import httpx
from bs4 import BeautifulSoup
from pydantic import BaseModel, Field, ValidationError, field_validator
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ai import llm, prompts
from be import models
from be.config import settings
from config.curriculum import CFA_LEVEL_1_TOPICS

from .blog_rag import build_blog_context
from .normalization import estimate_read_time, normalize_line_breaks, slugify, truncate_chars

logger = logging.getLogger(__name__)

MIN_CONTEXT_CHARS = 100
MIN_ENHANCE_SECTION_CHARS = 200
CRON_LOOKBACK = timedelta(days=7)

_SECTION_SPLIT_RE = re.compile(r"(?=^## )", re.MULTILINE)
_SECTION_TITLE_RE = re.compile(r"^## (.+)$", re.MULTILINE)


class BlogGenerationError(Exception):
    """Raised when a post cannot be generated or stored."""
    pass


class FAQItem(BaseModel):
    question: str
    answer: str


class GeneratedBlogPost(BaseModel):
    """Parsed model reply for one blog post."""
    title: str = Field(min_length=1)
    slug: str = ""
    excerpt: str = ""
    content: str = Field(min_length=1)
    meta_title: str | None = None
    meta_description: str | None = None
    meta_keywords: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    read_time_minutes: int | None = None
    faq_items: list[FAQItem] = Field(default_factory=list)
    internal_linking_suggestions: list[str] = Field(default_factory=list)
    schema_markup: dict[str, Any] | None = Field(default=None, alias="schema_json")

    @field_validator("meta_keywords", "tags", "internal_linking_suggestions", mode="before")
    @classmethod
    def _split_strings(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [v.strip() for v in value.split(",") if v.strip()]
        return value


class TopicSuggestion(BaseModel):
    title: str
    description: str = ""
    keywords: list[str] = Field(default_factory=list)


@dataclass
class GenerationOutcome:
    """A finished generation job and the post it produced."""
    job_id: int
    post_id: int
    slug: str
    title: str
    status: str


def default_keywords(topic: str) -> str:
    return f"{topic}, CFA Level 1, CFA exam prep, finance certification"


def default_context(topic: str, category_name: str) -> str:
    return (
        f"This blog post is about {topic} in the context of CFA Level 1 exam preparation.\n"
        f"Focus on providing valuable, accurate information for CFA candidates studying for the "
        f"{category_name} section of the exam."
    )


def cron_default_context(category_name: str) -> str:
    return (
        f"CFA Level 1 {category_name} exam preparation.\n"
        f"This covers key concepts, exam strategies, and study tips for the {category_name} "
        f"section of the CFA Level 1 exam.\n"
        "Focus on providing actionable advice and clear explanations of complex topics."
    )


async def generate_blog_post(
    context: str,
    category_name: str,
    topic: str,
    keywords: list[str] | None = None,
    word_count: int = 1500,
    include_faq: bool = True,
    reference_material: str | None = None,
) -> GeneratedBlogPost:
    """Ask the blog model for a complete post.

    Args:
        context: Reference text from the category's resources
        category_name: Display name of the blog category
        topic: Post topic or working title
        keywords: Target keywords; a generic set is used when empty
        word_count: Approximate target length
        include_faq: Whether to request an FAQ block
        reference_material: Extra text from a reference page

    Returns:
        The parsed post with a normalized slug

    Raises:
        BlogGenerationError: If the call fails or the reply is malformed
    """
    keywords_str = ", ".join(keywords) if keywords else default_keywords(topic)
    prompt = prompts.build_blog_prompt(
        context,
        category_name,
        topic,
        keywords_str,
        word_count,
        include_faq,
        reference_material,
    )
    try:
        data = await llm.complete_json(
            prompts.BLOG_WRITER_SYSTEM,
            prompt,
            model=settings.openai.blog_model,
            temperature=0.7,
            max_tokens=4096,
        )
        post = GeneratedBlogPost.model_validate(data)
    except llm.LLMError as e:
        raise BlogGenerationError(f"Failed to parse blog generation response: {e}") from e
    except ValidationError as e:
        raise BlogGenerationError(f"Blog generation response is missing fields: {e}") from e

    post.slug = slugify(post.slug or post.title) or slugify(topic)
    if not post.read_time_minutes:
        post.read_time_minutes = estimate_read_time(post.content)
    return post


async def enhance_blog_section(
    section: str,
    section_title: str,
    topic: str,
    keywords: list[str],
) -> str:
    """Expand one markdown section with the enhancement model.

    Raises:
        LLMError: If the call fails or returns nothing
    """
    prompt = prompts.build_enhance_section_prompt(section, section_title, topic, keywords)
    return await llm.complete(
        prompts.BLOG_ENHANCER_SYSTEM,
        prompt,
        model=settings.openai.enhance_model,
        temperature=0.7,
        max_tokens=2000,
    )


def split_sections(content: str) -> list[str]:
    """Split markdown at each line starting with ``## ``."""
    return [s for s in _SECTION_SPLIT_RE.split(content) if s.strip()]


async def enhance_blog_content(content: str, topic: str, keywords: list[str]) -> str:
    """Enhance each substantial section of a post.

    Short sections and the conclusion are kept verbatim, as is any section
    whose enhancement fails.
    """
    sections = split_sections(content)
    enhanced: list[str] = []

    for i, section in enumerate(sections):
        title_match = _SECTION_TITLE_RE.search(section)
        title = title_match.group(1) if title_match else f"Section {i + 1}"

        if len(section) < MIN_ENHANCE_SECTION_CHARS or "conclusion" in title.lower():
            enhanced.append(section)
            continue

        try:
            enhanced.append(await enhance_blog_section(section, title, topic, keywords))
        except llm.LLMError as e:
            logger.error(f"Failed to enhance section '{title}': {e}")
            enhanced.append(section)
            continue

        if i < len(sections) - 1 and settings.blog.enhance_delay_seconds > 0:
            await asyncio.sleep(settings.blog.enhance_delay_seconds)

    return "\n\n".join(enhanced)


async def generate_enhanced_blog_post(
    context: str,
    category_name: str,
    topic: str,
    keywords: list[str] | None = None,
    word_count: int = 1500,
    include_faq: bool = True,
    enhance: bool = True,
    reference_material: str | None = None,
) -> GeneratedBlogPost:
    """Generate a post and, optionally, expand its sections.

    Enhancement failures leave the original content in place.
    """
    post = await generate_blog_post(
        context, category_name, topic, keywords, word_count, include_faq, reference_material,
    )
    if enhance and post.content:
        try:
            post.content = await enhance_blog_content(post.content, topic, keywords or [])
            post.read_time_minutes = estimate_read_time(post.content)
        except llm.LLMError as e:
            logger.error(f"Content enhancement failed, using original: {e}")
    return post


async def suggest_blog_topics(
    category_name: str,
    context: str,
    existing: list[str] | None = None,
) -> dict[str, list[dict]]:
    """Five new topic ideas for a category, avoiding ``existing`` titles.

    Raises:
        BlogGenerationError: If the reply cannot be parsed
    """
    prompt = prompts.build_topic_suggestion_prompt(category_name, context, existing or [])
    try:
        data = await llm.complete_json(
            prompts.TOPIC_STRATEGIST_SYSTEM,
            prompt,
            model=settings.openai.blog_model,
            temperature=0.8,
            max_tokens=1500,
        )
        topics = [TopicSuggestion.model_validate(t) for t in data.get("topics") or []]
    except (llm.LLMError, ValidationError) as e:
        raise BlogGenerationError(f"Failed to parse topic suggestions: {e}") from e
    return {"topics": [t.model_dump() for t in topics]}


def html_to_text(html: str) -> str:
    """Readable text from an HTML page, boilerplate tags removed."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style", "nav", "footer", "header", "aside", "iframe", "noscript"]):
        tag.decompose()

    main = soup.find("main") or soup.find("article") or soup.find("body") or soup
    text = main.get_text(separator="\n", strip=True)
    lines = [line.strip() for line in text.split("\n") if line.strip()]
    return normalize_line_breaks("\n".join(lines))


async def fetch_reference_material(
    url: str,
    client: httpx.AsyncClient | None = None,
) -> str:
    """Download a reference page and reduce it to capped plain text.

    Raises:
        BlogGenerationError: On a malformed URL, a network error or a non-2xx response
    """
    owns_client = client is None
    client = client or httpx.AsyncClient(
        timeout=settings.blog.reference_timeout,
        follow_redirects=True,
    )
    try:
        response = await client.get(url, headers={"User-Agent": f"{settings.app_name}/{settings.version}"})
        response.raise_for_status()
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.warning(f"Reference fetch failed for {url}: {e}")
        raise BlogGenerationError(f"Failed to fetch reference URL: {e}") from e
    finally:
        if owns_client:
            await client.aclose()

    content_type = response.headers.get("content-type", "")
    text = html_to_text(response.text) if "html" in content_type else response.text.strip()
    return truncate_chars(text, settings.blog.reference_max_chars)


async def unique_slug(session: AsyncSession, base: str, exclude_id: int | None = None) -> str:
    """``base`` or ``base-N`` with the lowest N not already taken."""
    base = base or "post"
    query = select(models.BlogPost.slug).where(models.BlogPost.slug.like(f"{base}%"))
    if exclude_id is not None:
        query = query.where(models.BlogPost.id != exclude_id)
    taken = set((await session.execute(query)).scalars().all())

    if base not in taken:
        return base
    n = 2
    while f"{base}-{n}" in taken:
        n += 1
    return f"{base}-{n}"


async def _mark_job_failed(session: AsyncSession, job_id: int, message: str) -> None:
    await session.rollback()
    job = await session.get(models.BlogGenerationJob, job_id)
    if job is None:
        return
    job.status = "failed"
    job.error_message = message
    job.completed_at = models.utcnow()
    await session.commit()


async def run_generation_job(
    session: AsyncSession,
    category_id: int,
    category_name: str,
    topic: str,
    keywords: list[str] | None = None,
    *,
    word_count: int = 1500,
    include_faq: bool = True,
    enhance: bool = True,
    reference_url: str | None = None,
    context: str | None = None,
    publish: bool = False,
) -> GenerationOutcome:
    """Generate and store one post, tracking progress in a job row.

    The job is committed as ``processing`` before any model call so a
    failure still leaves an audit record, then marked ``completed`` or
    ``failed``.

    Raises:
        BlogGenerationError: If generation or storage fails
    """
    keywords = list(keywords or [])
    job = models.BlogGenerationJob(
        category_id=category_id,
        topic=topic,
        keywords=keywords,
        status="processing",
    )
    session.add(job)
    await session.commit()
    job_id = job.id
    logger.info(f"Started blog generation job {job_id}: {topic}", extra={"job_id": job_id, "category_id": category_id})

    try:
        if context is None:
            context = await build_blog_context(session, category_id, topic)
        if len(context) < MIN_CONTEXT_CHARS:
            context = default_context(topic, category_name)

        reference_material = None
        if reference_url:
            try:
                reference_material = await fetch_reference_material(reference_url)
            except BlogGenerationError as e:
                logger.warning(f"Continuing without reference page: {e}", extra={"job_id": job_id})

        generated = await generate_enhanced_blog_post(
            context,
            category_name,
            topic,
            keywords,
            word_count,
            include_faq,
            enhance,
            reference_material,
        )

        slug = await unique_slug(session, generated.slug)
        now = models.utcnow()
        post = models.BlogPost(
            category_id=category_id,
            slug=slug,
            title=generated.title,
            excerpt=generated.excerpt,
            content=generated.content,
            author_name=settings.blog.author_name,
            read_time_minutes=generated.read_time_minutes or estimate_read_time(generated.content),
            tags=generated.tags,
            meta_title=generated.meta_title,
            meta_description=generated.meta_description,
            meta_keywords=generated.meta_keywords,
            faq_items=[f.model_dump() for f in generated.faq_items],
            schema_json=generated.schema_markup,
            status="published" if publish else "draft",
            published_at=now if publish else None,
        )
        session.add(post)
        await session.flush()

        job = await session.get(models.BlogGenerationJob, job_id)
        job.status = "completed"
        job.result_post_id = post.id
        job.completed_at = now
        await session.commit()
    except (BlogGenerationError, SQLAlchemyError) as e:
        logger.error(f"Blog generation job {job_id} failed: {e}", extra={"job_id": job_id})
        await _mark_job_failed(session, job_id, str(e))
        if isinstance(e, BlogGenerationError):
            raise
        raise BlogGenerationError(f"Failed to store generated post: {e}") from e
    except Exception as e:
        logger.exception(f"Blog generation job {job_id} failed unexpectedly", extra={"job_id": job_id})
        await _mark_job_failed(session, job_id, str(e))
        raise BlogGenerationError(f"Blog generation failed: {e}") from e

    logger.info(f"Completed blog generation job {job_id} -> post {post.id} ({slug})", extra={"job_id": job_id})
    return GenerationOutcome(
        job_id=job_id,
        post_id=post.id,
        slug=slug,
        title=post.title,
        status=post.status,
    )


async def seed_categories(session: AsyncSession) -> int:
    """Create one category per curriculum topic when none exist.

    Returns:
        Number of categories created
    """
    count = (await session.execute(select(func.count()).select_from(models.BlogCategory))).scalar_one()
    if count:
        return 0

    logger.info("No blog categories found, creating from CFA topics")
    session.add_all([
        models.BlogCategory(
            name=topic["name"],
            slug=slugify(topic["name"]),
            description=f"CFA Level 1 {topic['name']} exam preparation articles",
            sort_order=i + 1,
        )
        for i, topic in enumerate(CFA_LEVEL_1_TOPICS)
    ])
    await session.commit()
    return len(CFA_LEVEL_1_TOPICS)


async def pick_cron_category(session: AsyncSession) -> models.BlogCategory | None:
    """The category with the fewest posts created in the last seven days.

    Ties go to the lowest ``sort_order``.
    """
    since = models.utcnow() - CRON_LOOKBACK
    recent = (
        select(models.BlogPost.category_id, func.count(models.BlogPost.id).label("recent"))
        .where(models.BlogPost.created_at >= since)
        .group_by(models.BlogPost.category_id)
        .subquery()
    )
    result = await session.execute(
        select(models.BlogCategory)
        .outerjoin(recent, recent.c.category_id == models.BlogCategory.id)
        .order_by(func.coalesce(recent.c.recent, 0), models.BlogCategory.sort_order, models.BlogCategory.id)
        .limit(1)
    )
    return result.scalars().first()


def category_keywords(category_name: str) -> list[str]:
    for topic in CFA_LEVEL_1_TOPICS:
        if topic["name"].lower() == category_name.lower():
            return list(topic["blog_keywords"])
    return []


async def run_scheduled_generation(session: AsyncSession) -> dict[str, Any]:
    """Pick a category, choose a fresh topic and publish a post for it."""
    await seed_categories(session)
    category = await pick_cron_category(session)
    if category is None:
        raise BlogGenerationError("Failed to create categories")

    category_id, category_name = category.id, category.name
    fallback_keywords = category_keywords(category_name)

    existing = (await session.execute(
        select(models.BlogPost.title).where(models.BlogPost.category_id == category_id)
    )).scalars().all()

    context = await build_blog_context(session, category_id, category_name)
    if len(context) < MIN_CONTEXT_CHARS:
        context = cron_default_context(category_name)

    suggestions = await suggest_blog_topics(category_name, context, list(existing))
    if not suggestions["topics"]:
        return {"message": "No new topics to generate", "category": category_name}

    chosen = suggestions["topics"][0]
    outcome = await run_generation_job(
        session,
        category_id,
        category_name,
        chosen["title"],
        chosen["keywords"] or fallback_keywords,
        context=context,
        publish=True,
    )
    return {
        "success": True,
        "category": category_name,
        "topic": chosen["title"],
        "post_id": outcome.post_id,
        "slug": outcome.slug,
    }
