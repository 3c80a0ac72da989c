"""Admin blog endpoints: categories, posts, generation and reference uploads."""
from __future__ import annotations

import logging
import math
from io import BytesIO
from pathlib import Path
from typing import Any

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from .. import models
from ..config import settings
from ..db import get_session
from ..deps import require_admin
from ..indexing import post_url, submit_to_search_engines
from ..pipelines.blog_generation import run_generation_job, suggest_blog_topics
from ..pipelines.blog_rag import build_blog_context
from ..pipelines.ingest import ingest_blog_resource
from ..schemas import (
    CategoryCreate,
    GenerateBlogRequest,
    PostCreate,
    PostUpdate,
    SuggestTopicsRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/admin/blog",
    tags=["admin-blog"],
    dependencies=[Depends(require_admin)],
)

RESOURCE_EXTENSIONS = {".pdf", ".txt", ".md"}


def _iso(value) -> str | None:
    return value.isoformat() if value is not None else None


def category_to_dict(category: models.BlogCategory) -> dict[str, Any]:
    return {
        "id": category.id,
        "name": category.name,
        "slug": category.slug,
        "description": category.description,
        "icon": category.icon,
        "sort_order": category.sort_order,
        "created_at": _iso(category.created_at),
    }


def post_to_dict(post: models.BlogPost, category: models.BlogCategory | None = None) -> dict[str, Any]:
    data = {
        "id": post.id,
        "category_id": post.category_id,
        "slug": post.slug,
        "title": post.title,
        "excerpt": post.excerpt,
        "content": post.content,
        "featured_image": post.featured_image,
        "author_name": post.author_name,
        "author_title": post.author_title,
        "read_time_minutes": post.read_time_minutes,
        "tags": post.tags or [],
        "meta_title": post.meta_title,
        "meta_description": post.meta_description,
        "meta_keywords": post.meta_keywords or [],
        "faq_items": post.faq_items or [],
        "schema_json": post.schema_json,
        "status": post.status,
        "published_at": _iso(post.published_at),
        "created_at": _iso(post.created_at),
        "updated_at": _iso(post.updated_at),
    }
    if category is not None:
        data["blog_categories"] = {"id": category.id, "name": category.name, "slug": category.slug}
    return data


def job_to_dict(job: models.BlogGenerationJob, category_name: str | None = None) -> dict[str, Any]:
    return {
        "id": job.id,
        "category_id": job.category_id,
        "topic": job.topic,
        "keywords": job.keywords or [],
        "status": job.status,
        "result_post_id": job.result_post_id,
        "error_message": job.error_message,
        "created_at": _iso(job.created_at),
        "completed_at": _iso(job.completed_at),
        "blog_categories": {"name": category_name} if category_name else None,
    }


async def _get_category_or_404(session: AsyncSession, category_id: int) -> models.BlogCategory:
    category = await session.get(models.BlogCategory, category_id)
    if category is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Category not found")
    return category


async def _get_post_or_404(session: AsyncSession, post_id: int) -> models.BlogPost:
    post = await session.get(models.BlogPost, post_id)
    if post is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Post not found")
    return post


async def _slug_taken(session: AsyncSession, slug: str, exclude_id: int | None = None) -> bool:
    query = select(models.BlogPost.id).where(models.BlogPost.slug == slug)
    if exclude_id is not None:
        query = query.where(models.BlogPost.id != exclude_id)
    return (await session.execute(query)).first() is not None


@router.get("/categories")
async def list_categories(session: AsyncSession = Depends(get_session)) -> dict:
    """Categories in display order with resource and post counts.

    Resource counts are per uploaded file, not per chunk.
    """
    categories = (await session.execute(
        select(models.BlogCategory).order_by(models.BlogCategory.sort_order, models.BlogCategory.id)
    )).scalars().all()

    resource_counts = dict((await session.execute(
        select(models.BlogResource.category_id, func.count())
        .where(models.BlogResource.chunk_index == 0)
        .group_by(models.BlogResource.category_id)
    )).all())

    post_counts: dict[int, dict[str, int]] = {}
    rows = await session.execute(
        select(models.BlogPost.category_id, models.BlogPost.status, func.count())
        .group_by(models.BlogPost.category_id, models.BlogPost.status)
    )
    for category_id, post_status, count in rows.all():
        counts = post_counts.setdefault(category_id, {"total": 0, "published": 0, "draft": 0})
        counts["total"] += count
        if post_status in ("published", "draft"):
            counts[post_status] += count

    empty = {"total": 0, "published": 0, "draft": 0}
    return {
        "categories": [
            {
                **category_to_dict(c),
                "resource_count": resource_counts.get(c.id, 0),
                "post_count": post_counts.get(c.id, empty)["total"],
                "published_count": post_counts.get(c.id, empty)["published"],
                "draft_count": post_counts.get(c.id, empty)["draft"],
            }
            for c in categories
        ]
    }


@router.post("/categories", status_code=status.HTTP_201_CREATED)
async def create_category(
    request: CategoryCreate,
    session: AsyncSession = Depends(get_session),
) -> dict:
    """Create a category at the end of the display order."""
    existing = (await session.execute(
        select(models.BlogCategory.id).where(models.BlogCategory.slug == request.slug)
    )).first()
    if existing:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Slug already exists")

    max_order = (await session.execute(select(func.max(models.BlogCategory.sort_order)))).scalar()
    category = models.BlogCategory(
        name=request.name,
        slug=request.slug,
        description=request.description,
        icon=request.icon,
        sort_order=(max_order or 0) + 1,
    )
    session.add(category)
    await session.commit()
    logger.info(f"Created blog category {category.slug}", extra={"category_id": category.id})
    return {"category": category_to_dict(category)}


@router.get("/posts")
async def list_posts(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    status_filter: str | None = Query(default=None, alias="status"),
    category: int | None = Query(default=None),
    session: AsyncSession = Depends(get_session),
) -> dict:
    """Newest posts first, optionally filtered by status and category."""
    filters = []
    if status_filter:
        filters.append(models.BlogPost.status == status_filter)
    if category is not None:
        filters.append(models.BlogPost.category_id == category)

    total = (await session.execute(
        select(func.count()).select_from(models.BlogPost).where(*filters)
    )).scalar_one()

    rows = await session.execute(
        select(models.BlogPost, models.BlogCategory)
        .outerjoin(models.BlogCategory, models.BlogCategory.id == models.BlogPost.category_id)
        .where(*filters)
        .order_by(models.BlogPost.created_at.desc(), models.BlogPost.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return {
        "posts": [post_to_dict(p, c) for p, c in rows.all()],
        "total": total,
        "page": page,
        "totalPages": math.ceil(total / limit),
    }


@router.post("/posts", status_code=status.HTTP_201_CREATED)
async def create_post(
    request: PostCreate,
    session: AsyncSession = Depends(get_session),
) -> dict:
    """Create a draft post by hand."""
    if await _slug_taken(session, request.slug):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Slug already exists")
    await _get_category_or_404(session, request.category_id)

    post = models.BlogPost(
        category_id=request.category_id,
        slug=request.slug,
        title=request.title,
        excerpt=request.excerpt,
        content=request.content,
        featured_image=request.featured_image,
        author_name=request.author_name or settings.blog.author_name,
        author_title=request.author_title,
        read_time_minutes=request.read_time_minutes or 5,
        tags=request.tags,
        meta_title=request.meta_title,
        meta_description=request.meta_description,
        meta_keywords=request.meta_keywords,
        faq_items=[f.model_dump() for f in request.faq_items],
        status="draft",
    )
    session.add(post)
    await session.commit()
    return {"post": post_to_dict(post)}


@router.get("/posts/{post_id}")
async def get_post(post_id: int, session: AsyncSession = Depends(get_session)) -> dict:
    post = await _get_post_or_404(session, post_id)
    category = await session.get(models.BlogCategory, post.category_id) if post.category_id else None
    return {"post": post_to_dict(post, category)}


@router.patch("/posts/{post_id}")
async def update_post(
    post_id: int,
    request: PostUpdate,
    session: AsyncSession = Depends(get_session),
) -> dict:
    """Apply a partial update.

    The first transition to ``published`` stamps ``published_at`` and
    submits the post URL to search engines.
    """
    post = await _get_post_or_404(session, post_id)
    updates = request.model_dump(exclude_unset=True)

    if updates.get("slug") and await _slug_taken(session, updates["slug"], exclude_id=post_id):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Slug already exists")
    if updates.get("category_id") is not None:
        await _get_category_or_404(session, updates["category_id"])

    first_publish = updates.get("status") == "published" and post.published_at is None
    for field, value in updates.items():
        setattr(post, field, value)
    if first_publish:
        post.published_at = models.utcnow()

    await session.commit()
    await session.refresh(post)
    response = {"post": post_to_dict(post)}

    if first_publish:
        response["indexing"] = await submit_to_search_engines(post_url(post.slug))
    return response


@router.delete("/posts/{post_id}")
async def delete_post(post_id: int, session: AsyncSession = Depends(get_session)) -> dict:
    post = await _get_post_or_404(session, post_id)
    await session.delete(post)
    await session.commit()
    logger.info(f"Deleted blog post {post_id}")
    return {"success": True}


@router.get("/generate")
async def list_generation_jobs(session: AsyncSession = Depends(get_session)) -> dict:
    """The 10 most recent generation jobs."""
    rows = await session.execute(
        select(models.BlogGenerationJob, models.BlogCategory.name)
        .outerjoin(models.BlogCategory, models.BlogCategory.id == models.BlogGenerationJob.category_id)
        .order_by(models.BlogGenerationJob.created_at.desc(), models.BlogGenerationJob.id.desc())
        .limit(10)
    )
    return {"jobs": [job_to_dict(job, name) for job, name in rows.all()]}


@router.post("/generate")
async def generate_post(
    request: GenerateBlogRequest,
    session: AsyncSession = Depends(get_session),
) -> dict:
    """Generate a draft post for a category."""
    category = await _get_category_or_404(session, request.category_id)

    outcome = await run_generation_job(
        session,
        category.id,
        category.name,
        request.topic,
        request.keywords,
        word_count=request.word_count,
        include_faq=request.include_faq,
        enhance=request.enhance_content,
        reference_url=request.reference_url,
    )

    job = await session.get(models.BlogGenerationJob, outcome.job_id)
    post = await session.get(models.BlogPost, outcome.post_id)
    return {"job": job_to_dict(job), "post": post_to_dict(post)}


@router.post("/suggest-topics")
async def suggest_topics(
    request: SuggestTopicsRequest,
    session: AsyncSession = Depends(get_session),
) -> dict:
    """Five topic ideas that avoid the category's existing titles."""
    category = await _get_category_or_404(session, request.category_id)
    category_id, category_name = category.id, category.name

    existing = (await session.execute(
        select(models.BlogPost.title).where(models.BlogPost.category_id == category_id)
    )).scalars().all()

    context = await build_blog_context(session, category_id, category_name)
    if not context:
        context = (
            f"CFA Level 1 {category_name} exam preparation content.\n"
            "This includes topics relevant to candidates studying for the CFA Level 1 exam.\n"
            "Focus areas include exam strategies, key concepts, common mistakes, and study tips."
        )

    return await suggest_blog_topics(category_name, context, list(existing))


@router.post("/resources", status_code=status.HTTP_201_CREATED)
async def upload_resource(
    category_id: int = Form(...),
    file: UploadFile = File(..., description="Reference document (PDF, TXT or MD)"),
    uploaded_by: str | None = Form(default=None),
    session: AsyncSession = Depends(get_session),
) -> dict:
    """Upload a reference document and index it for the category."""
    if not file.filename:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Filename is required")

    suffix = Path(file.filename).suffix.lower()
    if suffix not in RESOURCE_EXTENSIONS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unsupported file type. Allowed: {', '.join(sorted(RESOURCE_EXTENSIONS))}",
        )

    await _get_category_or_404(session, category_id)
    logger.info(f"Received blog resource upload: {file.filename}", extra={"category_id": category_id})

    try:
        content = await file.read()
        chunks = await ingest_blog_resource(
            session,
            category_id,
            BytesIO(content),
            file.filename,
            uploaded_by=uploaded_by,
        )
    finally:
        await file.close()

    return {"success": True, "file_name": file.filename, "category_id": category_id, "chunks": chunks}
