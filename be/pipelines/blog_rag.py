"""Retrieval over uploaded blog reference documents.

Resources are chunked and embedded per category. Blog generation pulls the
category's chunks directly and only falls back to a semantic search when
the category has no direct content.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ai.embeddings import EmbeddingError, embed_single, embed_texts
from be import models
from be.config import settings

from .chunking import chunk_text
from .normalization import truncate_chars

logger = logging.getLogger(__name__)

CHUNK_SEPARATOR = "\n\n---\n\n"
DIRECT_CONTEXT_CHUNKS = 30
SEARCH_CONTEXT_CHUNKS = 15
CHARS_PER_TOKEN = 4


@dataclass
class BlogResourceMatch:
    """A resource chunk returned by search."""
    id: int
    file_name: str
    chunk_index: int
    content_text: str
    similarity: float


async def _fallback_resources(
    session: AsyncSession,
    category_id: int,
    limit: int,
) -> list[BlogResourceMatch]:
    result = await session.execute(
        select(models.BlogResource)
        .where(models.BlogResource.category_id == category_id)
        .where(models.BlogResource.content_text.is_not(None))
        .order_by(models.BlogResource.chunk_index, models.BlogResource.id)
        .limit(limit)
    )
    return [
        BlogResourceMatch(
            id=r.id,
            file_name=r.file_name,
            chunk_index=r.chunk_index,
            content_text=r.content_text,
            similarity=1.0,
        )
        for r in result.scalars().all()
    ]


async def search_blog_resources(
    session: AsyncSession,
    category_id: int,
    query: str,
    limit: int = 10,
) -> list[BlogResourceMatch]:
    """Semantic search over one category's reference chunks.

    Matches below ``settings.blog.match_threshold`` similarity are dropped.
    When embedding or the vector query fails the first ``limit`` chunks in
    document order are returned with similarity 1.0.
    """
    try:
        query_embedding = await embed_single(query)
        distance = models.BlogResource.embedding.cosine_distance(query_embedding).label("distance")
        result = await session.execute(
            select(models.BlogResource, distance)
            .where(models.BlogResource.category_id == category_id)
            .where(models.BlogResource.embedding.is_not(None))
            .where(distance <= 1 - settings.blog.match_threshold)
            .order_by(distance)
            .limit(limit)
        )
        return [
            BlogResourceMatch(
                id=r.id,
                file_name=r.file_name,
                chunk_index=r.chunk_index,
                content_text=r.content_text or "",
                similarity=1.0 - float(dist),
            )
            for r, dist in result.all()
        ]
    except (EmbeddingError, SQLAlchemyError) as e:
        logger.warning(
            f"Vector search failed for category {category_id}, using direct query: {e}",
            extra={"category_id": category_id},
        )
        await session.rollback()
        return await _fallback_resources(session, category_id, limit)


async def get_blog_category_content(
    session: AsyncSession,
    category_id: int,
    max_chunks: int = 20,
) -> str:
    """All of a category's chunks in order, separated by rules.

    Returns an empty string when the category has no resources or the query
    fails.
    """
    try:
        result = await session.execute(
            select(models.BlogResource.content_text)
            .where(models.BlogResource.category_id == category_id)
            .where(models.BlogResource.content_text.is_not(None))
            .order_by(models.BlogResource.chunk_index, models.BlogResource.id)
            .limit(max_chunks)
        )
    except SQLAlchemyError as e:
        logger.error(f"Error fetching category content: {e}", extra={"category_id": category_id})
        await session.rollback()
        return ""
    return CHUNK_SEPARATOR.join(result.scalars().all())


async def build_blog_context(
    session: AsyncSession,
    category_id: int,
    topic: str,
    max_tokens: int | None = None,
) -> str:
    """Reference text for a blog prompt, capped at roughly ``max_tokens``."""
    max_tokens = max_tokens or settings.blog.max_context_tokens

    context = await get_blog_category_content(session, category_id, DIRECT_CONTEXT_CHUNKS)
    if not context:
        matches = await search_blog_resources(
            session,
            category_id,
            f"{topic} CFA Level 1 exam preparation",
            SEARCH_CONTEXT_CHUNKS,
        )
        context = CHUNK_SEPARATOR.join(m.content_text for m in matches)

    return truncate_chars(context, max_tokens * CHARS_PER_TOKEN)


async def store_blog_document_chunks(
    session: AsyncSession,
    category_id: int,
    file_name: str,
    file_path: str,
    file_type: str,
    text: str,
    uploaded_by: str | None = None,
) -> int:
    """Chunk, embed and store a reference document.

    Returns:
        Number of chunks stored
    """
    chunks = chunk_text(text, settings.blog.chunk_size, settings.blog.chunk_overlap)
    if not chunks:
        return 0

    batch_size = settings.blog.embed_batch_size
    processed_at = models.utcnow()
    for start in range(0, len(chunks), batch_size):
        batch = chunks[start:start + batch_size]
        vectors = await embed_texts(batch)
        session.add_all([
            models.BlogResource(
                category_id=category_id,
                file_name=file_name,
                file_path=file_path,
                file_type=file_type,
                content_text=chunk,
                chunk_index=start + offset,
                embedding=vector,
                processed_at=processed_at,
                uploaded_by=uploaded_by,
            )
            for offset, (chunk, vector) in enumerate(zip(batch, vectors))
        ])
        if start + batch_size < len(chunks):
            await asyncio.sleep(settings.blog.embed_batch_delay_seconds)

    await session.commit()
    logger.info(
        f"Stored {len(chunks)} chunks from {file_name}",
        extra={"category_id": category_id, "chunk_count": len(chunks)},
    )
    return len(chunks)
