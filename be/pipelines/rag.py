"""Retrieval over the CFA training-material index.

Embeds a text query, runs a pgvector cosine search over ``material_chunks``
with an optional topic filter, and assembles the top chunks into a prompt
context block.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ai import llm
from ai.embeddings import EmbeddingError, embed_single
from be import models
from be.config import settings
from be.topics import find_topic

from .normalization import truncate_chars

logger = logging.getLogger(__name__)

DIFFICULTY_HINTS = {
    "beginner": " fundamental concepts basics introduction",
    "advanced": " advanced complex application",
}

CHUNK_SEPARATOR = "\n---\n\n"


class RAGError(Exception):
    """Raised when retrieval fails or finds nothing usable."""
    pass


@dataclass
class RetrievedContext:
    """One retrieved chunk and where it came from."""
    text: str
    topic_id: str
    topic_name: str
    file_name: str
    chunk_index: int
    source: str
    score: float


@dataclass
class QuestionContext:
    """Assembled context for a question prompt."""
    context: str
    source_files: list[str] = field(default_factory=list)
    chunk_count: int = 0


async def search_material_chunks(
    session: AsyncSession,
    query_embedding: list[float],
    *,
    topic_id: str | None = None,
    topic_name: str | None = None,
    top_k: int = 5,
) -> list[RetrievedContext]:
    """Nearest-neighbour search by cosine distance.

    Score is ``1 - cosine_distance`` so higher is more similar.
    """
    distance = models.MaterialChunk.embedding.cosine_distance(query_embedding).label("distance")
    query = select(models.MaterialChunk, distance)
    if topic_id:
        query = query.where(models.MaterialChunk.topic_id == topic_id)
    if topic_name:
        query = query.where(models.MaterialChunk.topic_name == topic_name)
    query = query.order_by(distance).limit(top_k)

    result = await session.execute(query)
    return [
        RetrievedContext(
            text=chunk.content_text or "",
            topic_id=chunk.topic_id,
            topic_name=chunk.topic_name,
            file_name=chunk.file_name,
            chunk_index=chunk.chunk_index,
            source=chunk.source,
            score=1.0 - float(dist),
        )
        for chunk, dist in result.all()
    ]


async def retrieve_context(
    session: AsyncSession,
    query: str,
    *,
    topic_id: str | None = None,
    topic_name: str | None = None,
    top_k: int = 5,
) -> list[RetrievedContext]:
    """Embed ``query`` and return the ``top_k`` closest material chunks.

    Raises:
        RAGError: If embedding or the vector search fails
    """
    try:
        query_embedding = await embed_single(query)
        return await search_material_chunks(
            session,
            query_embedding,
            topic_id=topic_id,
            topic_name=topic_name,
            top_k=top_k,
        )
    except (EmbeddingError, SQLAlchemyError) as e:
        logger.error(f"Error retrieving context: {e}")
        raise RAGError(f"RAG retrieval failed: {e}") from e


def build_question_query(
    topic_area: str,
    subtopic: str | None = None,
    difficulty: str = "intermediate",
    learning_objective_text: str | None = None,
) -> str:
    """Text query used to look up material for a question."""
    query = f"CFA Level 1 {topic_area}"
    if subtopic:
        query += f" {subtopic}"
    if learning_objective_text:
        query += f" {learning_objective_text}"
    return query + DIFFICULTY_HINTS.get(difficulty, "")


def format_context(contexts: list[RetrievedContext]) -> str:
    """Render chunks as numbered, file-attributed blocks."""
    return CHUNK_SEPARATOR.join(
        f"[Source {idx}: {ctx.file_name}]\n{ctx.text}\n"
        for idx, ctx in enumerate(contexts, start=1)
    )


async def retrieve_context_for_question(
    session: AsyncSession,
    topic_area: str,
    subtopic: str | None = None,
    difficulty: str = "intermediate",
    learning_objective_text: str | None = None,
) -> QuestionContext:
    """Retrieve and assemble material for one generated question.

    Known topics are filtered by curriculum id; anything else is filtered by
    the literal topic name.

    Raises:
        RAGError: If retrieval fails or returns no chunks
    """
    query = build_question_query(topic_area, subtopic, difficulty, learning_objective_text)
    top_k = settings.rag.objective_top_k if learning_objective_text else settings.rag.question_top_k

    topic = find_topic(topic_area)
    contexts = await retrieve_context(
        session,
        query,
        topic_id=topic["id"] if topic else None,
        topic_name=None if topic else topic_area,
        top_k=top_k,
    )
    if not contexts:
        raise RAGError(f"No relevant content found for topic: {topic_area}")

    source_files = list(dict.fromkeys(ctx.file_name for ctx in contexts if ctx.file_name))
    context = truncate_chars(format_context(contexts), settings.rag.max_context_chars)

    logger.info(
        f"Retrieved {len(contexts)} chunks for '{topic_area}' from {', '.join(source_files)}",
        extra={"topic_area": topic_area, "chunk_count": len(contexts)},
    )
    return QuestionContext(context=context, source_files=source_files, chunk_count=len(contexts))


async def count_material_chunks(session: AsyncSession) -> int:
    """Number of indexed material chunks."""
    result = await session.execute(select(func.count()).select_from(models.MaterialChunk))
    return int(result.scalar_one())


async def is_rag_configured(session: AsyncSession) -> bool:
    """True when the LLM key is set and the material index is non-empty."""
    if not llm.is_configured():
        return False
    try:
        return await count_material_chunks(session) > 0
    except SQLAlchemyError as e:
        logger.error(f"Error checking RAG configuration: {e}")
        await session.rollback()
        return False
