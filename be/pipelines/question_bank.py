"""Question bank persistence, listing and statistics."""
from __future__ import annotations

import logging
import re
from collections import defaultdict
from typing import Any, Iterable

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from be import models
from be.topics import find_topic

logger = logging.getLogger(__name__)

SAVE_BATCH_SIZE = 25
STATS_PAGE_SIZE = 1000
VALID_ANSWERS = ("A", "B", "C")

# Spreadsheet header aliases, matched after lowercasing
IMPORT_COLUMNS = {
    "question_text": ("question_text", "question", "stem"),
    "option_a": ("option_a", "a", "choice_a"),
    "option_b": ("option_b", "b", "choice_b"),
    "option_c": ("option_c", "c", "choice_c"),
    "correct_answer": ("correct_answer", "answer", "correct"),
    "explanation": ("explanation", "rationale"),
    "topic_area": ("topic_area", "topic"),
    "subtopic": ("subtopic", "reading"),
    "difficulty_level": ("difficulty_level", "difficulty"),
    "keywords": ("keywords", "tags"),
    "learning_objective_id": ("learning_objective_id", "lo_id", "lo"),
}


class QuestionBankError(Exception):
    """Raised when no question in a save request could be stored."""

    def __init__(self, message: str, errors: list[str] | None = None):
        super().__init__(message)
        self.errors = errors or []


def question_to_dict(question: models.Question) -> dict[str, Any]:
    return {
        "id": question.id,
        "topic_area": question.topic_area,
        "subtopic": question.subtopic,
        "difficulty_level": question.difficulty_level,
        "question_text": question.question_text,
        "option_a": question.option_a,
        "option_b": question.option_b,
        "option_c": question.option_c,
        "correct_answer": question.correct_answer,
        "explanation": question.explanation,
        "keywords": question.keywords or [],
        "learning_objective_id": question.learning_objective_id,
        "has_table": question.has_table,
        "table_data": question.table_data,
        "source": question.source,
        "is_active": question.is_active,
        "created_at": question.created_at.isoformat() if question.created_at else None,
    }


def to_question_row(payload: dict[str, Any], created_by: str | None = None) -> models.Question:
    """Map an incoming payload to a row, filling defaults."""
    has_table = bool(payload.get("has_table"))
    return models.Question(
        topic_area=payload.get("topic_area"),
        subtopic=payload.get("subtopic") or None,
        difficulty_level=payload.get("difficulty_level"),
        question_text=payload["question_text"],
        option_a=payload["option_a"],
        option_b=payload["option_b"],
        option_c=payload["option_c"],
        correct_answer=payload["correct_answer"],
        explanation=payload.get("explanation"),
        keywords=payload.get("keywords") or [],
        learning_objective_id=payload.get("learning_objective_id") or None,
        has_table=has_table,
        table_data=payload.get("table_data") or None,
        source=payload.get("source") or ("RAG-Generated (Table)" if has_table else "RAG-Generated"),
        is_active=True,
        created_by=created_by,
    )


async def save_questions(
    session: AsyncSession,
    payloads: list[dict[str, Any]],
    created_by: str | None = None,
) -> dict[str, Any]:
    """Insert questions in batches of 25, each batch in its own transaction.

    A failing batch is rolled back and reported; the others still commit.

    Returns:
        ``saved_count``, ``total_attempted``, ``errors`` (or None) and the
        saved ``questions`` as dicts

    Raises:
        QuestionBankError: If every batch failed
    """
    saved: list[dict[str, Any]] = []
    errors: list[str] = []
    total_batches = (len(payloads) + SAVE_BATCH_SIZE - 1) // SAVE_BATCH_SIZE

    for start in range(0, len(payloads), SAVE_BATCH_SIZE):
        batch_number = start // SAVE_BATCH_SIZE + 1
        batch = payloads[start:start + SAVE_BATCH_SIZE]
        logger.info(f"Inserting batch {batch_number}/{total_batches} ({len(batch)} questions)")
        try:
            rows = [to_question_row(p, created_by) for p in batch]
            session.add_all(rows)
            await session.commit()
        except (SQLAlchemyError, KeyError) as e:
            await session.rollback()
            message = f"missing field {e}" if isinstance(e, KeyError) else str(e)
            logger.error(f"Error saving batch {batch_number}: {message}")
            errors.append(f"Batch {batch_number}: {message}")
            continue
        saved.extend(question_to_dict(r) for r in rows)

    if errors and not saved:
        raise QuestionBankError("Failed to save questions", errors)

    return {
        "success": True,
        "saved_count": len(saved),
        "total_attempted": len(payloads),
        "errors": errors or None,
        "questions": saved,
    }


async def compute_question_stats(session: AsyncSession) -> dict[str, Any]:
    """Per-topic totals, difficulty split and learning-objective coverage."""
    topic_stats: dict[str, dict[str, Any]] = {}
    total = active = with_lo = 0
    offset = 0

    while True:
        result = await session.execute(
            select(
                models.Question.topic_area,
                models.Question.difficulty_level,
                models.Question.is_active,
                models.Question.learning_objective_id,
            )
            .order_by(models.Question.id)
            .offset(offset)
            .limit(STATS_PAGE_SIZE)
        )
        page = result.all()

        for topic_area, difficulty, is_active, lo_id in page:
            topic = topic_area or "Uncategorized"
            stats = topic_stats.setdefault(topic, {
                "total": 0,
                "active": 0,
                "beginner": 0,
                "intermediate": 0,
                "advanced": 0,
                "learningObjectives": defaultdict(int),
            })
            stats["total"] += 1
            total += 1

            if is_active is not False:
                stats["active"] += 1
                active += 1

            difficulty = difficulty or "intermediate"
            if difficulty in ("beginner", "intermediate", "advanced"):
                stats[difficulty] += 1

            if lo_id:
                with_lo += 1
                stats["learningObjectives"][lo_id] += 1

        if len(page) < STATS_PAGE_SIZE:
            break
        offset += STATS_PAGE_SIZE

    for stats in topic_stats.values():
        stats["learningObjectives"] = dict(stats["learningObjectives"])

    return {
        "topicStats": topic_stats,
        "summary": {
            "totalQuestions": total,
            "totalActive": active,
            "totalTopics": len(topic_stats),
            "totalWithLO": with_lo,
        },
    }


async def list_questions(
    session: AsyncSession,
    topic_area: str | None = None,
    difficulty: str | None = None,
    limit: int = 10,
    offset: int = 0,
) -> list[dict[str, Any]]:
    """Active questions, newest first."""
    query = select(models.Question).where(models.Question.is_active.is_(True))
    if topic_area:
        query = query.where(models.Question.topic_area == topic_area)
    if difficulty:
        query = query.where(models.Question.difficulty_level == difficulty)
    query = query.order_by(models.Question.created_at.desc(), models.Question.id.desc())
    query = query.offset(offset).limit(limit)

    result = await session.execute(query)
    return [question_to_dict(q) for q in result.scalars().all()]


def _cell(row: dict[str, Any], field: str) -> Any:
    for alias in IMPORT_COLUMNS[field]:
        value = row.get(alias)
        if value is not None and str(value).strip():
            return value
    return None


def _as_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def row_to_payload(row: dict[str, Any]) -> dict[str, Any] | None:
    """Map one spreadsheet row; None when required fields are missing."""
    payload = {field: _as_text(_cell(row, field)) for field in IMPORT_COLUMNS}

    answer = (payload["correct_answer"] or "").upper()[:1]
    if not all(payload[f] for f in ("question_text", "option_a", "option_b", "option_c")):
        return None
    if answer not in VALID_ANSWERS:
        return None
    payload["correct_answer"] = answer

    topic = find_topic(payload["topic_area"])
    if topic is not None:
        payload["topic_area"] = topic["name"]

    difficulty = (payload["difficulty_level"] or "intermediate").lower()
    payload["difficulty_level"] = difficulty if difficulty in ("beginner", "intermediate", "advanced") else "intermediate"

    keywords = payload["keywords"]
    payload["keywords"] = [k.strip() for k in re.split(r"[,;]", keywords) if k.strip()] if keywords else []
    payload["source"] = "Imported"
    return payload


async def import_questions(
    session: AsyncSession,
    rows: Iterable[dict[str, Any]],
    created_by: str | None = None,
) -> dict[str, Any]:
    """Validate spreadsheet rows and save the usable ones.

    Row numbers in ``skipped_rows`` are 1-based and exclude the header.

    Raises:
        QuestionBankError: If no row is usable or saving fails entirely
    """
    payloads: list[dict[str, Any]] = []
    skipped: list[int] = []
    for number, row in enumerate(rows, start=1):
        payload = row_to_payload(row)
        if payload is None:
            skipped.append(number)
        else:
            payloads.append(payload)

    if not payloads:
        raise QuestionBankError("No valid question rows found", [f"Row {n}: missing fields" for n in skipped])

    logger.info(f"Importing {len(payloads)} questions ({len(skipped)} rows skipped)")
    result = await save_questions(session, payloads, created_by)
    result["skipped_rows"] = skipped
    return result
