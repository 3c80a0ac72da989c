"""CFA question generation with the chat completion API.

Three sources of grounding:
1. The model's own curriculum knowledge
2. Caller-supplied source text
3. Retrieved training-material chunks (RAG)

Every reply is parsed into a validated :class:`GeneratedQuestion`.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from ai import llm, prompts
from be.config import settings
from be.topics import resolve_topic

from .rag import RAGError, retrieve_context_for_question

logger = logging.getLogger(__name__)

DIFFICULTIES = ("beginner", "intermediate", "advanced")


class QuestionGenerationError(Exception):
    """Raised when a question cannot be generated or fails validation."""
    pass


class GeneratedQuestion(BaseModel):
    """A validated multiple-choice question."""
    question_text: str = Field(min_length=1)
    option_a: str = Field(min_length=1)
    option_b: str = Field(min_length=1)
    option_c: str = Field(min_length=1)
    correct_answer: Literal["A", "B", "C"]
    explanation: str = ""
    difficulty_level: Literal["beginner", "intermediate", "advanced"] = "intermediate"
    topic_area: str
    subtopic: str | None = None
    keywords: list[str] = Field(default_factory=list)
    source_material: str | None = None
    learning_objective_id: str | None = None
    learning_objective_text: str | None = None
    has_table: bool = False
    table_data: dict | None = None

    @field_validator("correct_answer", mode="before")
    @classmethod
    def _normalize_answer(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper()[:1]
        return value

    @field_validator("keywords", mode="before")
    @classmethod
    def _coerce_keywords(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [k.strip() for k in value.split(",") if k.strip()]
        return value

    @field_validator("subtopic", mode="before")
    @classmethod
    def _blank_subtopic(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value


def _check_difficulty(difficulty: str) -> str:
    if difficulty not in DIFFICULTIES:
        raise QuestionGenerationError(
            f"Invalid difficulty: {difficulty}. Must be one of: {', '.join(DIFFICULTIES)}"
        )
    return difficulty


def build_question(data: dict[str, Any], **overrides: Any) -> GeneratedQuestion:
    """Validate a parsed model reply, applying caller overrides on top.

    Raises:
        QuestionGenerationError: If required fields are missing or the
            answer is not A, B or C
    """
    payload = {**data, **{k: v for k, v in overrides.items() if v is not None}}
    if not payload.get("difficulty_level"):
        payload["difficulty_level"] = "intermediate"
    try:
        return GeneratedQuestion.model_validate(payload)
    except ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        raise QuestionGenerationError(f"Invalid question structure ({fields})") from e


async def _ask(system: str, prompt: str, model: str) -> dict[str, Any]:
    try:
        return await llm.complete_json(system, prompt, model=model, temperature=0.7, max_tokens=2000)
    except llm.LLMError as e:
        raise QuestionGenerationError(f"Failed to generate question: {e}") from e


async def generate_cfa_question(
    topic_area: str,
    difficulty: str = "intermediate",
    subtopic: str | None = None,
) -> GeneratedQuestion:
    """Generate a question from the model's own curriculum knowledge.

    Args:
        topic_area: Topic id or name; close spellings are accepted
        difficulty: beginner, intermediate or advanced
        subtopic: Optional narrower focus

    Raises:
        InvalidTopicError: If the topic is not in the curriculum
        QuestionGenerationError: If generation or validation fails
    """
    topic = resolve_topic(topic_area)
    _check_difficulty(difficulty)

    prompt = prompts.build_question_prompt(topic["name"], difficulty, subtopic)
    data = await _ask(prompts.QUESTION_WRITER_SYSTEM, prompt, settings.openai.question_model)
    question = build_question(data, topic_area=topic["name"], difficulty_level=difficulty)
    logger.info(f"Generated question for {topic['name']}", extra={"topic_area": topic["name"]})
    return question


async def generate_question_with_context(
    topic_area: str,
    source_text: str,
    difficulty: str = "intermediate",
) -> GeneratedQuestion:
    """Generate a question grounded in ``source_text``.

    Raises:
        InvalidTopicError: If the topic is not in the curriculum
        QuestionGenerationError: If generation or validation fails
    """
    topic = resolve_topic(topic_area)
    _check_difficulty(difficulty)
    if not source_text or not source_text.strip():
        raise QuestionGenerationError("Source text is required")

    prompt = prompts.build_context_question_prompt(topic["name"], source_text, difficulty)
    data = await _ask(prompts.CONTEXT_WRITER_SYSTEM, prompt, settings.openai.question_model)
    return build_question(
        data,
        topic_area=topic["name"],
        difficulty_level=difficulty,
        source_material="Custom context",
    )


async def generate_rag_question(
    session: AsyncSession,
    topic_area: str,
    difficulty: str = "intermediate",
    subtopic: str | None = None,
    learning_objective_id: str | None = None,
    learning_objective_text: str | None = None,
) -> GeneratedQuestion:
    """Generate a question grounded in retrieved training material.

    Raises:
        RAGError: If no material could be retrieved
        QuestionGenerationError: If generation or validation fails
    """
    _check_difficulty(difficulty)
    retrieved = await retrieve_context_for_question(
        session,
        topic_area,
        subtopic=subtopic,
        difficulty=difficulty,
        learning_objective_text=learning_objective_text,
    )

    prompt = prompts.build_rag_question_prompt(
        retrieved.context,
        topic_area,
        difficulty,
        subtopic=subtopic,
        learning_objective_id=learning_objective_id,
        learning_objective_text=learning_objective_text,
    )
    data = await _ask(prompts.RAG_WRITER_SYSTEM, prompt, settings.openai.rag_question_model)
    question = build_question(
        data,
        topic_area=topic_area,
        difficulty_level=difficulty,
        subtopic=subtopic,
        source_material=f"RAG: {', '.join(retrieved.source_files)}",
        learning_objective_id=learning_objective_id,
        learning_objective_text=learning_objective_text,
    )
    logger.info(
        f"Generated RAG question for {topic_area} from {retrieved.chunk_count} chunks",
        extra={"topic_area": topic_area, "chunk_count": retrieved.chunk_count},
    )
    return question


async def generate_multiple_rag_questions(
    session: AsyncSession,
    topic_area: str,
    count: int,
    difficulty: str = "intermediate",
    subtopic: str | None = None,
    learning_objective_id: str | None = None,
    learning_objective_text: str | None = None,
    delay_seconds: float | None = None,
) -> list[GeneratedQuestion]:
    """Generate ``count`` RAG questions one after another.

    Failed attempts are logged and skipped, so fewer than ``count`` may be
    returned.
    """
    delay = settings.rag.question_delay_seconds if delay_seconds is None else delay_seconds
    questions: list[GeneratedQuestion] = []

    for attempt in range(count):
        try:
            questions.append(await generate_rag_question(
                session,
                topic_area,
                difficulty,
                subtopic,
                learning_objective_id,
                learning_objective_text,
            ))
        except (RAGError, QuestionGenerationError) as e:
            logger.error(
                f"Failed to generate question {attempt + 1}/{count}: {e}",
                extra={"topic_area": topic_area, "attempt": attempt + 1},
            )
        if attempt < count - 1 and delay > 0:
            await asyncio.sleep(delay)

    return questions
