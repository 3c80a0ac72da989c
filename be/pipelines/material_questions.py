"""Question generation straight from the training-material PDFs.

No vector index involved: the topic folder's PDFs are parsed, split into
paragraph groups, and each question is written from one randomly chosen
group.
"""
from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass, field
from pathlib import Path

from ai import llm, prompts
from be.config import settings
from be.parsers import ParseError, parse_pdf_path
from config.curriculum import TOPIC_FOLDER_MAP

from .chunking import chunk_paragraphs
from .question_generation import GeneratedQuestion, QuestionGenerationError, build_question

logger = logging.getLogger(__name__)

DOCUMENT_SEPARATOR = "\n\n=== NEXT DOCUMENT ===\n\n"
SUBTOPIC_MATCH_CHARS = 15


class MaterialError(Exception):
    """Raised when a topic's training material cannot be found or read."""
    pass


@dataclass
class MaterialGenerationResult:
    """Outcome of a material-based generation run."""
    questions: list[GeneratedQuestion] = field(default_factory=list)
    success_count: int = 0
    failed_count: int = 0
    source_files: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "questions": [q.model_dump() for q in self.questions],
            "success_count": self.success_count,
            "failed_count": self.failed_count,
            "source_files": self.source_files,
            "errors": self.errors or None,
        }


def materials_root() -> Path:
    return Path(settings.materials.root)


def get_pdf_files_for_topic(topic_id: str, subtopic_name: str | None = None) -> list[Path]:
    """PDFs in a topic's folder, narrowed to the subtopic when any match.

    A file matches when its name contains the first 15 characters of the
    subtopic name, case-insensitively.

    Raises:
        MaterialError: If the topic id is unknown or its folder is missing
    """
    folder_name = TOPIC_FOLDER_MAP.get(topic_id)
    if not folder_name:
        raise MaterialError(f"Unknown topic ID: {topic_id}")

    topic_path = materials_root() / folder_name
    if not topic_path.is_dir():
        raise MaterialError(f"Training material folder not found: {topic_path}")

    pdf_files = sorted(p for p in topic_path.iterdir() if p.suffix.lower() == ".pdf")

    if subtopic_name:
        needle = subtopic_name.lower()[:SUBTOPIC_MATCH_CHARS]
        matching = [p for p in pdf_files if needle in p.name.lower()]
        if matching:
            pdf_files = matching

    return pdf_files


def get_available_topics() -> dict[str, list[str]]:
    """PDF file names per topic id; empty list when a folder is unreadable."""
    available: dict[str, list[str]] = {}
    for topic_id in TOPIC_FOLDER_MAP:
        try:
            available[topic_id] = [p.name for p in get_pdf_files_for_topic(topic_id)]
        except MaterialError as e:
            logger.warning(f"Error reading topic {topic_id}: {e}")
            available[topic_id] = []
    return available


def select_chunk(text: str, rng: random.Random | None = None) -> str:
    """Pick one paragraph group at random, or the head of the text if none."""
    chunks = chunk_paragraphs(
        text,
        settings.materials.question_chunk_chars,
        settings.materials.min_chunk_chars,
    )
    if not chunks:
        return text[:settings.materials.question_chunk_chars]
    return (rng or random).choice(chunks)


async def generate_question_from_text(
    topic_name: str,
    subtopic_name: str | None,
    text: str,
    difficulty: str,
    rng: random.Random | None = None,
) -> GeneratedQuestion:
    """Write one question from a random chunk of ``text``.

    Raises:
        QuestionGenerationError: If the completion fails or is invalid
    """
    chunk = select_chunk(text, rng)
    prompt = prompts.build_material_question_prompt(topic_name, subtopic_name, chunk, difficulty)
    try:
        data = await llm.complete_json(
            prompts.MATERIAL_WRITER_SYSTEM,
            prompt,
            model=settings.openai.question_model,
            temperature=0.7,
            max_tokens=2000,
        )
    except llm.LLMError as e:
        raise QuestionGenerationError(f"Failed to generate question: {e}") from e
    return build_question(data, topic_area=topic_name, difficulty_level=difficulty)


async def generate_questions_from_material(
    topic_id: str,
    topic_name: str,
    difficulty: str = "intermediate",
    count: int = 1,
    subtopic_name: str | None = None,
    delay_seconds: float | None = None,
    rng: random.Random | None = None,
) -> MaterialGenerationResult:
    """Generate ``count`` questions from a topic's PDFs.

    Unreadable PDFs and failed questions are recorded in ``errors``.

    Raises:
        MaterialError: If there are no PDFs or none could be read
    """
    pdf_files = get_pdf_files_for_topic(topic_id, subtopic_name)
    if not pdf_files:
        raise MaterialError(f"No PDF files found for topic: {topic_name}")

    logger.info(f"Found {len(pdf_files)} PDF files for {topic_name}", extra={"topic_area": topic_name})
    result = MaterialGenerationResult(source_files=[p.name for p in pdf_files])

    texts: list[str] = []
    for pdf_file in pdf_files:
        try:
            texts.append(parse_pdf_path(pdf_file).text)
        except ParseError as e:
            logger.error(f"Failed to extract text from {pdf_file.name}: {e}")
            result.errors.append(f"Failed to read {pdf_file.name}")

    if not texts:
        raise MaterialError("Failed to extract text from any PDF files")

    combined = DOCUMENT_SEPARATOR.join(texts)
    delay = settings.rag.question_delay_seconds if delay_seconds is None else delay_seconds

    for i in range(count):
        try:
            result.questions.append(await generate_question_from_text(
                topic_name, subtopic_name, combined, difficulty, rng,
            ))
        except QuestionGenerationError as e:
            logger.error(f"Failed to generate question {i + 1}: {e}", extra={"attempt": i + 1})
            result.errors.append(f"Question {i + 1}: {e}")
        if i < count - 1 and delay > 0:
            await asyncio.sleep(delay)

    result.success_count = len(result.questions)
    result.failed_count = count - result.success_count
    return result
