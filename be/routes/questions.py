"""Question generation, question bank and public listing endpoints."""
from __future__ import annotations

import logging
from io import BytesIO
from typing import Any

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ai import llm
from ..db import get_session
from ..deps import require_admin
from ..parsers import parse_spreadsheet
from ..pipelines.material_questions import generate_questions_from_material, get_available_topics
from ..pipelines.question_bank import (
    compute_question_stats,
    import_questions,
    list_questions,
    save_questions,
)
from ..pipelines.question_generation import (
    GeneratedQuestion,
    generate_cfa_question,
    generate_multiple_rag_questions,
    generate_question_with_context,
    generate_rag_question,
)
from ..pipelines.rag import is_rag_configured
from ..schemas import (
    GenerateQuestionRequest,
    GenerateRAGQuestionRequest,
    MaterialQuestionRequest,
    SaveQuestionsRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin-questions"], dependencies=[Depends(require_admin)])
public_router = APIRouter(prefix="/api", tags=["questions"])

DIFFICULTY_HELP = "Optional - beginner|intermediate|advanced (default: intermediate)"


def _payloads(questions: list[GeneratedQuestion], source: str, **overrides: Any) -> list[dict[str, Any]]:
    payloads = []
    for q in questions:
        payload = q.model_dump()
        payload["source"] = source
        payload.update(overrides)
        payloads.append(payload)
    return payloads


@router.get("/generate-question")
async def generate_question_info() -> dict:
    return {
        "message": "AI Question Generator API",
        "endpoints": {
            "POST /api/admin/generate-question": "Generate a new CFA Level 1 question",
            "Parameters": {
                "topic_area": "Required - CFA Level 1 topic area",
                "difficulty": DIFFICULTY_HELP,
                "subtopic": "Optional - specific subtopic within the topic area",
                "source_context": "Optional - source material to base question on",
                "save_to_database": "Optional - boolean to save question to database",
                "created_by": "Optional - user ID of question creator",
            },
        },
    }


@router.post("/generate-question")
async def generate_question(
    request: GenerateQuestionRequest,
    session: AsyncSession = Depends(get_session),
) -> dict:
    """Generate one question, grounded in ``source_context`` when given."""
    if request.source_context:
        question = await generate_question_with_context(
            request.topic_area, request.source_context, request.difficulty,
        )
    else:
        question = await generate_cfa_question(request.topic_area, request.difficulty, request.subtopic)

    if not request.save_to_database:
        return {"question": question.model_dump(), "saved": False}

    result = await save_questions(session, _payloads([question], "AI-Generated"), request.created_by)
    return {
        "question": question.model_dump(),
        "saved": True,
        "database_id": result["questions"][0]["id"],
    }


@router.get("/generate-rag-question")
async def generate_rag_question_info(session: AsyncSession = Depends(get_session)) -> dict:
    rag_configured = await is_rag_configured(session)
    info = {
        "message": "RAG-Based Question Generator API",
        "description": "Generate CFA Level 1 questions using Retrieval Augmented Generation "
                       "from your training materials",
        "rag_configured": rag_configured,
        "endpoints": {
            "POST /api/admin/generate-rag-question": "Generate questions using RAG",
            "Parameters": {
                "topic_area": "Required - CFA Level 1 topic area",
                "difficulty": DIFFICULTY_HELP,
                "subtopic": "Optional - specific subtopic within the topic area",
                "learning_objective_id": "Optional - learning objective the question should target",
                "learning_objective_text": "Optional - learning objective wording",
                "count": "Optional - number of questions to generate (default: 1)",
                "save_to_database": "Optional - boolean to save questions to database",
                "created_by": "Optional - user ID of question creator",
            },
        },
    }
    if not rag_configured:
        info["setup_instructions"] = "Run: python ingest_materials.py"
    return info


@router.post("/generate-rag-question")
async def generate_rag_questions(
    request: GenerateRAGQuestionRequest,
    session: AsyncSession = Depends(get_session),
):
    """Generate one or more questions from indexed training material."""
    if not await is_rag_configured(session):
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "RAG system not configured. Please ingest training materials first: "
                         "python ingest_materials.py",
                "details": "Missing OpenAI API key or material index is empty",
            },
        )

    if request.count > 1:
        questions = await generate_multiple_rag_questions(
            session,
            request.topic_area,
            request.count,
            request.difficulty,
            request.subtopic,
            request.learning_objective_id,
            request.learning_objective_text,
        )
    else:
        questions = [await generate_rag_question(
            session,
            request.topic_area,
            request.difficulty,
            request.subtopic,
            request.learning_objective_id,
            request.learning_objective_text,
        )]

    dumped = [q.model_dump() for q in questions]
    if not request.save_to_database or not questions:
        return {"questions": dumped, "saved": False, "count": len(questions)}

    result = await save_questions(session, _payloads(questions, "RAG-Generated"), request.created_by)
    return {
        "questions": dumped,
        "saved": True,
        "saved_count": result["saved_count"],
        "database_ids": [q["id"] for q in result["questions"]],
    }


@router.get("/generate-from-material")
async def generate_from_material_info() -> dict:
    return {
        "message": "Material-Based Question Generator API",
        "description": "Generate CFA Level 1 questions based on PDF training materials",
        "endpoints": {
            "POST /api/admin/generate-from-material": "Generate questions from PDF materials",
            "Parameters": {
                "topic_id": "Required - Topic ID from curriculum",
                "topic_name": 'Required - Topic name (e.g., "Ethical and Professional Standards")',
                "subtopic_id": "Optional - Subtopic ID from curriculum",
                "subtopic_name": "Optional - Subtopic name for focused questions",
                "difficulty": DIFFICULTY_HELP,
                "count": "Optional - number of questions to generate (default: 1)",
                "save_to_database": "Optional - boolean to save questions to database",
            },
        },
        "available_topics": get_available_topics(),
    }


@router.post("/generate-from-material")
async def generate_from_material(
    request: MaterialQuestionRequest,
    session: AsyncSession = Depends(get_session),
):
    """Generate questions from the PDFs in a topic's material folder."""
    if not llm.is_configured():
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "OPENAI_API_KEY environment variable is not set", "details": None},
        )

    result = await generate_questions_from_material(
        request.topic_id,
        request.topic_name,
        request.difficulty,
        request.count,
        request.subtopic_name,
    )
    response = result.to_dict()

    if not request.save_to_database or not result.questions:
        return {**response, "saved": False}

    payloads = _payloads(
        result.questions,
        "Material-Generated",
        topic_area=request.topic_name,
        subtopic=request.subtopic_name,
    )
    saved = await save_questions(session, payloads, request.created_by)
    return {
        **response,
        "saved": True,
        "saved_count": saved["saved_count"],
        "database_ids": [q["id"] for q in saved["questions"]],
    }


@router.post("/save-questions")
async def save_question_batch(
    request: SaveQuestionsRequest,
    session: AsyncSession = Depends(get_session),
) -> dict:
    """Save reviewed questions in batches."""
    logger.info(f"Saving {len(request.questions)} questions")
    payloads = [q.model_dump() for q in request.questions]
    return await save_questions(session, payloads)


@router.get("/question-stats")
async def question_stats(session: AsyncSession = Depends(get_session)) -> dict:
    return await compute_question_stats(session)


@router.post("/questions/import")
async def import_question_file(
    file: UploadFile = File(..., description="CSV or Excel sheet of questions"),
    created_by: str | None = Form(default=None),
    session: AsyncSession = Depends(get_session),
) -> dict:
    """Import question rows from a spreadsheet."""
    if not file.filename:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Filename is required")

    try:
        content = await file.read()
    finally:
        await file.close()

    rows = parse_spreadsheet(BytesIO(content), file.filename)
    logger.info(f"Importing questions from {file.filename} ({len(rows)} rows)")
    return await import_questions(session, rows, created_by)


@public_router.get("/questions")
async def get_questions(
    topic_area: str | None = Query(default=None),
    difficulty: str | None = Query(default=None),
    limit: int = Query(default=10, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    session: AsyncSession = Depends(get_session),
) -> dict:
    """Active questions, newest first. ``total`` counts the returned page."""
    questions = await list_questions(session, topic_area, difficulty, limit, offset)
    return {"questions": questions, "total": len(questions)}
