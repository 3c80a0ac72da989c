"""FastAPI app: router registration, health check and error handling.

Every failing request returns ``{"error": str, "details": ...}``.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from ai.embeddings import EmbeddingError
from ai.llm import LLMError
from .config import settings
from .logging_config import setup_logging
from .parsers import ParseError
from .pipelines.blog_generation import BlogGenerationError
from .pipelines.material_questions import MaterialError
from .pipelines.question_bank import QuestionBankError
from .pipelines.question_generation import QuestionGenerationError
from .pipelines.rag import RAGError
from .routes import admin, blog, cron, notifications, questions, users
from .schemas import ErrorResponse, HealthResponse
from .topics import InvalidTopicError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup/shutdown logic."""
    setup_logging()
    logger.info(f"{settings.app_name} v{settings.version} starting up")

    yield

    logger.info("Application shutting down")


app = FastAPI(
    title=settings.app_name,
    version=settings.version,
    description="CFA Level 1 question generation, blog automation and study tracking",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error_response(status_code: int, error: str, details: Any = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, details=details).model_dump(),
    )


# Exception handlers
@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    """Reshape HTTPException bodies into the error envelope."""
    if exc.status_code >= 500:
        logger.error(f"{request.url.path}: {exc.detail}", extra={"status_code": exc.status_code})
    response = _error_response(exc.status_code, str(exc.detail))
    if exc.headers:
        response.headers.update(exc.headers)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Field-level details for malformed requests."""
    logger.warning(f"Validation error on {request.url.path}: {exc.errors()}")
    details = [
        {
            "field": ".".join(str(loc) for loc in e["loc"] if loc != "body"),
            "message": e["msg"],
            "type": e["type"],
        }
        for e in exc.errors()
    ]
    return _error_response(status.HTTP_400_BAD_REQUEST, "Invalid request data", details)


@app.exception_handler(InvalidTopicError)
async def invalid_topic_handler(request: Request, exc: InvalidTopicError):
    logger.warning(f"Invalid topic: {exc}")
    return _error_response(status.HTTP_400_BAD_REQUEST, "Invalid topic area", str(exc))


@app.exception_handler(ParseError)
async def parse_error_handler(request: Request, exc: ParseError):
    """Handle document parsing errors."""
    logger.error(f"Parse error: {exc}")
    return _error_response(status.HTTP_400_BAD_REQUEST, "Failed to parse file", str(exc))


@app.exception_handler(QuestionGenerationError)
async def question_generation_error_handler(request: Request, exc: QuestionGenerationError):
    logger.error(f"Question generation error: {exc}")
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to generate question", str(exc))


@app.exception_handler(RAGError)
async def rag_error_handler(request: Request, exc: RAGError):
    logger.error(f"RAG error: {exc}")
    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Failed to generate questions using RAG",
        str(exc),
    )


@app.exception_handler(MaterialError)
async def material_error_handler(request: Request, exc: MaterialError):
    logger.error(f"Material error: {exc}")
    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Failed to generate questions from material",
        str(exc),
    )


@app.exception_handler(QuestionBankError)
async def question_bank_error_handler(request: Request, exc: QuestionBankError):
    """Save failures carry the per-batch error list."""
    logger.error(f"Question bank error: {exc}")
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc), exc.errors)


@app.exception_handler(BlogGenerationError)
async def blog_generation_error_handler(request: Request, exc: BlogGenerationError):
    logger.error(f"Blog generation error: {exc}")
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to generate blog post", str(exc))


@app.exception_handler(LLMError)
async def llm_error_handler(request: Request, exc: LLMError):
    logger.error(f"LLM error: {exc}")
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "AI service error", str(exc))


@app.exception_handler(EmbeddingError)
async def embedding_error_handler(request: Request, exc: EmbeddingError):
    logger.error(f"Embedding error: {exc}")
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Embedding service error", str(exc))


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"Database error on {request.url.path}: {exc}")
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Database error")


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    """Last resort so unexpected failures keep the error envelope."""
    logger.exception(f"Unhandled error on {request.url.path}: {exc}")
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error", str(exc))


app.include_router(blog.router)
app.include_router(questions.router)
app.include_router(questions.public_router)
app.include_router(admin.router)
app.include_router(users.router)
app.include_router(notifications.router)
app.include_router(cron.router)


@app.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(status="ok", version=settings.version)


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "app": settings.app_name,
        "version": settings.version,
        "endpoints": {
            "health": "/health",
            "questions": "/api/questions",
            "admin_blog": "/api/admin/blog",
            "user": "/api/user",
            "docs": "/docs",
        },
    }
