"""Pydantic request and response models for the HTTP API."""
from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

Difficulty = Literal["beginner", "intermediate", "advanced"]
PostStatus = Literal["draft", "published", "archived"]


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str


class ErrorResponse(BaseModel):
    """Error envelope used by every failing endpoint."""
    error: str
    details: Any = None


# Blog

class CategoryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    slug: str = Field(min_length=1, max_length=255)
    description: str | None = None
    icon: str | None = None


class FAQItemIn(BaseModel):
    question: str
    answer: str


class PostCreate(BaseModel):
    """Manual blog post creation."""
    title: str = Field(min_length=1, max_length=500)
    slug: str = Field(min_length=1, max_length=255)
    category_id: int
    content: str = Field(min_length=1)
    excerpt: str = ""
    featured_image: str | None = None
    author_name: str | None = None
    author_title: str | None = None
    read_time_minutes: int | None = Field(default=None, ge=1)
    tags: list[str] = Field(default_factory=list)
    meta_title: str | None = None
    meta_description: str | None = None
    meta_keywords: list[str] = Field(default_factory=list)
    faq_items: list[FAQItemIn] = Field(default_factory=list)


class PostUpdate(BaseModel):
    """Partial update; only fields that are sent are changed."""
    title: str | None = Field(default=None, min_length=1, max_length=500)
    slug: str | None = Field(default=None, min_length=1, max_length=255)
    category_id: int | None = None
    content: str | None = None
    excerpt: str | None = None
    featured_image: str | None = None
    author_name: str | None = None
    author_title: str | None = None
    read_time_minutes: int | None = Field(default=None, ge=1)
    tags: list[str] | None = None
    meta_title: str | None = None
    meta_description: str | None = None
    meta_keywords: list[str] | None = None
    faq_items: list[FAQItemIn] | None = None
    status: PostStatus | None = None

    @field_validator(
        "title", "slug", "content", "excerpt", "author_name", "read_time_minutes",
        "tags", "meta_keywords", "faq_items", "status",
    )
    @classmethod
    def _not_null(cls, value: Any) -> Any:
        if value is None:
            raise ValueError("may be omitted but not set to null")
        return value


class GenerateBlogRequest(BaseModel):
    category_id: int
    topic: str = Field(min_length=1, max_length=500)
    keywords: list[str] = Field(default_factory=list)
    word_count: int = Field(default=1500, ge=300, le=5000)
    include_faq: bool = True
    enhance_content: bool = True
    reference_url: str | None = None


class SuggestTopicsRequest(BaseModel):
    category_id: int


# Questions

class GenerateQuestionRequest(BaseModel):
    topic_area: str = Field(min_length=1)
    difficulty: Difficulty = "intermediate"
    subtopic: str | None = None
    source_context: str | None = None
    save_to_database: bool = False
    created_by: str | None = None


class GenerateRAGQuestionRequest(BaseModel):
    topic_area: str = Field(min_length=1)
    difficulty: Difficulty = "intermediate"
    subtopic: str | None = None
    learning_objective_id: str | None = None
    learning_objective_text: str | None = None
    count: int = Field(default=1, ge=1, le=20)
    save_to_database: bool = False
    created_by: str | None = None


class MaterialQuestionRequest(BaseModel):
    topic_id: str = Field(min_length=1)
    topic_name: str = Field(min_length=1)
    subtopic_id: str | None = None
    subtopic_name: str | None = None
    difficulty: Difficulty = "intermediate"
    count: int = Field(default=1, ge=1, le=20)
    save_to_database: bool = False
    created_by: str | None = None


class QuestionIn(BaseModel):
    """A question submitted for saving."""
    question_text: str = Field(min_length=1)
    option_a: str = Field(min_length=1)
    option_b: str = Field(min_length=1)
    option_c: str = Field(min_length=1)
    correct_answer: Literal["A", "B", "C"]
    explanation: str | None = None
    topic_area: str | None = None
    subtopic: str | None = None
    difficulty_level: Difficulty | None = "intermediate"
    keywords: list[str] = Field(default_factory=list)
    learning_objective_id: str | None = None
    has_table: bool = False
    table_data: dict | None = None
    source: str | None = None


class SaveQuestionsRequest(BaseModel):
    questions: list[QuestionIn] = Field(min_length=1)


# Users

class ProgressUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    topic: str = Field(min_length=1)
    questions_answered: int = Field(alias="questionsAnswered", ge=0)
    correct_answers: int = Field(alias="correctAnswers", ge=0)
    study_time_minutes: int = Field(default=0, alias="studyTimeMinutes", ge=0)


class SessionCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_type: Literal["practice", "mock_exam", "study_guide"] = Field(alias="sessionType")
    topic: str | None = None
    questions_attempted: int = Field(alias="questionsAttempted", ge=0)
    questions_correct: int = Field(alias="questionsCorrect", ge=0)
    duration_minutes: int = Field(default=0, alias="durationMinutes", ge=0)
    score_percentage: float | None = Field(default=None, alias="scorePercentage", ge=0, le=100)
    session_data: dict | None = Field(default=None, alias="sessionData")


# Notifications

class NotifyRequest(BaseModel):
    email: str = Field(min_length=3)
    type: str = Field(min_length=1)


class ContactRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    email: str = Field(min_length=3, max_length=255)
    subject: str = Field(min_length=1, max_length=500)
    message: str = Field(min_length=1)
