"""Core SQLAlchemy models (2.x style) for the CFA prep schema.

PostgreSQL with pgvector for the two embedding tables; everything else is
plain relational data. Array-like columns use JSON so the schema also runs
on SQLite for tests.
"""

from __future__ import annotations

from datetime import date, datetime, timezone

from pgvector.sqlalchemy import Vector
from sqlalchemy import JSON, Boolean, Date, Float, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from .config import settings

EMBEDDING_DIM = settings.embeddings.dim


def utcnow() -> datetime:
    """Naive UTC timestamp used for all datetime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class BlogCategory(Base):
    """Blog categories, one per CFA topic area by default."""
    __tablename__ = "blog_categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    description: Mapped[str | None] = mapped_column(Text)
    icon: Mapped[str | None] = mapped_column(String(50))
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)


class BlogPost(Base):
    """Markdown blog posts with SEO metadata."""
    __tablename__ = "blog_posts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    category_id: Mapped[int | None] = mapped_column(
        ForeignKey("blog_categories.id", ondelete="SET NULL"),
        index=True,
    )
    slug: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    excerpt: Mapped[str] = mapped_column(Text, default="", nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    featured_image: Mapped[str | None] = mapped_column(String(1000))
    author_name: Mapped[str] = mapped_column(String(255), nullable=False)
    author_title: Mapped[str | None] = mapped_column(String(255))
    read_time_minutes: Mapped[int] = mapped_column(Integer, default=5, nullable=False)
    tags: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    meta_title: Mapped[str | None] = mapped_column(String(255))
    meta_description: Mapped[str | None] = mapped_column(Text)
    meta_keywords: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    faq_items: Mapped[list[dict]] = mapped_column(JSON, default=list, nullable=False)
    schema_json: Mapped[dict | None] = mapped_column(JSON)
    status: Mapped[str] = mapped_column(String(20), default="draft", nullable=False, index=True)
    published_at: Mapped[datetime | None] = mapped_column()
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        Index("ix_blog_posts_category_created", "category_id", "created_at"),
    )


class BlogResource(Base):
    """Chunked reference documents backing blog generation."""
    __tablename__ = "blog_resources"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    category_id: Mapped[int] = mapped_column(
        ForeignKey("blog_categories.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    file_name: Mapped[str] = mapped_column(String(500), nullable=False)
    file_path: Mapped[str] = mapped_column(String(1000), nullable=False)
    file_type: Mapped[str] = mapped_column(String(20), nullable=False)
    content_text: Mapped[str | None] = mapped_column(Text)
    chunk_index: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    embedding: Mapped[list[float] | None] = mapped_column(Vector(EMBEDDING_DIM))
    processed_at: Mapped[datetime | None] = mapped_column()
    uploaded_by: Mapped[str | None] = mapped_column(String(255))
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    __table_args__ = (
        Index("ix_blog_resources_category_chunk", "category_id", "chunk_index"),
    )


class BlogGenerationJob(Base):
    """Audit row for each blog generation attempt."""
    __tablename__ = "blog_generation_jobs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    category_id: Mapped[int | None] = mapped_column(
        ForeignKey("blog_categories.id", ondelete="SET NULL"),
        index=True,
    )
    topic: Mapped[str] = mapped_column(String(500), nullable=False)
    keywords: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="processing", nullable=False, index=True)
    result_post_id: Mapped[int | None] = mapped_column(ForeignKey("blog_posts.id", ondelete="SET NULL"))
    error_message: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False, index=True)
    completed_at: Mapped[datetime | None] = mapped_column()


class MaterialChunk(Base):
    """Vector index over the CFA training material PDFs."""
    __tablename__ = "material_chunks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    topic_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    topic_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_name: Mapped[str] = mapped_column(String(500), nullable=False, index=True)
    chunk_index: Mapped[int] = mapped_column(Integer, nullable=False)
    source: Mapped[str] = mapped_column(String(100), default="cfa-training-material", nullable=False)
    content_text: Mapped[str] = mapped_column(Text, nullable=False)
    embedding: Mapped[list[float]] = mapped_column(Vector(EMBEDDING_DIM), nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    __table_args__ = (
        Index("ix_material_chunks_topic_file", "topic_id", "file_name"),
    )


class Question(Base):
    """Question bank entries."""
    __tablename__ = "questions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    topic_area: Mapped[str | None] = mapped_column(String(255), index=True)
    subtopic: Mapped[str | None] = mapped_column(String(500))
    difficulty_level: Mapped[str | None] = mapped_column(String(20), index=True)
    question_text: Mapped[str] = mapped_column(Text, nullable=False)
    option_a: Mapped[str] = mapped_column(Text, nullable=False)
    option_b: Mapped[str] = mapped_column(Text, nullable=False)
    option_c: Mapped[str] = mapped_column(Text, nullable=False)
    correct_answer: Mapped[str] = mapped_column(String(1), nullable=False)
    explanation: Mapped[str | None] = mapped_column(Text)
    keywords: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    learning_objective_id: Mapped[str | None] = mapped_column(String(100), index=True)
    has_table: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    table_data: Mapped[dict | None] = mapped_column(JSON)
    source: Mapped[str | None] = mapped_column(String(255))
    is_active: Mapped[bool | None] = mapped_column(Boolean, default=True, index=True)
    created_by: Mapped[str | None] = mapped_column(String(255))
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False, index=True)


class UserProfile(Base):
    """User profile keyed by the external auth subject id."""
    __tablename__ = "user_profiles"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    full_name: Mapped[str | None] = mapped_column(String(255))
    avatar_url: Mapped[str | None] = mapped_column(String(1000))
    exam_level: Mapped[str] = mapped_column(String(20), default="Level I", nullable=False)
    exam_date: Mapped[date | None] = mapped_column(Date)
    study_goal: Mapped[int] = mapped_column(Integer, default=10, nullable=False)
    notifications: Mapped[dict | None] = mapped_column(JSON)
    privacy_settings: Mapped[dict | None] = mapped_column(JSON)
    subscription_plan: Mapped[str | None] = mapped_column(String(20), default="trial")
    subscription_status: Mapped[str | None] = mapped_column(String(20), default="trialing")
    trial_ends_at: Mapped[datetime | None] = mapped_column()
    stripe_customer_id: Mapped[str | None] = mapped_column(String(255))
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False, index=True)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)


class UserProgress(Base):
    """Per-topic practice totals for a user."""
    __tablename__ = "user_progress"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    topic: Mapped[str] = mapped_column(String(255), nullable=False)
    total_questions: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    correct_answers: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    study_time_minutes: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_studied: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "topic", name="uq_user_progress_user_topic"),
    )


class StudySession(Base):
    """A completed practice, mock exam or study guide session."""
    __tablename__ = "study_sessions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    session_type: Mapped[str] = mapped_column(String(20), nullable=False)
    topic: Mapped[str | None] = mapped_column(String(255))
    questions_attempted: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    questions_correct: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    score_percentage: Mapped[float | None] = mapped_column(Float)
    session_data: Mapped[dict | None] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False, index=True)


class UserAchievement(Base):
    """Badges earned on the dashboard."""
    __tablename__ = "user_achievements"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    achievement_type: Mapped[str] = mapped_column(String(100), nullable=False)
    achievement_name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    earned_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)


class StudyStreak(Base):
    """Consecutive study days."""
    __tablename__ = "study_streaks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    current_streak: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    longest_streak: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_study_date: Mapped[date | None] = mapped_column(Date)


class MockExam(Base):
    """Mock exam attempts, counted against the monthly plan limit."""
    __tablename__ = "mock_exams"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    score_percentage: Mapped[float | None] = mapped_column(Float)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False, index=True)


class UserQuestionAttempt(Base):
    """Individual answered questions, counted against the question limit."""
    __tablename__ = "user_question_attempts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    question_id: Mapped[int | None] = mapped_column(ForeignKey("questions.id", ondelete="SET NULL"))
    selected_answer: Mapped[str | None] = mapped_column(String(1))
    is_correct: Mapped[bool | None] = mapped_column(Boolean)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
