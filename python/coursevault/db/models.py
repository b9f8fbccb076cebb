"""SQLAlchemy ORM models for the course vault.

Defines all database tables using SQLAlchemy 2.x declarative patterns.
Column types are portable (Uuid, DateTime(timezone=True)) so the schema
runs on PostgreSQL in deployment and SQLite in tests.
"""

from datetime import datetime
from enum import Enum as PyEnum
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# =============================================================================
# Enums
# =============================================================================


class AnalysisStatus(str, PyEnum):
    """Video analysis lifecycle states.

    States:
        pending: Created, immediately moved to processing (transient)
        processing: Background pipeline owns the row
        completed: Knowledge points persisted (terminal)
        failed: Error detail persisted (terminal, re-enterable on resubmit)
    """

    pending = "pending"
    processing = "processing"
    completed = "completed"
    failed = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (AnalysisStatus.completed, AnalysisStatus.failed)


class AccessType(str, PyEnum):
    """How a course was opened."""

    direct = "direct"
    proxy = "proxy"


# =============================================================================
# Models
# =============================================================================


class User(Base):
    """User account model.

    The user ID matches the bearer token sub claim.
    """

    __tablename__ = "users"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    # Relationships
    courses: Mapped[list["Course"]] = relationship(
        "Course", back_populates="owner", cascade="all, delete-orphan"
    )


class Course(Base):
    """Course model - a third-party course link with encrypted credentials.

    The encrypted triple (encrypted_credentials, iv, auth_tag) is written as a
    whole and never patched; updating credentials replaces all three columns.
    """

    __tablename__ = "courses"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    course_name: Mapped[str] = mapped_column(Text, nullable=False)
    course_url: Mapped[str] = mapped_column(Text, nullable=False)
    login_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Hex-encoded AES-256-GCM output
    encrypted_credentials: Mapped[str] = mapped_column(Text, nullable=False)
    iv: Mapped[str] = mapped_column(Text, nullable=False)
    auth_tag: Mapped[str] = mapped_column(Text, nullable=False)

    access_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_accessed: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint(
            "length(course_name) BETWEEN 1 AND 255",
            name="ck_courses_name_length",
        ),
        CheckConstraint("length(iv) = 32", name="ck_courses_iv_len"),
        CheckConstraint("length(auth_tag) = 32", name="ck_courses_auth_tag_len"),
        Index("ix_courses_user_created", "user_id", "created_at"),
    )

    # Relationships
    owner: Mapped["User"] = relationship("User", back_populates="courses")
    access_logs: Mapped[list["AccessLog"]] = relationship(
        "AccessLog", back_populates="course", cascade="all, delete-orphan"
    )


class AccessLog(Base):
    """One launch of a course by its owner."""

    __tablename__ = "access_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    course_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("courses.id", ondelete="CASCADE"),
        nullable=False,
    )
    access_type: Mapped[str] = mapped_column(Text, nullable=False)
    success: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint(
            "access_type IN ('direct', 'proxy')",
            name="ck_access_logs_access_type",
        ),
    )

    course: Mapped["Course"] = relationship("Course", back_populates="access_logs")


class VideoAnalysis(Base):
    """VideoAnalysis model - one analysis job per (external video, user).

    `attempt` is incremented every time a pipeline is spawned for the row.
    A pipeline only writes its result while the row still carries the
    attempt it was started with.
    """

    __tablename__ = "video_analysis"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    external_video_id: Mapped[str] = mapped_column(Text, nullable=False)
    user_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    status: Mapped[str] = mapped_column(
        Text, nullable=False, default=AnalysisStatus.pending.value
    )
    result_payload: Mapped[Any | None] = mapped_column(JSON, nullable=True)
    attempt: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'processing', 'completed', 'failed')",
            name="ck_video_analysis_status",
        ),
        CheckConstraint("attempt >= 0", name="ck_video_analysis_attempt"),
        UniqueConstraint("external_video_id", "user_id", name="uix_video_analysis_video_user"),
    )

    knowledge_points: Mapped[list["KnowledgePoint"]] = relationship(
        "KnowledgePoint",
        back_populates="analysis",
        cascade="all, delete-orphan",
        order_by="KnowledgePoint.start_time",
    )


class KnowledgePoint(Base):
    """KnowledgePoint model - one timestamped chapter of a completed analysis."""

    __tablename__ = "knowledge_points"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    analysis_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("video_analysis.id", ondelete="CASCADE"),
        nullable=False,
    )
    start_time: Mapped[float] = mapped_column(Float, nullable=False)
    end_time: Mapped[float | None] = mapped_column(Float, nullable=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)

    __table_args__ = (
        CheckConstraint("start_time >= 0", name="ck_knowledge_points_start_time"),
        CheckConstraint(
            "end_time IS NULL OR end_time >= start_time",
            name="ck_knowledge_points_end_time",
        ),
        Index("ix_knowledge_points_analysis_start", "analysis_id", "start_time"),
    )

    analysis: Mapped["VideoAnalysis"] = relationship(
        "VideoAnalysis", back_populates="knowledge_points"
    )
