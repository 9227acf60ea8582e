"""
Exam Platform - Attempt Models
One student's timed session against one exam, its answers and proctoring log
"""
import uuid
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from sqlalchemy import (
    JSON,
    Boolean,
    Float,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base, UTCDateTime, utcnow

if TYPE_CHECKING:
    from app.models.exam import Exam
    from app.models.user import User


class AttemptStatus(str, Enum):
    """
    Persisted attempt states.

    NOT_STARTED is never stored: the absence of a row means the
    student has not started the exam.
    """
    NOT_STARTED = "not-started"
    IN_PROGRESS = "in-progress"
    SUBMITTED = "submitted"
    INVALID = "invalid"


TERMINAL_STATUSES = (AttemptStatus.SUBMITTED.value, AttemptStatus.INVALID.value)


class ProctorEventKind(str, Enum):
    """Environment signals reported by the client-side supervisor."""
    TAB_BLUR = "tab-blur"
    VISIBILITY_HIDDEN = "visibility-hidden"
    FULLSCREEN_EXIT = "fullscreen-exit"
    RETURN_TIMEOUT = "return-timeout"

    @property
    def is_violation(self) -> bool:
        return self is not ProctorEventKind.RETURN_TIMEOUT


class Attempt(Base):
    """
    Attempt lifecycle record.

    Exactly one row per (exam, student); a retake reopens the same row
    and bumps attempt_number instead of inserting a new one.
    """

    __tablename__ = "attempts"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )
    exam_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("exams.id", ondelete="CASCADE"),
        index=True
    )
    student_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        index=True
    )
    # Login path the student used when the attempt was (re)opened; audit only
    principal_kind: Mapped[str] = mapped_column(String(50), default="user")

    status: Mapped[str] = mapped_column(
        String(20),
        default=AttemptStatus.IN_PROGRESS.value,
        index=True
    )
    attempt_number: Mapped[int] = mapped_column(Integer, default=1)

    # Timing
    started_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)
    server_end_time: Mapped[datetime] = mapped_column(UTCDateTime)
    submitted_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    # Scoring
    score: Mapped[float | None] = mapped_column(Float, nullable=True)
    manual_grading_needed: Mapped[bool] = mapped_column(Boolean, default=False)
    forced_submission: Mapped[bool] = mapped_column(Boolean, default=False)

    # Proctoring
    violations_count: Mapped[int] = mapped_column(Integer, default=0)

    # Question definitions as they were when the attempt was opened
    question_snapshot: Mapped[list] = mapped_column(JSON, default=list)

    # Relationships
    exam: Mapped["Exam"] = relationship("Exam", back_populates="attempts")
    student: Mapped["User"] = relationship("User", back_populates="attempts")
    answers: Mapped[list["AttemptAnswer"]] = relationship(
        "AttemptAnswer",
        back_populates="attempt",
        cascade="all, delete-orphan",
        order_by="AttemptAnswer.question_index"
    )
    events: Mapped[list["ProctorEvent"]] = relationship(
        "ProctorEvent",
        back_populates="attempt",
        cascade="all, delete-orphan",
        order_by="ProctorEvent.created_at"
    )

    __table_args__ = (
        UniqueConstraint("exam_id", "student_id", name="uq_attempts_exam_student"),
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def __repr__(self):
        return f"<Attempt exam={self.exam_id} student={self.student_id} status={self.status}>"


class AttemptAnswer(Base):
    """Latest recorded value for one question of an attempt."""

    __tablename__ = "attempt_answers"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )
    attempt_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("attempts.id", ondelete="CASCADE"),
        index=True
    )
    question_index: Mapped[int] = mapped_column(Integer)
    # int for single, list[int] for multi, str for text
    value: Mapped[Any] = mapped_column(JSON, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, onupdate=utcnow)

    attempt: Mapped["Attempt"] = relationship("Attempt", back_populates="answers")

    __table_args__ = (
        UniqueConstraint("attempt_id", "question_index", name="uq_attempt_answers_index"),
    )


class ProctorEvent(Base):
    """Append-only proctoring log entry."""

    __tablename__ = "proctor_events"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )
    attempt_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("attempts.id", ondelete="CASCADE"),
        index=True
    )
    attempt_number: Mapped[int] = mapped_column(Integer, default=1)
    kind: Mapped[str] = mapped_column(String(50), index=True)
    event_metadata: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, index=True)

    attempt: Mapped["Attempt"] = relationship("Attempt", back_populates="events")

    def __repr__(self):
        return f"<ProctorEvent {self.kind} attempt={self.attempt_id}>"
