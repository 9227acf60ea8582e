"""
Exam Platform - Exam Models
SQLAlchemy models for authored exams and per-student retake grants
"""
import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    JSON,
    CheckConstraint,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base, UTCDateTime, utcnow

if TYPE_CHECKING:
    from app.models.attempt import Attempt
    from app.models.user import User


class Exam(Base):
    """A timed exam authored by a faculty member."""

    __tablename__ = "exams"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )
    owner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        index=True
    )

    title: Mapped[str] = mapped_column(String(300))
    description: Mapped[str] = mapped_column(Text, default="")
    duration_minutes: Mapped[int] = mapped_column(Integer)

    window_start: Mapped[datetime] = mapped_column(UTCDateTime)
    window_end: Mapped[datetime] = mapped_column(UTCDateTime, index=True)

    # Ordered question definitions; list position is the question index.
    # Format: [{ type, text, options, correct_answers, points }]
    questions: Mapped[list] = mapped_column(JSON, default=list)

    # { college, year: [...], department: [...], section: [...], semester: [...] }
    assignment_criteria: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    owner: Mapped["User"] = relationship("User")
    attempts: Mapped[list["Attempt"]] = relationship(
        "Attempt",
        back_populates="exam",
        cascade="all, delete-orphan"
    )
    retake_grants: Mapped[list["RetakeGrant"]] = relationship(
        "RetakeGrant",
        back_populates="exam",
        cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint("duration_minutes > 0", name="ck_exams_duration_positive"),
    )

    def __repr__(self):
        return f"<Exam {self.title!r} questions={len(self.questions or [])}>"


class RetakeGrant(Base):
    """Consumable retake permission units for one student on one exam."""

    __tablename__ = "retake_grants"

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
    remaining: Mapped[int] = mapped_column(Integer, default=0)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, onupdate=utcnow)

    exam: Mapped["Exam"] = relationship("Exam", back_populates="retake_grants")

    __table_args__ = (
        UniqueConstraint("exam_id", "student_id", name="uq_retake_grants_exam_student"),
        CheckConstraint("remaining >= 0", name="ck_retake_grants_remaining"),
    )
