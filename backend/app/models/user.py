"""
Exam Platform - User Models
SQLAlchemy models for principals and their academic profiles.
Accounts are managed by the identity collaborator; the exam core only reads them.
"""
import uuid
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, ForeignKey, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base, UTCDateTime, utcnow

if TYPE_CHECKING:
    from app.models.attempt import Attempt


class UserRole(str, Enum):
    """User roles for RBAC."""
    STUDENT = "student"
    FACULTY = "faculty"
    ADMIN = "admin"


class User(Base):
    """Canonical principal. Every login path resolves to one of these."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    name: Mapped[str] = mapped_column(String(200))
    role: Mapped[UserRole] = mapped_column(String(50), default=UserRole.STUDENT, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)

    # Relationships
    profile: Mapped[Optional["AcademicProfile"]] = relationship(
        "AcademicProfile",
        back_populates="user",
        uselist=False,
        cascade="all, delete-orphan"
    )
    attempts: Mapped[list["Attempt"]] = relationship(
        "Attempt",
        back_populates="student",
        cascade="all, delete-orphan"
    )


class AcademicProfile(Base):
    """Roster attributes of a student used for exam assignment."""

    __tablename__ = "academic_profiles"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        index=True
    )

    college: Mapped[str | None] = mapped_column(String(200), nullable=True)
    year: Mapped[int | None] = mapped_column(Integer, nullable=True)  # 1-4
    department: Mapped[str | None] = mapped_column(String(200), nullable=True)
    section: Mapped[int | None] = mapped_column(Integer, nullable=True)  # 1-5
    semester: Mapped[int | None] = mapped_column(Integer, nullable=True)  # 1-8

    user: Mapped["User"] = relationship("User", back_populates="profile")
