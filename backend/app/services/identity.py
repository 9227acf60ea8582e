"""
Exam Platform - Principal Resolution
Collapses whichever account representation a login path produced into one
canonical principal, resolved once per request.
"""
import uuid
from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import AcademicProfile, User
from app.services.eligibility import StudentProfile


@dataclass(frozen=True)
class Principal:
    """The authenticated caller as the exam core sees it."""
    user_id: uuid.UUID
    role: str
    name: str
    email: str
    kind: str = "user"
    profile: StudentProfile = field(default_factory=StudentProfile)


async def load_principal(db: AsyncSession, user: User, kind: str = "user") -> Principal:
    """Build a Principal from a loaded user and their academic profile, if any."""
    result = await db.execute(
        select(AcademicProfile).where(AcademicProfile.user_id == user.id)
    )
    profile = result.scalar_one_or_none()
    role = user.role.value if hasattr(user.role, "value") else user.role
    return Principal(
        user_id=user.id,
        role=role,
        name=user.name,
        email=user.email,
        kind=kind,
        profile=StudentProfile.from_model(profile),
    )
