"""
Exam Platform - Eligibility Matcher
Decides whether a student's academic profile falls inside an exam's assignment criteria
"""
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from app.schemas.exam import AssignmentCriteria


@dataclass(frozen=True)
class StudentProfile:
    """Read-only academic attributes of a student, as sourced from the roster."""
    college: str | None = None
    year: int | None = None
    department: str | None = None
    section: int | None = None
    semester: int | None = None

    @classmethod
    def from_model(cls, profile: Any | None) -> "StudentProfile":
        """Build from an AcademicProfile row; a missing row yields an empty profile."""
        if profile is None:
            return cls()
        return cls(
            college=profile.college,
            year=profile.year,
            department=profile.department,
            section=profile.section,
            semester=profile.semester,
        )


def _norm(value: str) -> str:
    return value.strip().lower()


def _member(value: Any, allowed: Iterable[Any]) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return _norm(value) in {_norm(a) for a in allowed if isinstance(a, str)}
    return value in set(allowed)


def is_eligible(
    profile: StudentProfile | None,
    criteria: AssignmentCriteria | dict | None,
) -> bool:
    """
    Check every criterion independently.

    An absent or empty criterion always passes. A present one requires the
    profile attribute to be set and to match: college by trimmed,
    case-insensitive equality, the other fields by set membership.
    """
    if criteria is None:
        return True
    if isinstance(criteria, dict):
        criteria = AssignmentCriteria.model_validate(criteria)
    profile = profile or StudentProfile()

    if criteria.college and criteria.college.strip():
        if not profile.college or _norm(profile.college) != _norm(criteria.college):
            return False

    for field in ("year", "department", "section", "semester"):
        allowed = getattr(criteria, field)
        if allowed and not _member(getattr(profile, field), allowed):
            return False

    return True
