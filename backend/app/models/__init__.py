"""Exam Platform - Models initialization."""
from app.models.user import User, AcademicProfile, UserRole
from app.models.exam import Exam, RetakeGrant
from app.models.attempt import (
    Attempt,
    AttemptAnswer,
    AttemptStatus,
    ProctorEvent,
    ProctorEventKind,
    TERMINAL_STATUSES,
)


__all__ = [
    # User models
    "User",
    "AcademicProfile",
    "UserRole",
    # Exam models
    "Exam",
    "RetakeGrant",
    # Attempt models
    "Attempt",
    "AttemptAnswer",
    "AttemptStatus",
    "ProctorEvent",
    "ProctorEventKind",
    "TERMINAL_STATUSES",
]
