"""Exam Platform - Services initialization."""
from app.services.attempt import AttemptService
from app.services.exam import ExamService
from app.services.exceptions import (
    AlreadyCompletedError,
    AlreadySubmittedError,
    AttemptNotFoundError,
    ExamNotFoundError,
    ExamPlatformError,
    InvalidAnswerError,
    NotEligibleError,
    NotExamOwnerError,
    NotInProgressError,
    StudentNotFoundError,
    WindowClosedError,
)
from app.services.retake import RetakeLedger

__all__ = [
    "AttemptService",
    "ExamService",
    "RetakeLedger",
    "ExamPlatformError",
    "AlreadyCompletedError",
    "AlreadySubmittedError",
    "AttemptNotFoundError",
    "ExamNotFoundError",
    "InvalidAnswerError",
    "NotEligibleError",
    "NotExamOwnerError",
    "NotInProgressError",
    "StudentNotFoundError",
    "WindowClosedError",
]
