"""
Exam Platform - Domain Errors
Failures raised by the exam services, each carrying its boundary status code
"""
from fastapi import status


class ExamPlatformError(Exception):
    """Base error for exam and attempt operations."""
    status_code: int = status.HTTP_400_BAD_REQUEST
    default_message: str = "Request could not be completed"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)


# Authorization

class NotExamOwnerError(ExamPlatformError):
    """Faculty member does not own the exam."""
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Not allowed to access this exam"


# Preconditions

class NotEligibleError(ExamPlatformError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "You are not assigned to this exam"


class WindowClosedError(ExamPlatformError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Exam is not active right now"


class AlreadyCompletedError(ExamPlatformError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "You have already completed this exam"


class NotInProgressError(ExamPlatformError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Attempt is not in progress"


class AlreadySubmittedError(ExamPlatformError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Attempt already submitted"


class InvalidAnswerError(ExamPlatformError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Answer does not fit the question"


# Not found

class ExamNotFoundError(ExamPlatformError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Exam not found"


class AttemptNotFoundError(ExamPlatformError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Attempt not found"


class StudentNotFoundError(ExamPlatformError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Student not found"
