"""Exam Platform - client-side exam runner."""
from app.client.api import ExamApiClient, ExamApiError
from app.client.autosave import AnswerAutosaver
from app.client.session import ExamSession, SessionClosedError
from app.client.supervisor import ProctoringSupervisor, SupervisorState, TerminationReason

__all__ = [
    "ExamApiClient",
    "ExamApiError",
    "AnswerAutosaver",
    "ExamSession",
    "SessionClosedError",
    "ProctoringSupervisor",
    "SupervisorState",
    "TerminationReason",
]
