"""
Exam Platform - Attempt Schemas
Pydantic schemas for starting, answering and submitting attempts and for proctor events
"""
import uuid
from datetime import datetime
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field

from app.models.attempt import ProctorEventKind
from app.schemas.exam import ExamView

# index for single, list of indices for multi, text for free-text
AnswerValue = int | list[int] | str | None


class AttemptStartRequest(BaseModel):
    """Request to start (or resume) an attempt."""
    exam_id: uuid.UUID


class ProctoringPolicy(BaseModel):
    """Supervisor settings the client must apply for this attempt."""
    violation_limit: int
    grace_period_seconds: float
    autosave_debounce_seconds: float


class AttemptStartResponse(BaseModel):
    """Response when an attempt is started or resumed."""
    attempt_id: uuid.UUID
    status: str
    attempt_number: int
    started_at: datetime
    server_end_time: datetime
    exam: ExamView
    proctoring: ProctoringPolicy


class AnswerItem(BaseModel):
    """A single recorded answer."""
    question_index: Annotated[int, Field(ge=0)]
    value: AnswerValue = None


class AnswerBatchRequest(BaseModel):
    """Debounced autosave batch: latest value per question index."""
    answers: list[AnswerItem] = Field(..., min_length=1)


class AnswerAck(BaseModel):
    attempt_id: uuid.UUID
    saved: int
    message: str = "Answer saved"


class SubmitRequest(BaseModel):
    """
    Request to submit an attempt.

    `forced` marks the client's own auto-submit path (timer expiry or a
    proctoring policy breach). `answers`, when present, are recorded before
    scoring and win over any autosave that never reached the server.
    """
    forced: bool = False
    answers: list[AnswerItem] | None = None


class SubmitResponse(BaseModel):
    attempt_id: uuid.UUID
    status: str
    score: float | None = None
    manual_grading_needed: bool
    submitted_at: datetime | None = None
    forced: bool
    message: str


class ProctorEventCreate(BaseModel):
    kind: ProctorEventKind
    metadata: dict[str, Any] | None = None


class ProctorEventAck(BaseModel):
    recorded: bool = True
    violations_count: int


class ProctorEventResponse(BaseModel):
    id: uuid.UUID
    attempt_id: uuid.UUID
    attempt_number: int
    kind: str
    metadata: dict[str, Any] | None = None
    created_at: datetime


class AttemptSummary(BaseModel):
    """Attempt row in the faculty submissions view."""
    model_config = ConfigDict(from_attributes=True)

    attempt_id: uuid.UUID
    student_id: uuid.UUID
    student_name: str | None = None
    student_email: str | None = None
    status: str
    attempt_number: int
    score: float | None = None
    manual_grading_needed: bool
    forced: bool
    violations_count: int
    started_at: datetime
    submitted_at: datetime | None = None


class MyAttemptItem(BaseModel):
    """Attempt history row for the student."""
    attempt_id: uuid.UUID
    exam_id: uuid.UUID
    exam_title: str
    status: str
    attempt_number: int
    score: float | None = None
    manual_grading_needed: bool
    started_at: datetime
    submitted_at: datetime | None = None
