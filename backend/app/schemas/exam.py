"""
Exam Platform - Exam Schemas
Pydantic schemas for exam authoring, the redacted student view and retake grants
"""
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class QuestionType(str, Enum):
    """Supported question kinds."""
    SINGLE = "single"
    MULTI = "multi"
    TEXT = "text"


class QuestionBase(BaseModel):
    type: QuestionType
    text: Annotated[str, Field(min_length=1)]
    options: list[str] = Field(default_factory=list)
    points: Annotated[float, Field(gt=0)] = 1.0


class Question(QuestionBase):
    """A question definition including its answer key."""
    correct_answers: list[int] = Field(default_factory=list)

    @field_validator("correct_answers")
    @classmethod
    def dedupe_correct_answers(cls, v: list[int]) -> list[int]:
        return sorted(set(v))

    @model_validator(mode="after")
    def check_answer_key(self) -> "Question":
        if self.type == QuestionType.TEXT:
            if self.options or self.correct_answers:
                raise ValueError("Free-text questions take no options or correct answers")
            return self

        if not self.options:
            raise ValueError(f"A {self.type.value} question needs at least one option")
        out_of_range = [i for i in self.correct_answers if i < 0 or i >= len(self.options)]
        if out_of_range:
            raise ValueError(f"Correct answer indices out of range: {out_of_range}")
        if self.type == QuestionType.SINGLE and len(self.correct_answers) > 1:
            raise ValueError("A single-choice question has at most one correct answer")
        return self


class QuestionView(QuestionBase):
    """A question as shown to a student (no answer key)."""
    pass


class ExamWindow(BaseModel):
    """Instant range during which an attempt may be started."""
    start: datetime
    end: datetime

    @field_validator("start", "end")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @model_validator(mode="after")
    def check_order(self) -> "ExamWindow":
        if self.start >= self.end:
            raise ValueError("Window start must be before window end")
        return self


class AssignmentCriteria(BaseModel):
    """Exam-level filters; an empty or missing filter matches every profile."""
    college: str | None = None
    year: list[int] = Field(default_factory=list)
    department: list[str] = Field(default_factory=list)
    section: list[int] = Field(default_factory=list)
    semester: list[int] = Field(default_factory=list)


# ============================================================================
# Authoring
# ============================================================================

class ExamBase(BaseModel):
    title: Annotated[str, Field(min_length=1, max_length=300)]
    description: str = ""
    duration_minutes: Annotated[int, Field(gt=0)]
    window: ExamWindow
    questions: list[Question] = Field(default_factory=list)
    assignment_criteria: AssignmentCriteria | None = None


class ExamCreate(ExamBase):
    """Request to create an exam."""
    pass


class ExamUpdate(BaseModel):
    """Partial update; the merged result is validated as a whole."""
    title: Annotated[str, Field(min_length=1, max_length=300)] | None = None
    description: str | None = None
    duration_minutes: Annotated[int, Field(gt=0)] | None = None
    window: ExamWindow | None = None
    questions: list[Question] | None = None
    assignment_criteria: AssignmentCriteria | None = None


class ExamResponse(ExamBase):
    """Full exam as seen by its owner."""
    id: uuid.UUID
    owner_id: uuid.UUID
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, exam) -> "ExamResponse":
        return cls(
            id=exam.id,
            owner_id=exam.owner_id,
            title=exam.title,
            description=exam.description or "",
            duration_minutes=exam.duration_minutes,
            window=ExamWindow(start=exam.window_start, end=exam.window_end),
            questions=exam.questions or [],
            assignment_criteria=exam.assignment_criteria,
            created_at=exam.created_at,
            updated_at=exam.updated_at,
        )


class ExamView(BaseModel):
    """Exam as delivered to a student taking it."""
    id: uuid.UUID
    title: str
    description: str
    duration_minutes: int
    window: ExamWindow
    questions: list[QuestionView]


class AvailableExam(BaseModel):
    """An exam visible to a student, paired with their attempt status."""
    exam_id: uuid.UUID
    title: str
    description: str
    duration_minutes: int
    window: ExamWindow
    status: str


# ============================================================================
# Retakes
# ============================================================================

class RetakeGrantRequest(BaseModel):
    """Faculty request to allow additional attempts."""
    student_id: uuid.UUID
    count: Annotated[int, Field(ge=1, le=100)] = 1


class RetakeGrantResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    exam_id: uuid.UUID
    student_id: uuid.UUID
    remaining: int
