"""
Exam Platform - Attempt API
Start, answer and submit attempts; proctor event reporting
"""
import uuid

from fastapi import APIRouter, HTTPException, status

from app.api.deps import DbSession, FacultyUser, StudentPrincipal
from app.core.config import settings
from app.models.attempt import Attempt
from app.models.exam import Exam
from app.schemas.attempt import (
    AnswerAck,
    AnswerBatchRequest,
    AnswerItem,
    AttemptStartRequest,
    AttemptStartResponse,
    MyAttemptItem,
    ProctorEventAck,
    ProctorEventCreate,
    ProctorEventResponse,
    ProctoringPolicy,
    SubmitRequest,
    SubmitResponse,
)
from app.schemas.exam import ExamView, ExamWindow, QuestionView
from app.services.attempt import AttemptService
from app.services.exceptions import ExamPlatformError

router = APIRouter(prefix="/attempts", tags=["Attempts"])

FORCED_MESSAGE = "Your session was ended due to policy"
SUBMITTED_MESSAGE = "Exam submitted"


def _exam_view(exam: Exam, attempt: Attempt) -> ExamView:
    """Student view of the exam, built from the attempt's question snapshot."""
    return ExamView(
        id=exam.id,
        title=exam.title,
        description=exam.description or "",
        duration_minutes=exam.duration_minutes,
        window=ExamWindow(start=exam.window_start, end=exam.window_end),
        questions=[QuestionView.model_validate(q) for q in attempt.question_snapshot or []],
    )


def _policy() -> ProctoringPolicy:
    return ProctoringPolicy(
        violation_limit=settings.PROCTOR_VIOLATION_LIMIT,
        grace_period_seconds=settings.PROCTOR_GRACE_PERIOD_SECONDS,
        autosave_debounce_seconds=settings.AUTOSAVE_DEBOUNCE_SECONDS,
    )


def _items(answers: list[AnswerItem]) -> list[tuple[int, object]]:
    return [(a.question_index, a.value) for a in answers]


@router.post("/start", response_model=AttemptStartResponse)
async def start_attempt(
    request: AttemptStartRequest,
    principal: StudentPrincipal,
    db: DbSession,
):
    """
    Start an attempt, resume the one in progress, or open a retake.

    Repeated calls while the attempt is in progress return the same
    attempt and the same server end time.
    """
    service = AttemptService(db)
    try:
        attempt = await service.start(principal, request.exam_id)
        exam = await service.exams.get_exam(attempt.exam_id)
    except ExamPlatformError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

    return AttemptStartResponse(
        attempt_id=attempt.id,
        status=attempt.status,
        attempt_number=attempt.attempt_number,
        started_at=attempt.started_at,
        server_end_time=attempt.server_end_time,
        exam=_exam_view(exam, attempt),
        proctoring=_policy(),
    )


@router.get("/mine", response_model=list[MyAttemptItem])
async def list_my_attempts(
    principal: StudentPrincipal,
    db: DbSession,
):
    attempts = await AttemptService(db).list_mine(principal)
    return [
        MyAttemptItem(
            attempt_id=a.id,
            exam_id=a.exam_id,
            exam_title=a.exam.title,
            status=a.status,
            attempt_number=a.attempt_number,
            score=a.score,
            manual_grading_needed=a.manual_grading_needed,
            started_at=a.started_at,
            submitted_at=a.submitted_at,
        )
        for a in attempts
    ]


@router.post("/{attempt_id}/answer", response_model=AnswerAck)
async def record_answer(
    attempt_id: uuid.UUID,
    request: AnswerItem,
    principal: StudentPrincipal,
    db: DbSession,
):
    """Record one answer, replacing any earlier value for that question."""
    try:
        saved = await AttemptService(db).record_answer(
            principal, attempt_id, request.question_index, request.value
        )
    except ExamPlatformError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    return AnswerAck(attempt_id=attempt_id, saved=saved)


@router.put("/{attempt_id}/answers", response_model=AnswerAck)
async def record_answers(
    attempt_id: uuid.UUID,
    request: AnswerBatchRequest,
    principal: StudentPrincipal,
    db: DbSession,
):
    """Autosave batch: the latest value per question index."""
    try:
        saved = await AttemptService(db).record_answers(principal, attempt_id, _items(request.answers))
    except ExamPlatformError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    return AnswerAck(attempt_id=attempt_id, saved=saved, message="Answers saved")


@router.post("/{attempt_id}/submit", response_model=SubmitResponse)
async def submit_attempt(
    attempt_id: uuid.UUID,
    request: SubmitRequest,
    principal: StudentPrincipal,
    db: DbSession,
):
    """
    Submit and score an attempt.

    A forced submit of an attempt that is already closed returns the stored
    result; a voluntary one is rejected.
    """
    answers = _items(request.answers) if request.answers is not None else None
    try:
        attempt = await AttemptService(db).submit(
            principal, attempt_id, forced=request.forced, answers=answers
        )
    except ExamPlatformError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

    return SubmitResponse(
        attempt_id=attempt.id,
        status=attempt.status,
        score=attempt.score,
        manual_grading_needed=attempt.manual_grading_needed,
        submitted_at=attempt.submitted_at,
        forced=attempt.forced_submission,
        message=FORCED_MESSAGE if attempt.forced_submission else SUBMITTED_MESSAGE,
    )


@router.post(
    "/{attempt_id}/events",
    response_model=ProctorEventAck,
    status_code=status.HTTP_202_ACCEPTED,
)
async def report_proctor_event(
    attempt_id: uuid.UUID,
    request: ProctorEventCreate,
    principal: StudentPrincipal,
    db: DbSession,
):
    try:
        attempt = await AttemptService(db).report_event(
            principal, attempt_id, request.kind, request.metadata
        )
    except ExamPlatformError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    return ProctorEventAck(violations_count=attempt.violations_count)


@router.get("/{attempt_id}/events", response_model=list[ProctorEventResponse])
async def list_proctor_events(
    attempt_id: uuid.UUID,
    current_user: FacultyUser,
    db: DbSession,
):
    """Violation log of an attempt, for the owner of its exam."""
    try:
        events = await AttemptService(db).list_events(current_user.id, attempt_id)
    except ExamPlatformError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

    return [
        ProctorEventResponse(
            id=event.id,
            attempt_id=event.attempt_id,
            attempt_number=event.attempt_number,
            kind=event.kind,
            metadata=event.event_metadata,
            created_at=event.created_at,
        )
        for event in events
    ]
