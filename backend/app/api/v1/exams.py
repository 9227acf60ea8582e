"""
Exam Platform - Exam API
Faculty exam authoring, retake grants and submissions; student exam listing
"""
import uuid

from fastapi import APIRouter, HTTPException, status

from app.api.deps import DbSession, FacultyUser, StudentPrincipal
from app.models.attempt import Attempt
from app.schemas.attempt import AttemptSummary
from app.schemas.exam import (
    AvailableExam,
    ExamCreate,
    ExamResponse,
    ExamUpdate,
    ExamWindow,
    RetakeGrantRequest,
    RetakeGrantResponse,
)
from app.services.attempt import AttemptService
from app.services.exam import ExamService
from app.services.exceptions import ExamPlatformError
from app.services.retake import RetakeLedger

router = APIRouter(prefix="/exams", tags=["Exams"])


def _summary(attempt: Attempt) -> AttemptSummary:
    student = attempt.student
    return AttemptSummary(
        attempt_id=attempt.id,
        student_id=attempt.student_id,
        student_name=student.name if student else None,
        student_email=student.email if student else None,
        status=attempt.status,
        attempt_number=attempt.attempt_number,
        score=attempt.score,
        manual_grading_needed=attempt.manual_grading_needed,
        forced=attempt.forced_submission,
        violations_count=attempt.violations_count,
        started_at=attempt.started_at,
        submitted_at=attempt.submitted_at,
    )


# ============================================================================
# Student
# ============================================================================

@router.get("/available", response_model=list[AvailableExam])
async def list_available_exams(
    principal: StudentPrincipal,
    db: DbSession,
):
    """
    Exams whose window has not ended and whose criteria match the caller,
    each with the caller's attempt status.
    """
    entries = await AttemptService(db).list_available(principal)
    return [
        AvailableExam(
            exam_id=entry.exam.id,
            title=entry.exam.title,
            description=entry.exam.description or "",
            duration_minutes=entry.exam.duration_minutes,
            window=ExamWindow(start=entry.exam.window_start, end=entry.exam.window_end),
            status=entry.status,
        )
        for entry in entries
    ]


# ============================================================================
# Faculty authoring
# ============================================================================

@router.post("", response_model=ExamResponse, status_code=status.HTTP_201_CREATED)
async def create_exam(
    data: ExamCreate,
    current_user: FacultyUser,
    db: DbSession,
):
    exam = await ExamService(db).create_exam(current_user.id, data)
    return ExamResponse.from_model(exam)


@router.get("", response_model=list[ExamResponse])
async def list_my_exams(
    current_user: FacultyUser,
    db: DbSession,
):
    """List exams created by the caller, newest first."""
    exams = await ExamService(db).list_owned_exams(current_user.id)
    return [ExamResponse.from_model(e) for e in exams]


@router.get("/{exam_id}", response_model=ExamResponse)
async def get_exam(
    exam_id: uuid.UUID,
    current_user: FacultyUser,
    db: DbSession,
):
    try:
        exam = await ExamService(db).get_owned_exam(current_user.id, exam_id)
    except ExamPlatformError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    return ExamResponse.from_model(exam)


@router.put("/{exam_id}", response_model=ExamResponse)
async def update_exam(
    exam_id: uuid.UUID,
    data: ExamUpdate,
    current_user: FacultyUser,
    db: DbSession,
):
    """
    Update an exam. Attempts already started keep the questions they were
    started with.
    """
    try:
        exam = await ExamService(db).update_exam(current_user.id, exam_id, data)
    except ExamPlatformError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    return ExamResponse.from_model(exam)


@router.delete("/{exam_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_exam(
    exam_id: uuid.UUID,
    current_user: FacultyUser,
    db: DbSession,
):
    try:
        await ExamService(db).delete_exam(current_user.id, exam_id)
    except ExamPlatformError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


# ============================================================================
# Retakes and submissions
# ============================================================================

@router.post("/{exam_id}/retakes", response_model=RetakeGrantResponse)
async def grant_retake(
    exam_id: uuid.UUID,
    request: RetakeGrantRequest,
    current_user: FacultyUser,
    db: DbSession,
):
    """Allow a student `count` additional attempts at this exam."""
    exams = ExamService(db)
    try:
        await exams.get_owned_exam(current_user.id, exam_id)
        await exams.get_student(request.student_id)
    except ExamPlatformError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

    remaining = await RetakeLedger(db).grant(exam_id, request.student_id, request.count)
    return RetakeGrantResponse(
        exam_id=exam_id,
        student_id=request.student_id,
        remaining=remaining,
    )


@router.get("/{exam_id}/attempts", response_model=list[AttemptSummary])
async def list_attempts_for_exam(
    exam_id: uuid.UUID,
    current_user: FacultyUser,
    db: DbSession,
):
    try:
        attempts = await AttemptService(db).list_for_exam(current_user.id, exam_id)
    except ExamPlatformError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    return [_summary(a) for a in attempts]
