"""
Exam Platform - Exam Authoring Service
Owner-scoped create, read, update and delete of exams
"""
import logging
import uuid

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.exam import Exam
from app.models.user import User, UserRole
from app.schemas.exam import ExamCreate, ExamUpdate
from app.services.exceptions import (
    ExamNotFoundError,
    ExamPlatformError,
    NotExamOwnerError,
    StudentNotFoundError,
)

logger = logging.getLogger(__name__)


def _apply(exam: Exam, data: ExamCreate) -> None:
    exam.title = data.title
    exam.description = data.description
    exam.duration_minutes = data.duration_minutes
    exam.window_start = data.window.start
    exam.window_end = data.window.end
    exam.questions = [q.model_dump(mode="json") for q in data.questions]
    exam.assignment_criteria = (
        data.assignment_criteria.model_dump(mode="json")
        if data.assignment_criteria else None
    )


class ExamService:
    """Service for faculty exam management."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_exam(self, exam_id: uuid.UUID) -> Exam:
        exam = await self.db.get(Exam, exam_id)
        if exam is None:
            raise ExamNotFoundError()
        return exam

    async def get_owned_exam(self, owner_id: uuid.UUID, exam_id: uuid.UUID) -> Exam:
        """
        Load an exam the caller owns.

        Raises:
            ExamNotFoundError: no such exam
            NotExamOwnerError: the exam belongs to someone else
        """
        exam = await self.get_exam(exam_id)
        if exam.owner_id != owner_id:
            raise NotExamOwnerError()
        return exam

    async def create_exam(self, owner_id: uuid.UUID, data: ExamCreate) -> Exam:
        exam = Exam(owner_id=owner_id)
        _apply(exam, data)
        self.db.add(exam)
        await self.db.commit()
        await self.db.refresh(exam)
        logger.info(f"Exam created: {exam.id} by {owner_id} ({len(exam.questions)} questions)")
        return exam

    async def list_owned_exams(self, owner_id: uuid.UUID) -> list[Exam]:
        result = await self.db.execute(
            select(Exam)
            .where(Exam.owner_id == owner_id)
            .order_by(Exam.created_at.desc())
        )
        return list(result.scalars().all())

    async def update_exam(self, owner_id: uuid.UUID, exam_id: uuid.UUID, data: ExamUpdate) -> Exam:
        """
        Merge a partial update into the exam and re-validate the whole.

        Attempts already opened keep their question snapshot, so edits only
        affect attempts started (or retaken) afterwards.
        """
        exam = await self.get_owned_exam(owner_id, exam_id)

        current = {
            "title": exam.title,
            "description": exam.description,
            "duration_minutes": exam.duration_minutes,
            "window": {"start": exam.window_start, "end": exam.window_end},
            "questions": exam.questions or [],
            "assignment_criteria": exam.assignment_criteria,
        }
        current.update(data.model_dump(exclude_unset=True, mode="json"))
        try:
            merged = ExamCreate.model_validate(current)
        except ValidationError as e:
            raise ExamPlatformError(f"Invalid exam: {e.errors()[0]['msg']}")

        _apply(exam, merged)
        await self.db.commit()
        await self.db.refresh(exam)
        logger.info(f"Exam updated: {exam.id}")
        return exam

    async def delete_exam(self, owner_id: uuid.UUID, exam_id: uuid.UUID) -> None:
        exam = await self.get_owned_exam(owner_id, exam_id)
        await self.db.delete(exam)
        await self.db.commit()
        logger.info(f"Exam deleted: {exam_id}")

    async def get_student(self, student_id: uuid.UUID) -> User:
        user = await self.db.get(User, student_id)
        if user is None or user.role != UserRole.STUDENT:
            raise StudentNotFoundError()
        return user
