"""
Exam Platform - Retake Grant Ledger
Per-exam, per-student consumable retake units.

The conditional decrement in `consume` is the serialization point for
concurrent retake starts; callers own the surrounding transaction.
"""
import logging
import uuid
from collections.abc import Sequence

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import utcnow
from app.models.exam import RetakeGrant

logger = logging.getLogger(__name__)


class RetakeLedger:
    """Service for granting and consuming retakes."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _increment(self, exam_id: uuid.UUID, student_id: uuid.UUID, count: int) -> bool:
        result = await self.db.execute(
            update(RetakeGrant)
            .where(
                RetakeGrant.exam_id == exam_id,
                RetakeGrant.student_id == student_id,
            )
            .values(remaining=RetakeGrant.remaining + count, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def grant(self, exam_id: uuid.UUID, student_id: uuid.UUID, count: int) -> int:
        """
        Add `count` units for the student, creating the entry if absent.

        Commits. Returns the new remaining count.
        """
        if count < 1:
            raise ValueError("Retake count must be positive")

        if not await self._increment(exam_id, student_id, count):
            self.db.add(RetakeGrant(exam_id=exam_id, student_id=student_id, remaining=count))
            try:
                await self.db.commit()
            except IntegrityError:
                # Another grant created the row first; add on top of it
                await self.db.rollback()
                await self._increment(exam_id, student_id, count)
                await self.db.commit()
        else:
            await self.db.commit()

        remaining = await self.remaining(exam_id, student_id)
        logger.info(f"Retake granted: exam={exam_id} student={student_id} remaining={remaining}")
        return remaining

    async def consume(self, exam_id: uuid.UUID, student_id: uuid.UUID) -> bool:
        """Take one unit if any is left. Does not commit."""
        result = await self.db.execute(
            update(RetakeGrant)
            .where(
                RetakeGrant.exam_id == exam_id,
                RetakeGrant.student_id == student_id,
                RetakeGrant.remaining > 0,
            )
            .values(remaining=RetakeGrant.remaining - 1, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def remaining(self, exam_id: uuid.UUID, student_id: uuid.UUID) -> int:
        result = await self.db.execute(
            select(RetakeGrant.remaining).where(
                RetakeGrant.exam_id == exam_id,
                RetakeGrant.student_id == student_id,
            )
        )
        return result.scalar_one_or_none() or 0

    async def remaining_for(
        self,
        exam_ids: Sequence[uuid.UUID],
        student_id: uuid.UUID,
    ) -> dict[uuid.UUID, int]:
        """Remaining units per exam for one student (exams without grants omitted)."""
        if not exam_ids:
            return {}
        result = await self.db.execute(
            select(RetakeGrant.exam_id, RetakeGrant.remaining).where(
                RetakeGrant.exam_id.in_(exam_ids),
                RetakeGrant.student_id == student_id,
            )
        )
        return {exam_id: remaining for exam_id, remaining in result.all()}
