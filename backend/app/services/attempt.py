"""
Exam Platform - Attempt Service
State machine for one student's timed encounter with an exam.

    (no row) --start--> in-progress --submit--> submitted
                             ^                      |
                             +---- retake grant ----+   (also from invalid)

Storage-level guards make the hot paths safe without locks:
- creation relies on the unique (exam, student) constraint; a losing
  concurrent creator reads the winner's row
- submission is a conditional update on status = in-progress
- a retake reopen consumes a grant unit and reopens the row in one
  transaction; if the reopen loses, the transaction is rolled back
"""
import logging
import uuid
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import delete, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.database import as_utc, utcnow
from app.models.attempt import (
    TERMINAL_STATUSES,
    Attempt,
    AttemptAnswer,
    AttemptStatus,
    ProctorEvent,
    ProctorEventKind,
)
from app.models.exam import Exam
from app.schemas.exam import Question
from app.services.eligibility import is_eligible
from app.services.exam import ExamService
from app.services.exceptions import (
    AlreadyCompletedError,
    AlreadySubmittedError,
    AttemptNotFoundError,
    NotEligibleError,
    NotInProgressError,
    WindowClosedError,
)
from app.services.identity import Principal
from app.services.retake import RetakeLedger
from app.services.scoring import normalize_answer, score_answers

logger = logging.getLogger(__name__)

IN_PROGRESS = AttemptStatus.IN_PROGRESS.value


def compute_server_end_time(started_at: datetime, duration_minutes: int, window_end: datetime) -> datetime:
    """Authoritative deadline: the duration limit, capped at the window end."""
    return min(started_at + timedelta(minutes=duration_minutes), window_end)


@dataclass
class AvailableExamStatus:
    exam: Exam
    status: str


class AttemptService:
    """Service for the attempt lifecycle and the proctoring log."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.exams = ExamService(db)
        self.ledger = RetakeLedger(db)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def _find_attempt(self, exam_id: uuid.UUID, student_id: uuid.UUID) -> Attempt | None:
        result = await self.db.execute(
            select(Attempt)
            .where(Attempt.exam_id == exam_id, Attempt.student_id == student_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _reload(self, attempt_id: uuid.UUID) -> Attempt:
        attempt = await self.db.get(Attempt, attempt_id, populate_existing=True)
        if attempt is None:
            raise AttemptNotFoundError()
        return attempt

    async def get_owned_attempt(self, principal: Principal, attempt_id: uuid.UUID) -> Attempt:
        """Another student's attempt is reported as missing."""
        attempt = await self.db.get(Attempt, attempt_id, populate_existing=True)
        if attempt is None or attempt.student_id != principal.user_id:
            raise AttemptNotFoundError()
        return attempt

    @staticmethod
    def questions_of(attempt: Attempt) -> list[Question]:
        return [Question.model_validate(q) for q in attempt.question_snapshot or []]

    async def answers_of(self, attempt_id: uuid.UUID) -> dict[int, Any]:
        result = await self.db.execute(
            select(AttemptAnswer.question_index, AttemptAnswer.value)
            .where(AttemptAnswer.attempt_id == attempt_id)
        )
        return {index: value for index, value in result.all()}

    # ------------------------------------------------------------------
    # Start
    # ------------------------------------------------------------------

    async def start(
        self,
        principal: Principal,
        exam_id: uuid.UUID,
        now: datetime | None = None,
    ) -> Attempt:
        """
        Start, resume or retake an attempt.

        Raises:
            ExamNotFoundError, NotEligibleError, WindowClosedError,
            AlreadyCompletedError
        """
        now = as_utc(now) if now else utcnow()
        exam = await self.exams.get_exam(exam_id)

        if not is_eligible(principal.profile, exam.assignment_criteria):
            raise NotEligibleError()
        if not (exam.window_start <= now <= exam.window_end):
            raise WindowClosedError()

        # Plain values only past this point: a rollback expires ORM instances
        duration = exam.duration_minutes
        window_end = exam.window_end
        snapshot = list(exam.questions or [])

        attempt = await self._find_attempt(exam_id, principal.user_id)
        if attempt is None:
            attempt, created = await self._create(principal, exam_id, snapshot, duration, window_end, now)
            if created:
                return attempt

        if attempt.status == IN_PROGRESS:
            logger.info(f"Attempt resumed: {attempt.id} (student={principal.user_id})")
            return attempt

        return await self._reopen(principal, attempt.id, exam_id, snapshot, duration, window_end, now)

    async def _create(
        self,
        principal: Principal,
        exam_id: uuid.UUID,
        snapshot: list,
        duration: int,
        window_end: datetime,
        now: datetime,
    ) -> tuple[Attempt, bool]:
        attempt_id = uuid.uuid4()
        self.db.add(Attempt(
            id=attempt_id,
            exam_id=exam_id,
            student_id=principal.user_id,
            principal_kind=principal.kind,
            status=IN_PROGRESS,
            attempt_number=1,
            started_at=now,
            server_end_time=compute_server_end_time(now, duration, window_end),
            question_snapshot=snapshot,
        ))
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            logger.warning(
                f"Concurrent start for exam={exam_id} student={principal.user_id}; "
                "reading the winning attempt"
            )
            winner = await self._find_attempt(exam_id, principal.user_id)
            if winner is None:
                raise
            return winner, False

        logger.info(f"Attempt created: {attempt_id} (exam={exam_id}, student={principal.user_id})")
        return await self._reload(attempt_id), True

    async def _reopen(
        self,
        principal: Principal,
        attempt_id: uuid.UUID,
        exam_id: uuid.UUID,
        snapshot: list,
        duration: int,
        window_end: datetime,
        now: datetime,
    ) -> Attempt:
        if not await self.ledger.consume(exam_id, principal.user_id):
            await self.db.rollback()
            # A concurrent start may have spent the last unit reopening this attempt
            attempt = await self._reload(attempt_id)
            if attempt.status == IN_PROGRESS:
                return attempt
            raise AlreadyCompletedError()

        result = await self.db.execute(
            update(Attempt)
            .where(Attempt.id == attempt_id, Attempt.status.in_(TERMINAL_STATUSES))
            .values(
                status=IN_PROGRESS,
                principal_kind=principal.kind,
                attempt_number=Attempt.attempt_number + 1,
                started_at=now,
                server_end_time=compute_server_end_time(now, duration, window_end),
                submitted_at=None,
                score=None,
                manual_grading_needed=False,
                forced_submission=False,
                violations_count=0,
                question_snapshot=snapshot,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            # Someone else reopened it first; give the unit back
            await self.db.rollback()
            return await self._reload(attempt_id)

        await self.db.execute(
            delete(AttemptAnswer)
            .where(AttemptAnswer.attempt_id == attempt_id)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        logger.info(f"Retake consumed: attempt {attempt_id} reopened (student={principal.user_id})")
        return await self._reload(attempt_id)

    # ------------------------------------------------------------------
    # Answers
    # ------------------------------------------------------------------

    def _upsert_statement(self, attempt_id: uuid.UUID, index: int, value: Any):
        dialect = self.db.get_bind().dialect.name
        insert_fn = sqlite_insert if dialect == "sqlite" else pg_insert
        stmt = insert_fn(AttemptAnswer).values(
            id=uuid.uuid4(),
            attempt_id=attempt_id,
            question_index=index,
            value=value,
            updated_at=utcnow(),
        )
        return stmt.on_conflict_do_update(
            index_elements=["attempt_id", "question_index"],
            set_={"value": stmt.excluded.value, "updated_at": stmt.excluded.updated_at},
        )

    async def _write_answers(self, attempt: Attempt, items: Iterable[tuple[int, Any]]) -> int:
        questions = self.questions_of(attempt)
        normalized = [(index, normalize_answer(questions, index, value)) for index, value in items]
        for index, value in normalized:
            await self.db.execute(self._upsert_statement(attempt.id, index, value))
        return len(normalized)

    async def record_answers(
        self,
        principal: Principal,
        attempt_id: uuid.UUID,
        items: Iterable[tuple[int, Any]],
    ) -> int:
        """
        Record answers; each overwrites the prior value for its index.

        Raises:
            AttemptNotFoundError, NotInProgressError, InvalidAnswerError
        """
        attempt = await self.get_owned_attempt(principal, attempt_id)
        if attempt.status != IN_PROGRESS:
            raise NotInProgressError()

        saved = await self._write_answers(attempt, items)
        await self.db.commit()
        logger.debug(f"Saved {saved} answer(s) on attempt {attempt_id}")
        return saved

    async def record_answer(
        self,
        principal: Principal,
        attempt_id: uuid.UUID,
        question_index: int,
        value: Any,
    ) -> int:
        return await self.record_answers(principal, attempt_id, [(question_index, value)])

    # ------------------------------------------------------------------
    # Submit
    # ------------------------------------------------------------------

    async def submit(
        self,
        principal: Principal,
        attempt_id: uuid.UUID,
        now: datetime | None = None,
        forced: bool = False,
        answers: Iterable[tuple[int, Any]] | None = None,
    ) -> Attempt:
        """
        Score and close an in-progress attempt.

        A forced submit racing a finished one is a no-op returning the
        stored result; a voluntary duplicate raises AlreadySubmittedError.
        """
        now = as_utc(now) if now else utcnow()
        attempt = await self.get_owned_attempt(principal, attempt_id)
        if attempt.is_terminal:
            if forced:
                return attempt
            raise AlreadySubmittedError()

        if answers is not None:
            await self._write_answers(attempt, answers)

        result = score_answers(self.questions_of(attempt), await self.answers_of(attempt_id))

        outcome = await self.db.execute(
            update(Attempt)
            .where(Attempt.id == attempt_id, Attempt.status == IN_PROGRESS)
            .values(
                status=AttemptStatus.SUBMITTED.value,
                submitted_at=now,
                score=result.total,
                manual_grading_needed=result.manual_grading_needed,
                forced_submission=forced,
            )
            .execution_options(synchronize_session=False)
        )
        if outcome.rowcount != 1:
            await self.db.rollback()
            attempt = await self._reload(attempt_id)
            if forced:
                return attempt
            raise AlreadySubmittedError()

        await self.db.commit()
        logger.info(
            f"Attempt submitted: {attempt_id} score={result.total}/{result.max_total} "
            f"manual_grading={result.manual_grading_needed} forced={forced}"
        )
        return await self._reload(attempt_id)

    # ------------------------------------------------------------------
    # Proctoring log
    # ------------------------------------------------------------------

    async def report_event(
        self,
        principal: Principal,
        attempt_id: uuid.UUID,
        kind: ProctorEventKind,
        metadata: dict | None = None,
        now: datetime | None = None,
    ) -> Attempt:
        """
        Append a proctor event.

        Violations count only while the attempt is in progress; events for
        terminal attempts are still logged.
        """
        attempt = await self.get_owned_attempt(principal, attempt_id)
        kind = ProctorEventKind(kind)

        self.db.add(ProctorEvent(
            attempt_id=attempt.id,
            attempt_number=attempt.attempt_number,
            kind=kind.value,
            event_metadata=metadata,
            created_at=now or utcnow(),
        ))
        if kind.is_violation:
            await self.db.execute(
                update(Attempt)
                .where(Attempt.id == attempt_id, Attempt.status == IN_PROGRESS)
                .values(violations_count=Attempt.violations_count + 1)
                .execution_options(synchronize_session=False)
            )
        await self.db.commit()
        logger.debug(f"Proctor event {kind.value} on attempt {attempt_id}")
        return await self._reload(attempt_id)

    async def list_events(self, owner_id: uuid.UUID, attempt_id: uuid.UUID) -> list[ProctorEvent]:
        """Events of an attempt, for the faculty member owning its exam."""
        attempt = await self.db.get(Attempt, attempt_id)
        if attempt is None:
            raise AttemptNotFoundError()
        await self.exams.get_owned_exam(owner_id, attempt.exam_id)

        result = await self.db.execute(
            select(ProctorEvent)
            .where(ProctorEvent.attempt_id == attempt_id)
            .order_by(ProctorEvent.created_at)
        )
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Listings
    # ------------------------------------------------------------------

    async def list_available(
        self,
        principal: Principal,
        now: datetime | None = None,
    ) -> list[AvailableExamStatus]:
        """Unfinished-window exams the student is eligible for, with their status."""
        now = now or utcnow()
        result = await self.db.execute(
            select(Exam)
            .where(Exam.window_end >= now)
            .order_by(Exam.window_start)
        )
        exams = [e for e in result.scalars().all() if is_eligible(principal.profile, e.assignment_criteria)]
        exam_ids = [e.id for e in exams]
        if not exam_ids:
            return []

        result = await self.db.execute(
            select(Attempt.exam_id, Attempt.status).where(
                Attempt.student_id == principal.user_id,
                Attempt.exam_id.in_(exam_ids),
            )
        )
        statuses = {exam_id: status for exam_id, status in result.all()}
        grants = await self.ledger.remaining_for(exam_ids, principal.user_id)

        available = []
        for exam in exams:
            status = statuses.get(exam.id, AttemptStatus.NOT_STARTED.value)
            if status in TERMINAL_STATUSES and grants.get(exam.id, 0) > 0:
                status = AttemptStatus.NOT_STARTED.value
            available.append(AvailableExamStatus(exam=exam, status=status))
        return available

    async def list_for_exam(self, owner_id: uuid.UUID, exam_id: uuid.UUID) -> list[Attempt]:
        await self.exams.get_owned_exam(owner_id, exam_id)
        result = await self.db.execute(
            select(Attempt)
            .where(Attempt.exam_id == exam_id)
            .options(selectinload(Attempt.student))
            .order_by(Attempt.started_at)
        )
        return list(result.scalars().all())

    async def list_mine(self, principal: Principal) -> list[Attempt]:
        result = await self.db.execute(
            select(Attempt)
            .where(Attempt.student_id == principal.user_id)
            .options(selectinload(Attempt.exam))
            .order_by(Attempt.started_at.desc())
        )
        return list(result.scalars().all())
