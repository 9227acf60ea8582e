"""
Exam Platform - Exam Session
Runs one attempt on the student's machine: start, autosave, supervision, submit.
"""
import logging
import uuid
from datetime import datetime
from typing import Any

from app.client.api import ExamApiClient
from app.client.autosave import AnswerAutosaver
from app.client.supervisor import ProctoringSupervisor, TerminationReason

logger = logging.getLogger(__name__)


class SessionClosedError(Exception):
    """The attempt has already ended on this client."""
    pass


class ExamSession:
    """
    Client-side runner for a single attempt.

    Usage:
        session = ExamSession(api, exam_id)
        await session.start()
        session.answer(0, 2)
        session.supervisor.set_fullscreen(False)   # host environment signal
        result = await session.submit()
    """

    def __init__(self, api: ExamApiClient, exam_id: uuid.UUID | str):
        self.api = api
        self.exam_id = exam_id
        self.attempt_id: str | None = None
        self.exam: dict[str, Any] | None = None
        self.server_end_time: datetime | None = None
        self.supervisor: ProctoringSupervisor | None = None
        self.autosaver: AnswerAutosaver | None = None
        self.result: dict[str, Any] | None = None

    @property
    def ended(self) -> bool:
        return self.supervisor is not None and self.supervisor.terminated

    @property
    def ended_by_policy(self) -> bool:
        """True when the session was closed by a proctoring breach."""
        reason = self.supervisor.termination_reason if self.supervisor else None
        return reason is not None and reason.is_policy

    async def start(self) -> dict[str, Any]:
        """Start or resume the attempt and begin supervising it."""
        started = await self.api.start_attempt(self.exam_id)
        self.attempt_id = started["attempt_id"]
        self.exam = started["exam"]
        self.server_end_time = datetime.fromisoformat(started["server_end_time"])
        policy = started["proctoring"]

        self.autosaver = AnswerAutosaver(
            self._save_batch,
            debounce_seconds=policy["autosave_debounce_seconds"],
        )
        self.supervisor = ProctoringSupervisor(
            self.attempt_id,
            report_event=self._report_event,
            force_submit=self._force_submit,
            violation_limit=policy["violation_limit"],
            grace_period=policy["grace_period_seconds"],
            server_end_time=self.server_end_time,
        )
        self.supervisor.start()
        logger.info(
            f"[Session] Attempt {self.attempt_id} #{started['attempt_number']} "
            f"running until {self.server_end_time.isoformat()}"
        )
        return started

    def answer(self, question_index: int, value: Any) -> None:
        if self.autosaver is None or self.ended:
            raise SessionClosedError("Attempt is no longer in progress")
        self.autosaver.update(question_index, value)

    async def submit(self) -> dict[str, Any]:
        """
        Voluntary submit carrying the full local answer set.

        If the supervisor already forced the submission, waits for it and
        returns its result instead. A failed submit leaves the session
        running, deadline timer included, so it can be retried.
        """
        if self.supervisor is None or self.autosaver is None:
            raise SessionClosedError("Attempt was never started")
        if self.ended:
            return await self._forced_result()

        try:
            result = await self.api.submit_attempt(
                self.attempt_id, forced=False, answers=self.autosaver.answers
            )
        except Exception as e:
            if self.ended:
                # A forced submission overtook this one
                return await self._forced_result()
            logger.warning(f"[Session] Submit of attempt {self.attempt_id} failed: {e}")
            raise

        self.result = result
        self.supervisor.stop()
        self.autosaver.cancel()
        await self.aclose()
        return self.result

    async def _forced_result(self) -> dict[str, Any]:
        await self.supervisor.drain()
        if self.result is None:
            raise SessionClosedError("Attempt is no longer in progress")
        return self.result

    async def aclose(self) -> None:
        if self.supervisor is not None:
            await self.supervisor.aclose()
        if self.autosaver is not None:
            await self.autosaver.aclose()

    # ------------------------------------------------------------------
    # Supervisor and autosave callbacks
    # ------------------------------------------------------------------

    async def _save_batch(self, batch) -> None:
        await self.api.record_answers(self.attempt_id, batch)

    async def _report_event(self, kind: str, metadata: dict[str, Any] | None) -> None:
        await self.api.report_event(self.attempt_id, kind, metadata)

    async def _force_submit(self, reason: str) -> None:
        # The submit's own answer set wins over a stale pending autosave
        self.autosaver.cancel()
        self.result = await self.api.submit_attempt(
            self.attempt_id, forced=True, answers=self.autosaver.answers
        )
        if TerminationReason(reason).is_policy:
            logger.warning(f"[Session] Attempt {self.attempt_id}: {self.result['message']}")
        else:
            logger.info(f"[Session] Attempt {self.attempt_id} submitted at time limit")
