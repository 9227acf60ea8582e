"""
Exam Platform - Proctoring Supervisor
Client-resident watcher for focus, visibility and fullscreen during an attempt.

    CLEAN --violation--> GRACE_PERIOD(deadline) --restored--> CLEAN
      |                        |
      |                        +--deadline passed--> TERMINATED (return-timeout)
      +--count reaches limit, or server end time--> TERMINATED

The host feeds environment changes through set_visible / set_focused /
set_fullscreen. Restoration is observed from those same calls, so a single
grace timer handle is the only escalation timer. Outbound calls run as
background tasks; a failed report never holds up a local transition.
"""
import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)

ReportEvent = Callable[[str, dict[str, Any] | None], Awaitable[Any]]
ForceSubmit = Callable[[str], Awaitable[Any]]


class SupervisorState(str, Enum):
    CLEAN = "clean"
    GRACE_PERIOD = "grace-period"
    TERMINATED = "terminated"


class TerminationReason(str, Enum):
    VIOLATION_LIMIT = "violation-limit"
    RETURN_TIMEOUT = "return-timeout"
    TIME_UP = "time-up"
    SUBMITTED = "submitted"

    @property
    def is_policy(self) -> bool:
        return self in (TerminationReason.VIOLATION_LIMIT, TerminationReason.RETURN_TIMEOUT)


class ProctoringSupervisor:
    """
    Finite-state machine guarding one in-progress attempt.

    Args:
        attempt_id: attempt being supervised (for logging)
        report_event: async callable(kind, metadata) sending a proctor event
        force_submit: async callable(reason) performing the forced submit
        violation_limit: violations that end the session immediately
        grace_period: seconds the student has to restore a compliant state
        server_end_time: authoritative deadline; reaching it forces submission
    """

    def __init__(
        self,
        attempt_id: str,
        report_event: ReportEvent,
        force_submit: ForceSubmit,
        violation_limit: int = 3,
        grace_period: float = 10.0,
        server_end_time: datetime | None = None,
    ):
        self.attempt_id = attempt_id
        self._report_event = report_event
        self._force_submit = force_submit
        self.violation_limit = violation_limit
        self.grace_period = grace_period
        self.server_end_time = server_end_time

        self.state = SupervisorState.CLEAN
        self.violations_count = 0
        self.overlay_reason: str | None = None
        self.deadline: float | None = None
        self.termination_reason: TerminationReason | None = None

        self.visible = True
        self.focused = True
        self.fullscreen = True

        self._loop: asyncio.AbstractEventLoop | None = None
        self._grace_handle: asyncio.TimerHandle | None = None
        self._end_handle: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_compliant(self) -> bool:
        return self.visible and self.focused and self.fullscreen

    @property
    def terminated(self) -> bool:
        return self.state == SupervisorState.TERMINATED

    def start(self) -> None:
        """Arm the server end time timer. Must be called from the running loop."""
        self._loop = asyncio.get_running_loop()
        if self.server_end_time is not None:
            remaining = (self.server_end_time - datetime.now(timezone.utc)).total_seconds()
            self._end_handle = self._loop.call_later(max(remaining, 0.0), self._time_up)

    def stop(self) -> None:
        """Stop supervising after a voluntary submit; no further calls are made."""
        self._enter_terminated(TerminationReason.SUBMITTED)

    async def drain(self) -> None:
        """Wait for outbound calls already in flight."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        self.stop()
        await self.drain()

    # ------------------------------------------------------------------
    # Environment signals
    # ------------------------------------------------------------------

    def set_visible(self, visible: bool) -> None:
        was, self.visible = self.visible, visible
        self._signal(was, visible, "visibility-hidden")

    def set_focused(self, focused: bool) -> None:
        was, self.focused = self.focused, focused
        self._signal(was, focused, "tab-blur")

    def set_fullscreen(self, fullscreen: bool) -> None:
        was, self.fullscreen = self.fullscreen, fullscreen
        self._signal(was, fullscreen, "fullscreen-exit")

    def _signal(self, was: bool, now: bool, kind: str) -> None:
        if self.terminated:
            return
        if was and not now:
            self._violation(kind)
        elif now and self.state == SupervisorState.GRACE_PERIOD and self.is_compliant:
            self._clear_overlay()

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _violation(self, kind: str) -> None:
        self.violations_count += 1
        self._spawn(
            f"report {kind}",
            self._report_event(kind, {"violation": self.violations_count}),
        )

        if self.violations_count >= self.violation_limit:
            logger.warning(
                f"[Proctor] Attempt {self.attempt_id}: violation limit "
                f"{self.violation_limit} reached ({kind})"
            )
            self._terminate(TerminationReason.VIOLATION_LIMIT)
            return

        # One overlay at a time; a new trigger moves its deadline
        self._cancel_grace()
        self.state = SupervisorState.GRACE_PERIOD
        self.overlay_reason = kind
        loop = self._get_loop()
        self.deadline = loop.time() + self.grace_period
        self._grace_handle = loop.call_later(self.grace_period, self._grace_expired)
        logger.info(
            f"[Proctor] Attempt {self.attempt_id}: {kind} "
            f"({self.violations_count}/{self.violation_limit}), grace {self.grace_period}s"
        )

    def _clear_overlay(self) -> None:
        self._cancel_grace()
        self.state = SupervisorState.CLEAN
        self.overlay_reason = None
        self.deadline = None
        logger.info(f"[Proctor] Attempt {self.attempt_id}: compliant state restored")

    def _grace_expired(self) -> None:
        self._grace_handle = None
        if self.state != SupervisorState.GRACE_PERIOD:
            return
        if self.is_compliant:
            self._clear_overlay()
            return
        self._terminate(TerminationReason.RETURN_TIMEOUT)

    def _time_up(self) -> None:
        self._end_handle = None
        if not self.terminated:
            logger.info(f"[Proctor] Attempt {self.attempt_id}: server end time reached")
            self._terminate(TerminationReason.TIME_UP)

    def _terminate(self, reason: TerminationReason) -> None:
        self._enter_terminated(reason)
        logger.warning(f"[Proctor] Attempt {self.attempt_id}: forcing submission ({reason.value})")
        self._spawn("forced submit", self._submit_then_log(reason))

    def _enter_terminated(self, reason: TerminationReason) -> None:
        if self.terminated:
            return
        self.state = SupervisorState.TERMINATED
        self.termination_reason = reason
        self._cancel_grace()
        if self._end_handle is not None:
            self._end_handle.cancel()
            self._end_handle = None

    async def _submit_then_log(self, reason: TerminationReason) -> None:
        await self._best_effort("forced submit", self._force_submit(reason.value))
        if reason == TerminationReason.RETURN_TIMEOUT:
            await self._best_effort(
                "report return-timeout",
                self._report_event("return-timeout", {"grace_period_seconds": self.grace_period}),
            )

    def _cancel_grace(self) -> None:
        if self._grace_handle is not None:
            self._grace_handle.cancel()
            self._grace_handle = None

    # ------------------------------------------------------------------
    # Background calls
    # ------------------------------------------------------------------

    async def _best_effort(self, what: str, call: Awaitable[Any]) -> None:
        try:
            await call
        except Exception as e:
            logger.warning(f"[Proctor] Attempt {self.attempt_id}: {what} failed: {e}")

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def _spawn(self, what: str, call: Awaitable[Any]) -> None:
        task = self._get_loop().create_task(self._best_effort(what, call))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
