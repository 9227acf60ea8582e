"""
Exam Platform - Answer Autosave
Trailing debounce: edits coalesce per question index into one batch.
"""
import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

logger = logging.getLogger(__name__)

SaveBatch = Callable[[Mapping[int, Any]], Awaitable[Any]]


class AnswerAutosaver:
    """
    Debounced answer saver for one attempt.

    Every edit restarts the countdown; when it runs out, the latest value
    of each edited question goes out in one batch. Failed saves are logged
    and dropped: the submit carries the full answer set anyway.
    """

    def __init__(self, save: SaveBatch, debounce_seconds: float = 3.0):
        self._save = save
        self.debounce_seconds = debounce_seconds
        self._answers: dict[int, Any] = {}
        self._pending: dict[int, Any] = {}
        self._handle: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Task] = set()
        self._closed = False

    @property
    def answers(self) -> dict[int, Any]:
        """Latest local value of every answered question."""
        return dict(self._answers)

    @property
    def pending(self) -> dict[int, Any]:
        return dict(self._pending)

    def update(self, question_index: int, value: Any) -> None:
        if self._closed:
            return
        self._answers[question_index] = value
        self._pending[question_index] = value

        if self._handle is not None:
            self._handle.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.debounce_seconds, self._fire)

    def _fire(self) -> None:
        self._handle = None
        batch = self._take()
        if not batch:
            return
        task = asyncio.get_running_loop().create_task(self._send(batch))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _take(self) -> dict[int, Any]:
        batch, self._pending = self._pending, {}
        return batch

    async def _send(self, batch: dict[int, Any]) -> bool:
        try:
            await self._save(batch)
        except Exception as e:
            logger.warning(f"[Autosave] Failed to save {len(batch)} answer(s): {e}")
            return False
        logger.debug(f"[Autosave] Saved {len(batch)} answer(s)")
        return True

    async def flush(self) -> bool:
        """Send the pending batch now. Returns False if the save failed."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        batch = self._take()
        if not batch:
            return True
        return await self._send(batch)

    def cancel(self) -> None:
        """Drop the pending batch and stop accepting edits."""
        self._closed = True
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self._pending = {}

    async def aclose(self) -> None:
        self.cancel()
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
