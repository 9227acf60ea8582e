"""
Exam Platform - Answer Autosave Tests
"""
import asyncio

import pytest

from app.client.autosave import AnswerAutosaver

DEBOUNCE = 0.05


class Sink:
    def __init__(self, fail: bool = False):
        self.batches: list[dict] = []
        self.fail = fail

    async def save(self, batch):
        if self.fail:
            raise ConnectionError("network down")
        self.batches.append(dict(batch))


@pytest.mark.asyncio
async def test_edits_coalesce_into_one_batch():
    sink = Sink()
    saver = AnswerAutosaver(sink.save, debounce_seconds=DEBOUNCE)

    saver.update(0, 1)
    await asyncio.sleep(DEBOUNCE / 3)
    saver.update(1, [0, 2])
    saver.update(0, 2)
    await asyncio.sleep(DEBOUNCE * 3)

    assert sink.batches == [{0: 2, 1: [0, 2]}]
    await saver.aclose()


@pytest.mark.asyncio
async def test_flush_sends_pending_now():
    sink = Sink()
    saver = AnswerAutosaver(sink.save, debounce_seconds=60)

    saver.update(2, "draft")
    assert await saver.flush()
    assert sink.batches == [{2: "draft"}]
    assert saver.pending == {}
    assert await saver.flush()
    assert sink.batches == [{2: "draft"}]


@pytest.mark.asyncio
async def test_cancel_drops_pending_but_keeps_answers():
    sink = Sink()
    saver = AnswerAutosaver(sink.save, debounce_seconds=DEBOUNCE)

    saver.update(0, 1)
    saver.cancel()
    saver.update(1, 3)
    await asyncio.sleep(DEBOUNCE * 3)

    assert sink.batches == []
    assert saver.answers == {0: 1}


@pytest.mark.asyncio
async def test_failed_save_is_swallowed():
    saver = AnswerAutosaver(Sink(fail=True).save, debounce_seconds=DEBOUNCE)

    saver.update(0, 1)
    assert await saver.flush() is False
    assert saver.answers == {0: 1}
