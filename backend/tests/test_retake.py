"""
Exam Platform - Retake Grant Ledger Tests
"""
import asyncio
import uuid

import pytest

from app.models.user import UserRole
from app.services.retake import RetakeLedger


@pytest.mark.asyncio
async def test_grant_creates_and_accumulates(db_session, make_user, make_exam):
    owner = await make_user(UserRole.FACULTY)
    student = await make_user()
    exam = await make_exam(owner)
    ledger = RetakeLedger(db_session)

    assert await ledger.remaining(exam.id, student.id) == 0
    assert await ledger.grant(exam.id, student.id, 1) == 1
    assert await ledger.grant(exam.id, student.id, 2) == 3


@pytest.mark.asyncio
async def test_grant_rejects_non_positive_count(db_session):
    with pytest.raises(ValueError):
        await RetakeLedger(db_session).grant(uuid.uuid4(), uuid.uuid4(), 0)


@pytest.mark.asyncio
async def test_consume_until_empty(db_session, make_user, make_exam):
    owner = await make_user(UserRole.FACULTY)
    student = await make_user()
    exam = await make_exam(owner)
    ledger = RetakeLedger(db_session)
    await ledger.grant(exam.id, student.id, 2)

    assert await ledger.consume(exam.id, student.id)
    assert await ledger.consume(exam.id, student.id)
    assert not await ledger.consume(exam.id, student.id)
    await db_session.commit()
    assert await ledger.remaining(exam.id, student.id) == 0


@pytest.mark.asyncio
async def test_consume_without_grant(db_session, make_user, make_exam):
    owner = await make_user(UserRole.FACULTY)
    student = await make_user()
    exam = await make_exam(owner)

    assert not await RetakeLedger(db_session).consume(exam.id, student.id)


@pytest.mark.asyncio
async def test_concurrent_consumers_never_overdraw(session_maker, db_session, make_user, make_exam):
    owner = await make_user(UserRole.FACULTY)
    student = await make_user()
    exam = await make_exam(owner)
    await RetakeLedger(db_session).grant(exam.id, student.id, 2)

    async def consumer() -> bool:
        async with session_maker() as session:
            taken = await RetakeLedger(session).consume(exam.id, student.id)
            await session.commit()
            return taken

    results = await asyncio.gather(*(consumer() for _ in range(6)))

    assert results.count(True) == 2
    assert await RetakeLedger(db_session).remaining(exam.id, student.id) == 0


@pytest.mark.asyncio
async def test_remaining_for_many_exams(db_session, make_user, make_exam):
    owner = await make_user(UserRole.FACULTY)
    student = await make_user()
    first = await make_exam(owner, title="Quiz 1")
    second = await make_exam(owner, title="Quiz 2")
    ledger = RetakeLedger(db_session)
    await ledger.grant(first.id, student.id, 2)

    assert await ledger.remaining_for([first.id, second.id], student.id) == {first.id: 2}
    assert await ledger.remaining_for([], student.id) == {}
