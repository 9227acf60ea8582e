"""
Exam Platform - Test Configuration
Pytest fixtures and configuration for testing
"""
from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.core.database import Base, get_db
from app.core.security import create_access_token
from app.main import app
from app.models.exam import Exam
from app.models.user import AcademicProfile, User, UserRole
from app.services.eligibility import StudentProfile
from app.services.identity import Principal


@pytest_asyncio.fixture(scope="function")
async def engine(tmp_path):
    """File-backed SQLite so concurrent sessions get their own connections."""
    test_engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        echo=False,
        poolclass=NullPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_engine.dispose()


@pytest.fixture
def session_maker(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for each test."""
    async with session_maker() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def client(session_maker) -> AsyncGenerator[AsyncClient, None]:
    """Create a test client with database session override."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


# ============================================================================
# Factories
# ============================================================================

@pytest.fixture
def now() -> datetime:
    return datetime.now(timezone.utc)


@pytest.fixture
def make_user(db_session: AsyncSession):
    """Create a user, with an academic profile when profile fields are given."""
    counter = {"n": 0}

    async def _make(role: UserRole = UserRole.STUDENT, name: str | None = None, **profile) -> User:
        counter["n"] += 1
        user = User(
            email=f"{role.value}{counter['n']}@example.edu",
            name=name or f"{role.value.title()} {counter['n']}",
            role=role.value,
        )
        db_session.add(user)
        await db_session.flush()
        if profile:
            db_session.add(AcademicProfile(user_id=user.id, **profile))
        await db_session.commit()
        return user

    return _make


def sample_questions() -> list[dict[str, Any]]:
    return [
        {"type": "single", "text": "2 + 2 = ?", "options": ["3", "4", "5"], "correct_answers": [1], "points": 2},
        {"type": "multi", "text": "Prime numbers", "options": ["2", "3", "4", "5"], "correct_answers": [0, 1, 3], "points": 3},
        {"type": "text", "text": "Explain recursion", "points": 5},
    ]


def exam_payload(now: datetime, **overrides) -> dict[str, Any]:
    payload = {
        "title": "Discrete Mathematics Midterm",
        "description": "Chapters 1-4",
        "duration_minutes": 60,
        "window": {
            "start": (now - timedelta(hours=1)).isoformat(),
            "end": (now + timedelta(hours=2)).isoformat(),
        },
        "questions": sample_questions(),
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def make_exam(db_session: AsyncSession, now: datetime):
    """Insert an exam directly, bypassing the API."""

    async def _make(
        owner: User,
        window_start: datetime | None = None,
        window_end: datetime | None = None,
        duration_minutes: int = 60,
        questions: list[dict[str, Any]] | None = None,
        assignment_criteria: dict[str, Any] | None = None,
        title: str = "Discrete Mathematics Midterm",
    ) -> Exam:
        exam = Exam(
            owner_id=owner.id,
            title=title,
            description="Chapters 1-4",
            duration_minutes=duration_minutes,
            window_start=window_start or now - timedelta(hours=1),
            window_end=window_end or now + timedelta(hours=2),
            questions=questions if questions is not None else sample_questions(),
            assignment_criteria=assignment_criteria,
        )
        db_session.add(exam)
        await db_session.commit()
        return exam

    return _make


def principal_for(user: User, kind: str = "user", **profile) -> Principal:
    return Principal(
        user_id=user.id,
        role=str(user.role),
        name=user.name,
        email=user.email,
        kind=kind,
        profile=StudentProfile(**profile),
    )


def auth_headers(user: User, kind: str | None = None) -> dict[str, str]:
    claims = {"kind": kind} if kind else None
    token = create_access_token(str(user.id), additional_claims=claims)
    return {"Authorization": f"Bearer {token}"}
