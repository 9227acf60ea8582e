"""
Exam Platform - Attempt API Tests
"""
from datetime import datetime, timedelta

import pytest
from httpx import AsyncClient

from app.models.user import UserRole

from conftest import auth_headers


async def _start(client: AsyncClient, student, exam):
    return await client.post(
        "/api/v1/attempts/start",
        json={"exam_id": str(exam.id)},
        headers=auth_headers(student),
    )


@pytest.mark.asyncio
async def test_start_returns_redacted_exam_and_policy(client: AsyncClient, make_user, make_exam):
    owner = await make_user(UserRole.FACULTY)
    student = await make_user()
    exam = await make_exam(owner)

    response = await _start(client, student, exam)

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "in-progress"
    assert data["attempt_number"] == 1
    assert data["exam"]["id"] == str(exam.id)
    assert len(data["exam"]["questions"]) == 3
    assert all("correct_answers" not in q for q in data["exam"]["questions"])
    assert data["proctoring"] == {
        "violation_limit": 3,
        "grace_period_seconds": 10.0,
        "autosave_debounce_seconds": 3.0,
    }
    started = datetime.fromisoformat(data["started_at"])
    assert datetime.fromisoformat(data["server_end_time"]) - started == timedelta(minutes=60)


@pytest.mark.asyncio
async def test_repeated_start_returns_same_attempt(client: AsyncClient, make_user, make_exam):
    owner = await make_user(UserRole.FACULTY)
    student = await make_user()
    exam = await make_exam(owner)

    first = (await _start(client, student, exam)).json()
    second = (await _start(client, student, exam)).json()

    assert second["attempt_id"] == first["attempt_id"]
    assert second["server_end_time"] == first["server_end_time"]


@pytest.mark.asyncio
async def test_start_errors(client: AsyncClient, make_user, make_exam, now):
    owner = await make_user(UserRole.FACULTY)
    student = await make_user(college="IIT Delhi")
    restricted = await make_exam(owner, assignment_criteria={"college": "NIT Trichy"})
    upcoming = await make_exam(owner, window_start=now + timedelta(hours=1), window_end=now + timedelta(hours=2))

    response = await _start(client, student, restricted)
    assert response.status_code == 403
    assert response.json()["detail"] == "You are not assigned to this exam"

    response = await _start(client, student, upcoming)
    assert response.status_code == 400
    assert response.json()["detail"] == "Exam is not active right now"

    response = await client.post(
        "/api/v1/attempts/start",
        json={"exam_id": "00000000-0000-0000-0000-000000000000"},
        headers=auth_headers(student),
    )
    assert response.status_code == 404

    response = await _start(client, owner, restricted)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_answer_submit_flow(client: AsyncClient, make_user, make_exam):
    owner = await make_user(UserRole.FACULTY)
    student = await make_user()
    exam = await make_exam(owner)
    headers = auth_headers(student)
    attempt_id = (await _start(client, student, exam)).json()["attempt_id"]

    response = await client.post(
        f"/api/v1/attempts/{attempt_id}/answer",
        json={"question_index": 0, "value": [1]},
        headers=headers,
    )
    assert response.status_code == 200
    assert response.json()["message"] == "Answer saved"

    response = await client.put(
        f"/api/v1/attempts/{attempt_id}/answers",
        json={"answers": [{"question_index": 1, "value": [0, 1, 3]}, {"question_index": 2, "value": "Self reference"}]},
        headers=headers,
    )
    assert response.status_code == 200
    assert response.json()["saved"] == 2

    response = await client.post(f"/api/v1/attempts/{attempt_id}/submit", json={}, headers=headers)
    assert response.status_code == 200
    data = response.json()
    assert data["score"] == 5
    assert data["manual_grading_needed"] is True
    assert data["forced"] is False
    assert data["message"] == "Exam submitted"

    response = await client.post(f"/api/v1/attempts/{attempt_id}/submit", json={}, headers=headers)
    assert response.status_code == 400
    assert response.json()["detail"] == "Attempt already submitted"

    response = await client.post(
        f"/api/v1/attempts/{attempt_id}/answer",
        json={"question_index": 0, "value": 0},
        headers=headers,
    )
    assert response.status_code == 400

    response = await _start(client, student, exam)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_invalid_answers_are_rejected(client: AsyncClient, make_user, make_exam):
    owner = await make_user(UserRole.FACULTY)
    student = await make_user()
    exam = await make_exam(owner)
    headers = auth_headers(student)
    attempt_id = (await _start(client, student, exam)).json()["attempt_id"]

    response = await client.post(
        f"/api/v1/attempts/{attempt_id}/answer",
        json={"question_index": 9, "value": 1},
        headers=headers,
    )
    assert response.status_code == 400

    response = await client.post(
        f"/api/v1/attempts/{attempt_id}/answer",
        json={"question_index": 2, "value": [1]},
        headers=headers,
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_forced_submit_reports_policy_end(client: AsyncClient, make_user, make_exam):
    owner = await make_user(UserRole.FACULTY)
    student = await make_user()
    exam = await make_exam(owner)
    headers = auth_headers(student)
    attempt_id = (await _start(client, student, exam)).json()["attempt_id"]

    response = await client.post(
        f"/api/v1/attempts/{attempt_id}/submit",
        json={"forced": True, "answers": [{"question_index": 0, "value": 1}]},
        headers=headers,
    )
    assert response.status_code == 200
    assert response.json()["forced"] is True
    assert response.json()["score"] == 2
    assert response.json()["message"] == "Your session was ended due to policy"

    # A second forced submit is a no-op returning the stored result
    response = await client.post(
        f"/api/v1/attempts/{attempt_id}/submit", json={"forced": True}, headers=headers
    )
    assert response.status_code == 200
    assert response.json()["score"] == 2


@pytest.mark.asyncio
async def test_other_students_attempt_is_hidden(client: AsyncClient, make_user, make_exam):
    owner = await make_user(UserRole.FACULTY)
    student = await make_user()
    intruder = await make_user()
    exam = await make_exam(owner)
    attempt_id = (await _start(client, student, exam)).json()["attempt_id"]

    response = await client.post(
        f"/api/v1/attempts/{attempt_id}/submit", json={}, headers=auth_headers(intruder)
    )
    assert response.status_code == 404
    assert response.json()["detail"] == "Attempt not found"


@pytest.mark.asyncio
async def test_proctor_events_and_faculty_views(client: AsyncClient, make_user, make_exam):
    owner = await make_user(UserRole.FACULTY)
    other = await make_user(UserRole.FACULTY)
    student = await make_user(name="Asha")
    exam = await make_exam(owner)
    headers = auth_headers(student)
    attempt_id = (await _start(client, student, exam)).json()["attempt_id"]

    response = await client.post(
        f"/api/v1/attempts/{attempt_id}/events",
        json={"kind": "tab-blur", "metadata": {"violation": 1}},
        headers=headers,
    )
    assert response.status_code == 202
    assert response.json() == {"recorded": True, "violations_count": 1}

    response = await client.post(
        f"/api/v1/attempts/{attempt_id}/events", json={"kind": "screenshot"}, headers=headers
    )
    assert response.status_code == 422

    response = await client.get(f"/api/v1/attempts/{attempt_id}/events", headers=auth_headers(owner))
    assert response.status_code == 200
    assert [(e["kind"], e["metadata"]) for e in response.json()] == [("tab-blur", {"violation": 1})]

    response = await client.get(f"/api/v1/attempts/{attempt_id}/events", headers=auth_headers(other))
    assert response.status_code == 403

    response = await client.get(f"/api/v1/attempts/{attempt_id}/events", headers=headers)
    assert response.status_code == 403

    response = await client.get(f"/api/v1/exams/{exam.id}/attempts", headers=auth_headers(owner))
    assert response.status_code == 200
    [summary] = response.json()
    assert summary["student_name"] == "Asha"
    assert summary["violations_count"] == 1
    assert summary["status"] == "in-progress"


@pytest.mark.asyncio
async def test_retake_through_api(client: AsyncClient, make_user, make_exam):
    owner = await make_user(UserRole.FACULTY)
    student = await make_user()
    exam = await make_exam(owner)
    headers = auth_headers(student, kind="roster")
    started = (await client.post(
        "/api/v1/attempts/start", json={"exam_id": str(exam.id)}, headers=headers
    )).json()
    await client.post(f"/api/v1/attempts/{started['attempt_id']}/submit", json={}, headers=headers)

    available = (await client.get("/api/v1/exams/available", headers=headers)).json()
    assert available[0]["status"] == "submitted"

    await client.post(
        f"/api/v1/exams/{exam.id}/retakes",
        json={"student_id": str(student.id)},
        headers=auth_headers(owner),
    )
    available = (await client.get("/api/v1/exams/available", headers=headers)).json()
    assert available[0]["status"] == "not-started"

    response = await client.post("/api/v1/attempts/start", json={"exam_id": str(exam.id)}, headers=headers)
    assert response.status_code == 200
    assert response.json()["attempt_id"] == started["attempt_id"]
    assert response.json()["attempt_number"] == 2

    mine = (await client.get("/api/v1/attempts/mine", headers=headers)).json()
    assert [(m["exam_title"], m["status"]) for m in mine] == [(exam.title, "in-progress")]
