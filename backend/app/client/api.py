"""
Exam Platform - Student API Client
httpx wrapper for the student-facing boundary operations
"""
import logging
import uuid
from collections.abc import Mapping
from typing import Any

import httpx

logger = logging.getLogger(__name__)


class ExamApiError(Exception):
    """Non-2xx response from the exam API."""

    def __init__(self, status_code: int, detail: Any):
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"{status_code}: {detail}")


def _answer_items(answers: Mapping[int, Any]) -> list[dict[str, Any]]:
    return [{"question_index": index, "value": value} for index, value in sorted(answers.items())]


class ExamApiClient:
    """
    Client for a student's exam session.

    Usage:
        async with ExamApiClient("https://exams.example.edu", token) as api:
            started = await api.start_attempt(exam_id)
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        api_prefix: str = "/api/v1",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._prefix = api_prefix.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={"Authorization": f"Bearer {token}"},
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "ExamApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        response = await self._client.request(method, f"{self._prefix}{path}", **kwargs)
        if response.is_error:
            try:
                detail = response.json().get("detail")
            except ValueError:
                detail = response.text
            logger.debug(f"[ExamApi] {method} {path} -> {response.status_code}: {detail}")
            raise ExamApiError(response.status_code, detail)
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    async def list_available_exams(self) -> list[dict[str, Any]]:
        return await self._request("GET", "/exams/available")

    async def list_my_attempts(self) -> list[dict[str, Any]]:
        return await self._request("GET", "/attempts/mine")

    async def start_attempt(self, exam_id: uuid.UUID | str) -> dict[str, Any]:
        return await self._request("POST", "/attempts/start", json={"exam_id": str(exam_id)})

    async def record_answer(self, attempt_id: uuid.UUID | str, question_index: int, value: Any) -> dict[str, Any]:
        return await self._request(
            "POST",
            f"/attempts/{attempt_id}/answer",
            json={"question_index": question_index, "value": value},
        )

    async def record_answers(self, attempt_id: uuid.UUID | str, answers: Mapping[int, Any]) -> dict[str, Any]:
        return await self._request(
            "PUT",
            f"/attempts/{attempt_id}/answers",
            json={"answers": _answer_items(answers)},
        )

    async def submit_attempt(
        self,
        attempt_id: uuid.UUID | str,
        forced: bool = False,
        answers: Mapping[int, Any] | None = None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {"forced": forced}
        if answers is not None:
            payload["answers"] = _answer_items(answers)
        return await self._request("POST", f"/attempts/{attempt_id}/submit", json=payload)

    async def report_event(
        self,
        attempt_id: uuid.UUID | str,
        kind: str,
        metadata: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        return await self._request(
            "POST",
            f"/attempts/{attempt_id}/events",
            json={"kind": kind, "metadata": metadata},
        )
