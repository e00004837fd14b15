"""Tests for the Moodle endpoints (mock Moodle transport, no network)."""
from typing import List

import httpx
import pytest
from httpx import AsyncClient

from testgen.dependencies.services import get_moodle_client
from testgen.main import app
from testgen.services.moodle_client import MoodleClient
from tests.conftest import mock_client

TOKEN = "moodle-secret-token"

SYNC_BODY = {
    "title": "Cells",
    "course_name": "BIO-101",
    "questions": [
        {
            "question_text": "Powerhouse of the cell?",
            "question_type": "short_answer",
            "answers": [{"text": "Mitochondria", "is_correct": True}],
        }
    ],
}


def _use_moodle(handler) -> httpx.AsyncClient:
    """Route Moodle calls through a client whose transport is *handler*."""
    http_client = mock_client(handler)
    moodle_client = MoodleClient("https://moodle.example.edu", TOKEN, http_client=http_client)
    app.dependency_overrides[get_moodle_client] = lambda: moodle_client
    return http_client


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
@pytest.mark.parametrize("method, path", [("GET", "/api/moodle/courses"), ("GET", "/api/moodle/validate")])
async def test_unconfigured_moodle_maps_to_503(client: AsyncClient, method, path):
    resp = await client.request(method, path)
    assert resp.status_code == 503
    assert resp.json()["error_type"] == "MoodleNotConfiguredError"


@pytest.mark.asyncio
async def test_sync_without_moodle_maps_to_503(client: AsyncClient):
    resp = await client.post("/api/moodle/sync", json=SYNC_BODY)
    assert resp.status_code == 503


# ---------------------------------------------------------------------------
# Courses
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_list_courses(client: AsyncClient):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json=[{"id": 5, "shortname": "BIO-101", "fullname": "Biology", "categoryid": 2}],
        )

    async with _use_moodle(handler):
        resp = await client.get("/api/moodle/courses")

    assert resp.status_code == 200
    assert resp.json() == {"courses": [{"id": "5", "name": "Biology", "short_name": "BIO-101"}]}


@pytest.mark.asyncio
async def test_list_courses_upstream_failure_maps_to_502(client: AsyncClient):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="boom")

    async with _use_moodle(handler):
        resp = await client.get("/api/moodle/courses")

    assert resp.status_code == 502
    assert resp.json()["error_type"] == "MoodleAPIError"
    assert TOKEN not in resp.text


# ---------------------------------------------------------------------------
# Validate
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_validate_connection(client: AsyncClient):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"sitename": "Campus"})

    async with _use_moodle(handler):
        resp = await client.get("/api/moodle/validate")

    assert resp.status_code == 200
    assert resp.json() == {"connected": True, "message": "Moodle connection is valid", "error": ""}


@pytest.mark.asyncio
async def test_validate_rejected_token(client: AsyncClient):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={"exception": "moodle_exception", "errorcode": "invalidtoken", "message": "Invalid token"},
        )

    async with _use_moodle(handler):
        resp = await client.get("/api/moodle/validate")

    assert resp.status_code == 503
    data = resp.json()
    assert data["connected"] is False
    assert "Invalid token" in data["error"]


# ---------------------------------------------------------------------------
# Sync
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_sync_uploads_exported_quiz(client: AsyncClient):
    seen: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"quiz_id": 42, "course_id": 7, "success": True})

    async with _use_moodle(handler):
        resp = await client.post("/api/moodle/sync", json=SYNC_BODY)

    assert resp.status_code == 200
    assert resp.json() == {
        "message": "Test synced to Moodle successfully",
        "moodle_id": "42",
        "course_id": "7",
    }

    body = seen[0].content
    assert b"BIO-101" in body
    assert b'<question type="shortanswer">' in body
    assert b"Mitochondria" in body


@pytest.mark.asyncio
async def test_sync_rejected_upload_maps_to_502(client: AsyncClient):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"success": False, "message": "course not found"})

    async with _use_moodle(handler):
        resp = await client.post("/api/moodle/sync", json=SYNC_BODY)

    assert resp.status_code == 502
    assert "course not found" in resp.json()["detail"]


@pytest.mark.asyncio
async def test_sync_unknown_question_type_is_not_uploaded(client: AsyncClient):
    seen: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"success": True})

    body = dict(SYNC_BODY, questions=[{"question_text": "Discuss.", "question_type": "essay"}])
    async with _use_moodle(handler):
        resp = await client.post("/api/moodle/sync", json=body)

    assert resp.status_code == 422
    assert resp.json()["error_type"] == "ConversionError"
    assert seen == []


@pytest.mark.asyncio
async def test_sync_requires_course_name(client: AsyncClient):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"success": True})

    async with _use_moodle(handler):
        resp = await client.post("/api/moodle/sync", json=dict(SYNC_BODY, course_name=""))
    assert resp.status_code == 422
