# -*- coding: utf-8 -*-
"""
Integration tests for the attempt API
"""

from datetime import timedelta

import pytest
from httpx import AsyncClient

from attempt_engine.domain.enums import AttemptStatus
from attempt_engine.engine.clock import utcnow
from attempt_engine.main import app
from tests.fixtures import (STUDENT_ID, create_attempt, create_mc_test,
                            create_mixed_test)


async def start(client: AsyncClient, test_id: int, headers: dict) -> dict:
    response = await client.post(
        f"/api/v1/tests/{test_id}/attempts/start", headers=headers
    )
    assert response.status_code == 200, response.text
    return response.json()


class TestStartAPI:
    """POST /tests/{id}/attempts/start"""

    @pytest.mark.asyncio
    async def test_start_and_resume(self, client, test_session, student_headers):
        # Arrange
        test, question = await create_mc_test(test_session)

        # Act
        first = await start(client, test.id, student_headers)
        second = await start(client, test.id, student_headers)

        # Assert
        assert first["is_existing"] is False
        assert second["is_existing"] is True
        assert first["attempt"]["id"] == second["attempt"]["id"]
        assert first["attempt"]["status"] == "in_progress"
        assert first["test"]["question_count"] == 1
        assert first["questions"][0]["id"] == question.id
        assert "correct_answer" not in first["questions"][0]

    @pytest.mark.asyncio
    async def test_requires_token(self, client, test_session):
        test, _ = await create_mc_test(test_session)

        response = await client.post(f"/api/v1/tests/{test.id}/attempts/start")

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_invalid_token(self, client, test_session):
        test, _ = await create_mc_test(test_session)

        response = await client.post(
            f"/api/v1/tests/{test.id}/attempts/start",
            headers={"Authorization": "Bearer not-a-jwt"},
        )

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_unknown_test(self, client, student_headers):
        response = await client.post(
            "/api/v1/tests/999/attempts/start", headers=student_headers
        )

        assert response.status_code == 404
        assert response.json()["error_code"] == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_inactive_test(self, client, test_session, student_headers):
        test, _ = await create_mc_test(test_session, is_active=False)

        response = await client.post(
            f"/api/v1/tests/{test.id}/attempts/start", headers=student_headers
        )

        assert response.status_code == 403
        assert response.json()["error_code"] == "PERMISSION_DENIED"

    @pytest.mark.asyncio
    async def test_data_for_taking(self, client, test_session, student_headers):
        test, questions = await create_mixed_test(test_session)

        response = await client.get(
            f"/api/v1/tests/{test.id}/data-for-taking", headers=student_headers
        )

        assert response.status_code == 200
        data = response.json()
        assert data["test"]["title"] == test.title
        assert [q["question_type"] for q in data["questions"]] == [
            "multiple_choice",
            "short_answer",
            "essay",
        ]


class TestProgressAndSubmitAPI:
    """Save progress and submit"""

    @pytest.mark.asyncio
    async def test_full_flow(self, client, test_session, student_headers):
        """Start, save, submit, then read status, history and result"""
        # Arrange
        test, questions = await create_mixed_test(test_session)
        mc, short, essay = questions
        attempt_id = (await start(client, test.id, student_headers))["attempt"]["id"]

        # Act: save
        saved = await client.patch(
            f"/api/v1/test-attempts/{attempt_id}/save-progress",
            json={
                "last_viewed_question_id": short.id,
                "remaining_time_seconds": 590,
                "answers": {
                    str(mc.id): {"user_answer": "a", "time_spent_seconds": 4},
                    str(short.id): {"user_answer": " paris ", "is_marked": True},
                },
            },
            headers=student_headers,
        )

        # Assert: save
        assert saved.status_code == 200, saved.text
        assert saved.json()["success"] is True
        assert saved.json()["remaining_time_seconds"] <= 590

        resumed = await start(client, test.id, student_headers)
        assert resumed["attempt"]["last_viewed_question_id"] == short.id
        assert resumed["saved_answers"][str(short.id)]["is_marked"] is True

        # Act: submit
        submitted = await client.post(
            f"/api/v1/test-attempts/{attempt_id}/submit",
            json={
                "answers": {str(essay.id): {"user_answer": "Long essay"}},
                "time_left_seconds": 500,
            },
            headers=student_headers,
        )

        # Assert: submit
        assert submitted.status_code == 200, submitted.text
        body = submitted.json()
        assert body["status"] == "completed"
        assert body["score"] == 3
        assert body["max_score"] == 6
        assert body["passed"] is None
        assert body["needs_manual_grading"] is True

        status = await client.get(
            f"/api/v1/tests/{test.id}/status", headers=student_headers
        )
        assert status.json()["status"] == "completed"

        history = await client.get(
            f"/api/v1/test-attempts/test/{test.id}", headers=student_headers
        )
        assert [a["id"] for a in history.json()] == [attempt_id]

        result = await client.get(
            f"/api/v1/test-attempts/{attempt_id}/result", headers=student_headers
        )
        assert result.status_code == 200
        by_id = {r["question_id"]: r for r in result.json()["results"]}
        assert by_id[short.id]["is_correct"] is True
        assert by_id[essay.id]["is_correct"] is None

    @pytest.mark.asyncio
    async def test_save_after_submit_forbidden(self, client, test_session, student_headers):
        test, question = await create_mc_test(test_session)
        attempt_id = (await start(client, test.id, student_headers))["attempt"]["id"]
        submit_url = f"/api/v1/test-attempts/{attempt_id}/submit"
        first = await client.post(submit_url, json={}, headers=student_headers)
        assert first.status_code == 200

        late_save = await client.patch(
            f"/api/v1/test-attempts/{attempt_id}/save-progress",
            json={"answers": {str(question.id): {"user_answer": "b"}}},
            headers=student_headers,
        )
        second = await client.post(submit_url, json={}, headers=student_headers)

        assert late_save.status_code == 403
        assert second.status_code == 403
        assert second.json()["error_code"] == "PERMISSION_DENIED"

    @pytest.mark.asyncio
    async def test_invalid_answer_rejected(self, client, test_session, student_headers):
        test, question = await create_mc_test(test_session)
        attempt_id = (await start(client, test.id, student_headers))["attempt"]["id"]

        response = await client.patch(
            f"/api/v1/test-attempts/{attempt_id}/save-progress",
            json={"answers": {str(question.id): {"user_answer": "nope"}}},
            headers=student_headers,
        )

        assert response.status_code == 422
        assert response.json()["error_code"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_negative_time_rejected(self, client, test_session, student_headers):
        test, _ = await create_mc_test(test_session)
        attempt_id = (await start(client, test.id, student_headers))["attempt"]["id"]

        response = await client.patch(
            f"/api/v1/test-attempts/{attempt_id}/save-progress",
            json={"remaining_time_seconds": -5},
            headers=student_headers,
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_other_user_forbidden(
        self, client, test_session, student_headers, other_student_headers
    ):
        test, _ = await create_mc_test(test_session)
        attempt_id = (await start(client, test.id, student_headers))["attempt"]["id"]

        response = await client.post(
            f"/api/v1/test-attempts/{attempt_id}/submit",
            json={},
            headers=other_student_headers,
        )

        assert response.status_code == 403


class TestStatusAPI:
    @pytest.mark.asyncio
    async def test_not_started(self, client, test_session, student_headers):
        test, _ = await create_mc_test(test_session)

        response = await client.get(
            f"/api/v1/tests/{test.id}/status", headers=student_headers
        )

        assert response.status_code == 200
        assert response.json()["status"] == "not_started"
        assert response.json()["attempt_id"] is None

    @pytest.mark.asyncio
    async def test_expired_attempt_reported_timed_out(
        self, client, test_session, student_headers
    ):
        """Reading the status closes an attempt that ran out of time"""
        test, _ = await create_mc_test(test_session)
        await create_attempt(
            test_session, test, STUDENT_ID, utcnow() - timedelta(minutes=20)
        )

        response = await client.get(
            f"/api/v1/tests/{test.id}/status", headers=student_headers
        )

        assert response.json()["status"] == AttemptStatus.TIMED_OUT.value


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/api/v1/health")
    assert response.json() == {"status": "ok"}


def test_attempt_routes_are_mounted_once():
    """Every attempt endpoint is served from exactly one path"""
    paths = [route.path for route in app.routes if route.path.startswith("/api/v1")]

    expected = {
        "/api/v1/tests/{test_id}/attempts/start",
        "/api/v1/tests/{test_id}/data-for-taking",
        "/api/v1/tests/{test_id}/status",
        "/api/v1/test-attempts/{attempt_id}/save-progress",
        "/api/v1/test-attempts/{attempt_id}/submit",
        "/api/v1/test-attempts/test/{test_id}",
        "/api/v1/test-attempts/{attempt_id}/result",
    }
    assert expected <= set(paths)
    assert all(paths.count(path) == 1 for path in expected)
