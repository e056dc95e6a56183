# -*- coding: utf-8 -*-
"""
HTTP implementation of the attempt port.

Talks to the attempt API with an ``httpx.AsyncClient`` and a bearer token, and
turns error responses back into the engine's exception classes so callers see
the same errors as with the in-process adapter.
"""

from typing import Any, List, Optional

import httpx

from attempt_engine.config.logger import configure_logger
from attempt_engine.domain.enums import AttemptStatus
from attempt_engine.domain.schemas import (AttemptRead, AttemptResultResponse,
                                           AttemptStatusResponse,
                                           SaveProgressRequest,
                                           SaveProgressResponse,
                                           StartAttemptResponse,
                                           SubmitAttemptRequest,
                                           SubmitAttemptResponse)
from attempt_engine.engine.ports import AttemptRepository
from attempt_engine.utils.exceptions import (ServiceUnavailableError,
                                             error_from_response)

logger = configure_logger(__name__)

API_PREFIX = "/api/v1"


class AttemptApiClient(AttemptRepository):
    """Attempt API client for one authenticated user."""

    def __init__(
        self,
        base_url: str,
        token: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            base_url: Server root, e.g. ``https://tests.example.com``.
            token: JWT access token of the user.
            timeout: Per-request timeout in seconds.
            transport: Custom transport (``httpx.ASGITransport`` in tests).
        """
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={"Authorization": f"Bearer {token}"},
            timeout=timeout,
            transport=transport,
        )

    async def close(self):
        await self._client.aclose()

    async def __aenter__(self) -> "AttemptApiClient":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def _request(
        self, method: str, path: str, payload: Optional[Any] = None
    ) -> Any:
        url = f"{API_PREFIX}{path}"
        json_body = payload.model_dump(mode="json") if payload is not None else None
        try:
            response = await self._client.request(method, url, json=json_body)
        except httpx.TransportError as e:
            logger.warning(f"⚠️ {method} {url} failed: {type(e).__name__}: {e}")
            raise ServiceUnavailableError(f"Attempt API unreachable: {e}") from e

        if response.is_error:
            detail, error_code = self._error_body(response)
            logger.warning(
                f"❌ {method} {url} → {response.status_code} ({error_code}): {detail}"
            )
            raise error_from_response(response.status_code, detail, error_code)
        return response.json()

    @staticmethod
    def _error_body(response: httpx.Response):
        try:
            body = response.json()
        except ValueError:
            return response.text or response.reason_phrase, None
        if not isinstance(body, dict):
            return str(body), None
        detail = body.get("detail")
        if not isinstance(detail, str):
            # request validation errors come back as a list
            detail = str(detail)
        return detail, body.get("error_code")

    async def start_or_resume(self, test_id: int) -> StartAttemptResponse:
        data = await self._request("POST", f"/tests/{test_id}/attempts/start")
        return StartAttemptResponse.model_validate(data)

    async def save_progress(
        self, attempt_id: int, payload: SaveProgressRequest
    ) -> SaveProgressResponse:
        data = await self._request(
            "PATCH", f"/test-attempts/{attempt_id}/save-progress", payload
        )
        return SaveProgressResponse.model_validate(data)

    async def submit(
        self, attempt_id: int, payload: SubmitAttemptRequest
    ) -> SubmitAttemptResponse:
        data = await self._request(
            "POST", f"/test-attempts/{attempt_id}/submit", payload
        )
        return SubmitAttemptResponse.model_validate(data)

    async def get_status(self, test_id: int) -> AttemptStatus:
        data = await self._request("GET", f"/tests/{test_id}/status")
        return AttemptStatusResponse.model_validate(data).status

    async def get_attempts_for_test(self, test_id: int) -> List[AttemptRead]:
        data = await self._request("GET", f"/test-attempts/test/{test_id}")
        return [AttemptRead.model_validate(item) for item in data]

    async def get_attempt_result(self, attempt_id: int) -> AttemptResultResponse:
        data = await self._request("GET", f"/test-attempts/{attempt_id}/result")
        return AttemptResultResponse.model_validate(data)
