# -*- coding: utf-8 -*-
"""
Boundary the client-side engine talks to.

Implementations are scoped to one authenticated user: the HTTP client
(:class:`attempt_engine.clients.attempt_api_client.AttemptApiClient`) and the
in-process adapter (:class:`attempt_engine.service.attempts.UserAttemptRepository`).
All calls are async and may fail with any error of
:mod:`attempt_engine.utils.exceptions`.
"""

from abc import ABC, abstractmethod
from typing import List

from attempt_engine.domain.enums import AttemptStatus
from attempt_engine.domain.schemas import (AttemptRead, AttemptResultResponse,
                                           SaveProgressRequest,
                                           SaveProgressResponse,
                                           StartAttemptResponse,
                                           SubmitAttemptRequest,
                                           SubmitAttemptResponse)


class AttemptRepository(ABC):
    @abstractmethod
    async def start_or_resume(self, test_id: int) -> StartAttemptResponse:
        """Create the in-progress attempt for a test or return the existing one."""

    @abstractmethod
    async def save_progress(
        self, attempt_id: int, payload: SaveProgressRequest
    ) -> SaveProgressResponse:
        """Persist a full snapshot of answers, times and position."""

    @abstractmethod
    async def submit(
        self, attempt_id: int, payload: SubmitAttemptRequest
    ) -> SubmitAttemptResponse:
        """Grade and close the attempt."""

    @abstractmethod
    async def get_status(self, test_id: int) -> AttemptStatus:
        """Status of the latest attempt, ``not_started`` when there is none."""

    @abstractmethod
    async def get_attempts_for_test(self, test_id: int) -> List[AttemptRead]:
        """All attempts of the user for a test, newest first."""

    @abstractmethod
    async def get_attempt_result(self, attempt_id: int) -> AttemptResultResponse:
        """Per-question outcome of a finished attempt."""
