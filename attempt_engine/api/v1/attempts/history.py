# -*- coding: utf-8 -*-
"""
Attempt history and results.
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException

from attempt_engine.domain.schemas import AttemptRead, AttemptResultResponse
from attempt_engine.security.security import (authenticated,
                                              get_current_user_id)
from attempt_engine.service.attempts import AttemptService

from .shared.utils import get_attempt_service, internal_error

router = APIRouter()


@router.get(
    "/test/{test_id}",
    response_model=List[AttemptRead],
    dependencies=[Depends(authenticated)],
)
async def list_attempts_for_test_endpoint(
    test_id: int,
    service: AttemptService = Depends(get_attempt_service),
    user_id: int = Depends(get_current_user_id),
) -> List[AttemptRead]:
    """The caller's attempts for a test, newest first."""
    try:
        return await service.get_attempts_for_test(test_id, user_id)
    except HTTPException:
        raise
    except Exception as e:
        raise internal_error(f"listing attempts of test {test_id}", user_id, e)


@router.get(
    "/{attempt_id}/result",
    response_model=AttemptResultResponse,
    dependencies=[Depends(authenticated)],
)
async def get_attempt_result_endpoint(
    attempt_id: int,
    service: AttemptService = Depends(get_attempt_service),
    user_id: int = Depends(get_current_user_id),
) -> AttemptResultResponse:
    """Per-question correctness, points and explanations of a finished attempt."""
    try:
        return await service.get_attempt_result(attempt_id, user_id)
    except HTTPException:
        raise
    except Exception as e:
        raise internal_error(f"reading result of attempt {attempt_id}", user_id, e)
