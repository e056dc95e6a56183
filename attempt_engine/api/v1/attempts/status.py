# -*- coding: utf-8 -*-
"""
Attempt status of a test for the caller.
"""

from fastapi import APIRouter, Depends, HTTPException

from attempt_engine.domain.schemas import AttemptStatusResponse
from attempt_engine.security.security import (authenticated,
                                              get_current_user_id)
from attempt_engine.service.attempts import AttemptService

from .shared.utils import get_attempt_service, internal_error

router = APIRouter()


@router.get(
    "/{test_id}/status",
    response_model=AttemptStatusResponse,
    dependencies=[Depends(authenticated)],
)
async def get_test_status_endpoint(
    test_id: int,
    service: AttemptService = Depends(get_attempt_service),
    user_id: int = Depends(get_current_user_id),
) -> AttemptStatusResponse:
    """Status of the latest attempt, ``not_started`` when there is none."""
    try:
        return await service.get_status(test_id, user_id)
    except HTTPException:
        raise
    except Exception as e:
        raise internal_error(f"reading status of test {test_id}", user_id, e)
