# -*- coding: utf-8 -*-
"""
Starting and resuming attempts.
"""

from fastapi import APIRouter, Depends, HTTPException

from attempt_engine.config.logger import configure_logger
from attempt_engine.domain.schemas import (StartAttemptResponse,
                                           TestDataForTakingResponse)
from attempt_engine.security.security import (authenticated,
                                              get_current_user_id)
from attempt_engine.service.attempts import AttemptService

from .shared.utils import get_attempt_service, internal_error

router = APIRouter()
logger = configure_logger(__name__)


@router.post(
    "/{test_id}/attempts/start",
    response_model=StartAttemptResponse,
    dependencies=[Depends(authenticated)],
)
async def start_attempt_endpoint(
    test_id: int,
    service: AttemptService = Depends(get_attempt_service),
    user_id: int = Depends(get_current_user_id),
) -> StartAttemptResponse:
    """
    Start a test or resume the caller's in-progress attempt.

    Returns the attempt, the test, its questions without correct answers and
    any answers saved earlier.
    """
    logger.info(f"🌐 Start requested: test {test_id}, user {user_id}")
    try:
        response = await service.start_or_resume(test_id, user_id)
    except HTTPException:
        raise
    except Exception as e:
        raise internal_error(f"starting test {test_id}", user_id, e)

    logger.info(
        f"✅ Attempt {response.attempt.id} ready for test {test_id}, user {user_id} "
        f"(resumed: {response.is_existing}, questions: {len(response.questions)})"
    )
    return response


@router.get(
    "/{test_id}/data-for-taking",
    response_model=TestDataForTakingResponse,
    dependencies=[Depends(authenticated)],
)
async def get_test_for_taking_endpoint(
    test_id: int,
    service: AttemptService = Depends(get_attempt_service),
    user_id: int = Depends(get_current_user_id),
) -> TestDataForTakingResponse:
    """Test details and questions, without correct answers."""
    try:
        return await service.get_test_for_taking(test_id)
    except HTTPException:
        raise
    except Exception as e:
        raise internal_error(f"loading test {test_id}", user_id, e)
