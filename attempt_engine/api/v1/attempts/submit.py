# -*- coding: utf-8 -*-
"""
Submitting attempts.
"""

from fastapi import APIRouter, Depends, HTTPException

from attempt_engine.config.logger import configure_logger
from attempt_engine.domain.schemas import (SubmitAttemptRequest,
                                           SubmitAttemptResponse)
from attempt_engine.security.security import (authenticated,
                                              get_current_user_id)
from attempt_engine.service.attempts import AttemptService

from .shared.utils import get_attempt_service, internal_error

router = APIRouter()
logger = configure_logger(__name__)


@router.post(
    "/{attempt_id}/submit",
    response_model=SubmitAttemptResponse,
    dependencies=[Depends(authenticated)],
)
async def submit_attempt_endpoint(
    attempt_id: int,
    payload: SubmitAttemptRequest,
    service: AttemptService = Depends(get_attempt_service),
    user_id: int = Depends(get_current_user_id),
) -> SubmitAttemptResponse:
    """
    Grade and close an attempt.

    Returns the final status, score and pass/fail flag. ``passed`` is null
    while manual grading is pending or when the test has no passing score.
    """
    logger.info(
        f"📝 Submit: attempt {attempt_id}, user {user_id}, "
        f"answers: {len(payload.answers)}, timed out: {payload.timed_out}"
    )
    try:
        return await service.submit(attempt_id, user_id, payload)
    except HTTPException:
        raise
    except Exception as e:
        raise internal_error(f"submitting attempt {attempt_id}", user_id, e)
