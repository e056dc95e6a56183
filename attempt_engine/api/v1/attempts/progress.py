# -*- coding: utf-8 -*-
"""
Autosave endpoint.
"""

from fastapi import APIRouter, Depends, HTTPException

from attempt_engine.config.logger import configure_logger
from attempt_engine.domain.schemas import (SaveProgressRequest,
                                           SaveProgressResponse)
from attempt_engine.security.security import (authenticated,
                                              get_current_user_id)
from attempt_engine.service.attempts import AttemptService

from .shared.utils import get_attempt_service, internal_error

router = APIRouter()
logger = configure_logger(__name__)


@router.patch(
    "/{attempt_id}/save-progress",
    response_model=SaveProgressResponse,
    dependencies=[Depends(authenticated)],
)
async def save_progress_endpoint(
    attempt_id: int,
    payload: SaveProgressRequest,
    service: AttemptService = Depends(get_attempt_service),
    user_id: int = Depends(get_current_user_id),
) -> SaveProgressResponse:
    """
    Save a snapshot of answers, time spent and the last viewed question.

    Raises:
        HTTPException: 403 when the attempt is finished or not the caller's,
            404 for an unknown attempt, 422 for malformed answers
    """
    logger.debug(
        f"💾 Save progress: attempt {attempt_id}, user {user_id}, answers: {len(payload.answers)}"
    )
    try:
        return await service.save_progress(attempt_id, user_id, payload)
    except HTTPException:
        raise
    except Exception as e:
        raise internal_error(f"saving attempt {attempt_id}", user_id, e)
