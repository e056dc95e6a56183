# -*- coding: utf-8 -*-
"""
Shared helpers for the attempt routers.
"""

from fastapi import Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from attempt_engine.clients.database_client import get_db
from attempt_engine.config.logger import configure_logger
from attempt_engine.service.attempts import AttemptService

logger = configure_logger(__name__)


def get_attempt_service(session: AsyncSession = Depends(get_db)) -> AttemptService:
    """FastAPI dependency building the attempt service on the request session."""
    return AttemptService(session)


def internal_error(action: str, user_id: int, error: Exception) -> HTTPException:
    """Log an unexpected failure and build the 500 response for it."""
    logger.error(
        f"❌ Unexpected error while {action} (user {user_id}): "
        f"{type(error).__name__}: {error}",
        exc_info=True,
    )
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Error while {action}",
    )
