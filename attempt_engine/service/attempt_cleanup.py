# -*- coding: utf-8 -*-
"""
Closing of overdue attempts.

An attempt whose deadline (start + time limit + grace) has passed while it is
still ``in_progress`` is graded from its saved answers and closed as
``timed_out``.
"""

import asyncio
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from attempt_engine.config.logger import configure_logger
from attempt_engine.config.settings import settings
from attempt_engine.engine import clock as clock_utils
from attempt_engine.engine.clock import Clock, SystemClock
from attempt_engine.repository import attempts as attempts_repo
from attempt_engine.service.attempts import AttemptService
from attempt_engine.service.cache_service import CacheService, cache_service
from attempt_engine.utils.exceptions import APIException

logger = configure_logger(__name__)


class AttemptCleanupService:
    """Finds and closes attempts that ran out of time."""

    @staticmethod
    async def finalize_expired_attempts(
        session: AsyncSession,
        clock: Optional[Clock] = None,
        cache: Optional[CacheService] = None,
        grace_seconds: Optional[int] = None,
        batch_size: int = 500,
    ) -> int:
        """
        Close overdue in-progress attempts as ``timed_out``.

        Each attempt is committed on its own so one bad attempt does not
        block the rest.

        Returns:
            Number of attempts closed
        """
        clock = clock or SystemClock()
        cache = cache if cache is not None else cache_service
        grace = settings.attempt_grace_seconds if grace_seconds is None else grace_seconds
        service = AttemptService(session, clock=clock, cache=cache, grace_seconds=grace)

        now = clock.now()
        candidates = await attempts_repo.list_expirable_attempts(session, batch_size)
        overdue = [
            (attempt.id, attempt.user_id, test.id)
            for attempt, test in candidates
            if clock_utils.is_expired(
                test.time_limit_minutes, attempt.start_time, now, grace
            )
        ]
        if not overdue:
            logger.debug("No overdue attempts found")
            return 0

        closed = 0
        for attempt_id, user_id, test_id in overdue:
            try:
                attempt = await attempts_repo.get_attempt_by_id(
                    session, attempt_id, for_update=True
                )
                test = await attempts_repo.get_test_by_id(session, test_id)
                if attempt is None or test is None:
                    await session.rollback()
                    continue
                if await service.expire_attempt(attempt, test):
                    closed += 1
                await session.commit()
                await cache.invalidate_attempts(test_id, user_id)
            except APIException as e:
                await session.rollback()
                logger.warning(f"⚠️ Could not close attempt {attempt_id}: {e.detail}")

        logger.info(f"Closed {closed} overdue attempts")
        return closed


async def run_expired_attempt_sweeper(
    session_factory: async_sessionmaker,
    interval_seconds: Optional[float] = None,
    stop_event: Optional[asyncio.Event] = None,
) -> None:
    """Run :meth:`AttemptCleanupService.finalize_expired_attempts` periodically."""
    interval = (
        settings.expired_sweep_interval_seconds
        if interval_seconds is None
        else interval_seconds
    )
    stop_event = stop_event or asyncio.Event()
    logger.info(f"Expired attempt sweeper started (every {interval}s)")
    while not stop_event.is_set():
        try:
            async with session_factory() as session:
                await AttemptCleanupService.finalize_expired_attempts(session)
        except Exception as e:
            logger.error(f"❌ Expired attempt sweep failed: {type(e).__name__}: {e}")
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=interval)
        except asyncio.TimeoutError:
            pass
    logger.info("Expired attempt sweeper stopped")
