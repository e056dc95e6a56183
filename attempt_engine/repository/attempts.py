# -*- coding: utf-8 -*-
"""
attempt_engine/repository/attempts.py
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
Queries and writes for tests, their questions, attempts and attempt answers.

Writes here only flush; the attempt service owns the transaction and commits
once per operation so a failed operation leaves nothing behind.
"""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Mapping, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from attempt_engine.config.logger import configure_logger
from attempt_engine.domain.enums import AttemptStatus
from attempt_engine.domain.models import (AttemptAnswer, Test, TestAttempt,
                                          TestQuestion)
from attempt_engine.domain.schemas import AnswerRecordSchema
from attempt_engine.engine.grading import GradingResult
from attempt_engine.repository.base import add_item

logger = configure_logger(__name__)


# ----------------------------- tests ----------------------------------------


async def get_test_by_id(session: AsyncSession, test_id: int) -> Optional[Test]:
    """
    Get a test by ID.

    Args:
        session: Database session
        test_id: Test ID

    Returns:
        The test or None
    """
    result = await session.execute(select(Test).where(Test.id == test_id))
    return result.scalar_one_or_none()


async def get_test_questions(
    session: AsyncSession, test_id: int
) -> List[TestQuestion]:
    """Question placements of a test, in display order, with questions loaded."""
    stmt = (
        select(TestQuestion)
        .where(TestQuestion.test_id == test_id)
        .order_by(TestQuestion.question_order, TestQuestion.id)
    )
    result = await session.execute(stmt)
    placements = list(result.unique().scalars().all())
    logger.debug(f"Test {test_id} has {len(placements)} questions")
    return placements


# ----------------------------- attempts -------------------------------------


async def get_attempt_by_id(
    session: AsyncSession, attempt_id: int, for_update: bool = False
) -> Optional[TestAttempt]:
    """
    Get an attempt by ID.

    Args:
        session: Database session
        attempt_id: Attempt ID
        for_update: Lock the row until the transaction ends (PostgreSQL)
    """
    stmt = select(TestAttempt).where(TestAttempt.id == attempt_id)
    if for_update:
        stmt = stmt.with_for_update()
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_in_progress_attempt(
    session: AsyncSession, test_id: int, user_id: int
) -> Optional[TestAttempt]:
    stmt = select(TestAttempt).where(
        TestAttempt.test_id == test_id,
        TestAttempt.user_id == user_id,
        TestAttempt.status == AttemptStatus.IN_PROGRESS,
    )
    result = await session.execute(stmt)
    return result.scalars().first()


async def get_test_attempts(
    session: AsyncSession,
    test_id: int,
    user_id: Optional[int] = None,
    status: Optional[AttemptStatus] = None,
    limit: int = 100,
    offset: int = 0,
) -> List[TestAttempt]:
    """
    Attempts of a test, newest first.

    Args:
        session: Database session
        test_id: Test ID
        user_id: Only this user's attempts (optional)
        status: Only attempts in this status (optional)
        limit: Max rows
        offset: Rows to skip
    """
    stmt = select(TestAttempt).where(TestAttempt.test_id == test_id)

    if user_id is not None:
        stmt = stmt.where(TestAttempt.user_id == user_id)

    if status is not None:
        stmt = stmt.where(TestAttempt.status == status)

    stmt = stmt.order_by(TestAttempt.start_time.desc(), TestAttempt.id.desc())
    stmt = stmt.offset(offset).limit(limit)

    result = await session.execute(stmt)
    attempts = list(result.scalars().all())
    logger.debug(f"Found {len(attempts)} attempts for test {test_id}, user {user_id}")
    return attempts


async def get_latest_attempt(
    session: AsyncSession, test_id: int, user_id: int
) -> Optional[TestAttempt]:
    attempts = await get_test_attempts(session, test_id, user_id, limit=1)
    return attempts[0] if attempts else None


async def insert_attempt(
    session: AsyncSession,
    test_id: int,
    user_id: int,
    start_time: datetime,
    remaining_time_seconds: Optional[int],
) -> TestAttempt:
    """
    Insert a new in-progress attempt and flush it.

    Raises:
        IntegrityError: another in-progress attempt exists for (user, test)
    """
    return await add_item(
        session,
        TestAttempt,
        test_id=test_id,
        user_id=user_id,
        status=AttemptStatus.IN_PROGRESS,
        start_time=start_time,
        remaining_time_seconds=remaining_time_seconds,
    )


async def list_expirable_attempts(
    session: AsyncSession, limit: int = 500
) -> List[tuple[TestAttempt, Test]]:
    """In-progress attempts of timed tests, oldest first."""
    stmt = (
        select(TestAttempt, Test)
        .join(Test, Test.id == TestAttempt.test_id)
        .where(
            TestAttempt.status == AttemptStatus.IN_PROGRESS,
            Test.time_limit_minutes.is_not(None),
        )
        .order_by(TestAttempt.start_time)
        .limit(limit)
    )
    result = await session.execute(stmt)
    return [(attempt, test) for attempt, test in result.all()]


# ----------------------------- answers --------------------------------------


async def get_attempt_answers(
    session: AsyncSession, attempt_id: int
) -> Dict[int, AttemptAnswer]:
    """Answer rows of an attempt keyed by question id."""
    stmt = select(AttemptAnswer).where(AttemptAnswer.attempt_id == attempt_id)
    result = await session.execute(stmt)
    return {row.question_id: row for row in result.scalars().all()}


async def upsert_attempt_answers(
    session: AsyncSession,
    attempt_id: int,
    records: Mapping[int, AnswerRecordSchema],
    existing: Optional[Dict[int, AttemptAnswer]] = None,
) -> Dict[int, AttemptAnswer]:
    """
    Write a snapshot of answers.

    The answer and review flag are replaced; time spent never goes down.
    Returns all answer rows of the attempt keyed by question id.
    """
    rows = existing if existing is not None else await get_attempt_answers(
        session, attempt_id
    )
    for question_id, record in records.items():
        row = rows.get(question_id)
        if row is None:
            row = AttemptAnswer(
                attempt_id=attempt_id,
                question_id=question_id,
                user_answer=record.user_answer,
                time_spent_seconds=float(record.time_spent_seconds),
                is_marked=record.is_marked,
            )
            session.add(row)
            rows[question_id] = row
            continue
        row.user_answer = record.user_answer
        row.time_spent_seconds = max(
            row.time_spent_seconds or 0.0, float(record.time_spent_seconds)
        )
        row.is_marked = record.is_marked
    await session.flush()
    return rows


async def apply_grading(
    session: AsyncSession,
    attempt_id: int,
    rows: Dict[int, AttemptAnswer],
    grading: GradingResult,
) -> None:
    """Store per-question outcome, creating rows for unanswered questions."""
    for result in grading.results:
        row = rows.get(result.question_id)
        if row is None:
            row = AttemptAnswer(
                attempt_id=attempt_id,
                question_id=result.question_id,
                user_answer=None,
                time_spent_seconds=0.0,
                is_marked=False,
            )
            session.add(row)
            rows[result.question_id] = row
        row.is_correct = result.is_correct
        row.points_awarded = result.points_awarded
    await session.flush()
