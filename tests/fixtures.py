# -*- coding: utf-8 -*-
"""
Builders for tests, questions and attempts.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from attempt_engine.domain import models
from attempt_engine.domain.enums import AttemptStatus, QuestionType
from attempt_engine.repository.base import create_item
from attempt_engine.security.security import create_access_token

STUDENT_ID = 1
OTHER_STUDENT_ID = 2

MC_OPTIONS = [
    {"option_id": "a", "text": "Paris"},
    {"option_id": "b", "text": "Lyon"},
    {"option_id": "c", "text": "Nice"},
]


def auth_headers(user_id: int = STUDENT_ID) -> dict:
    """Authorization header with a valid access token for ``user_id``."""
    token = create_access_token({"sub": user_id})
    return {"Authorization": f"Bearer {token}"}


async def create_test(
    session: AsyncSession,
    title: str = "Geography quiz",
    time_limit_minutes: Optional[int] = 10,
    passing_score: Optional[float] = 1.0,
    is_active: bool = True,
) -> models.Test:
    """Create a test without questions."""
    return await create_item(
        session,
        models.Test,
        title=title,
        description="Capitals and rivers",
        instructions="Answer every question",
        time_limit_minutes=time_limit_minutes,
        passing_score=passing_score,
        is_active=is_active,
    )


async def create_question(
    session: AsyncSession,
    question_type: QuestionType = QuestionType.MULTIPLE_CHOICE,
    content: str = "Capital of France?",
    correct_answer: Optional[str] = "a",
    options: Optional[list] = None,
) -> models.Question:
    if options is None and question_type == QuestionType.MULTIPLE_CHOICE:
        options = MC_OPTIONS
    return await create_item(
        session,
        models.Question,
        question_type=question_type,
        content=content,
        options=options,
        correct_answer=correct_answer,
        explanation=f"Explanation for: {content}",
    )


async def add_question(
    session: AsyncSession,
    test: models.Test,
    question: models.Question,
    point_value: float = 1.0,
    question_order: int = 0,
) -> models.TestQuestion:
    return await create_item(
        session,
        models.TestQuestion,
        test_id=test.id,
        question_id=question.id,
        point_value=point_value,
        question_order=question_order,
    )


async def create_mc_test(
    session: AsyncSession, **test_kwargs
) -> tuple[models.Test, models.Question]:
    """One multiple choice question ("a" is correct) worth one point."""
    test = await create_test(session, **test_kwargs)
    question = await create_question(session)
    await add_question(session, test, question)
    return test, question


async def create_mixed_test(
    session: AsyncSession, **test_kwargs
) -> tuple[models.Test, List[models.Question]]:
    """
    Multiple choice (2 points), short answer (1 point) and essay (3 points).

    Correct answers: "a" and "Paris".
    """
    test = await create_test(session, **test_kwargs)
    mc = await create_question(session)
    short = await create_question(
        session,
        QuestionType.SHORT_ANSWER,
        content="Capital of France, in words?",
        correct_answer="Paris",
    )
    essay = await create_question(
        session,
        QuestionType.ESSAY,
        content="Describe the Seine.",
        correct_answer=None,
    )
    await add_question(session, test, mc, point_value=2.0, question_order=1)
    await add_question(session, test, short, point_value=1.0, question_order=2)
    await add_question(session, test, essay, point_value=3.0, question_order=3)
    return test, [mc, short, essay]


async def create_attempt(
    session: AsyncSession,
    test: models.Test,
    user_id: int,
    start_time: datetime,
    status: AttemptStatus = AttemptStatus.IN_PROGRESS,
    **kwargs,
) -> models.TestAttempt:
    return await create_item(
        session,
        models.TestAttempt,
        test_id=test.id,
        user_id=user_id,
        status=status,
        start_time=start_time,
        **kwargs,
    )
