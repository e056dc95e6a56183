# -*- coding: utf-8 -*-
"""
attempt_engine/service/attempts.py
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
Attempt lifecycle: start or resume, save progress, submit and grade, status,
history and results.

Every public operation is one transaction. Validation happens before the
first write; a failure rolls everything back. Writes that change an attempt
are conditional on the attempt still being ``in_progress`` so a late save can
never reopen or overwrite a finished attempt.
"""

from __future__ import annotations

import functools
from typing import Any, Dict, List, Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from attempt_engine.config.logger import configure_logger
from attempt_engine.config.settings import settings
from attempt_engine.domain.enums import AttemptStatus
from attempt_engine.domain.models import (AttemptAnswer, Test, TestAttempt,
                                          TestQuestion)
from attempt_engine.domain.schemas import (AnswerRecordSchema, AttemptRead,
                                           AttemptResultResponse,
                                           AttemptStatusResponse, OptionSchema,
                                           QuestionForTakingSchema,
                                           QuestionResultSchema,
                                           SaveProgressRequest,
                                           SaveProgressResponse,
                                           StartAttemptResponse,
                                           SubmitAttemptRequest,
                                           SubmitAttemptResponse,
                                           TestDataForTakingResponse,
                                           TestForTakingSchema)
from attempt_engine.engine import clock as clock_utils
from attempt_engine.engine import state_machine
from attempt_engine.engine.answers import QuestionRef, parse_answer, to_raw
from attempt_engine.engine.clock import Clock, SystemClock
from attempt_engine.engine.grading import (AnswerKeyEntry, GradingResult,
                                           grade, resolve_outcome)
from attempt_engine.engine.ports import AttemptRepository
from attempt_engine.repository import attempts as attempts_repo
from attempt_engine.service.cache_service import CacheService, cache_service
from attempt_engine.utils.exceptions import (ConflictError, NotFoundError,
                                             PermissionDeniedError,
                                             ServiceUnavailableError,
                                             ValidationError)

logger = configure_logger(__name__)

TRANSIENT_DB_ERRORS = (OperationalError, InterfaceError, PoolTimeoutError)


def transient_guard(operation: str):
    """
    Turn storage outages into ``ServiceUnavailableError``.

    The transaction is rolled back and the failure is logged with the
    operation name and its arguments.
    """

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(self: "AttemptService", *args, **kwargs):
            try:
                return await func(self, *args, **kwargs)
            except TRANSIENT_DB_ERRORS as e:
                await self.session.rollback()
                logger.error(
                    f"❌ {operation} failed on storage (args={args}, kwargs={kwargs}): {type(e).__name__}: {e}"
                )
                raise ServiceUnavailableError(f"{operation} temporarily unavailable")

        return wrapper

    return decorator


def _question_view(placement: TestQuestion) -> QuestionForTakingSchema:
    question = placement.question
    options = None
    if question.options:
        options = [OptionSchema.model_validate(option) for option in question.options]
    return QuestionForTakingSchema(
        id=question.id,
        question_type=question.question_type,
        content=question.content,
        options=options,
        hint=question.hint,
        image_url=question.image_url,
        point_value=placement.point_value,
        question_order=placement.question_order,
    )


def _question_ref(placement: TestQuestion) -> QuestionRef:
    question = placement.question
    return QuestionRef(
        id=question.id,
        question_type=question.question_type,
        option_ids=tuple(option["option_id"] for option in question.options or ()),
        point_value=placement.point_value,
    )


def _test_view(test: Test, question_count: int) -> TestForTakingSchema:
    return TestForTakingSchema(
        id=test.id,
        title=test.title,
        description=test.description,
        instructions=test.instructions,
        time_limit_minutes=test.time_limit_minutes,
        passing_score=test.passing_score,
        question_count=question_count,
    )


def _saved_answers(rows: Dict[int, AttemptAnswer]) -> Dict[int, AnswerRecordSchema]:
    return {
        question_id: AnswerRecordSchema(
            user_answer=row.user_answer,
            time_spent_seconds=row.time_spent_seconds or 0.0,
            is_marked=row.is_marked,
        )
        for question_id, row in rows.items()
    }


class AttemptService:
    """Attempt operations on one database session."""

    def __init__(
        self,
        session: AsyncSession,
        clock: Optional[Clock] = None,
        cache: Optional[CacheService] = None,
        grace_seconds: Optional[int] = None,
    ):
        self.session = session
        self.clock = clock or SystemClock()
        self.cache = cache if cache is not None else cache_service
        self.grace_seconds = (
            settings.attempt_grace_seconds if grace_seconds is None else grace_seconds
        )

    # ----------------------------- start / resume --------------------------

    @transient_guard("start_or_resume")
    async def start_or_resume(self, test_id: int, user_id: int) -> StartAttemptResponse:
        """
        Return the user's in-progress attempt for the test or create one.

        Raises:
            NotFoundError: unknown test
            PermissionDeniedError: a new attempt is needed but the test is inactive
        """
        test = await self._get_test(test_id)
        placements = await attempts_repo.get_test_questions(self.session, test_id)

        existing = await attempts_repo.get_in_progress_attempt(
            self.session, test_id, user_id
        )
        if existing is not None and self._is_overdue(existing, test):
            # closed here, or already closed by a concurrent submit
            await self.expire_attempt(existing, test)
            await self.session.commit()
            await self.cache.invalidate_attempts(test_id, user_id)
            existing = None

        if existing is not None:
            resumed = await self._resume(existing, test, placements)
            if resumed is not None:
                return resumed
            logger.info(
                f"Attempt {existing.id} was closed while resuming, starting a new one"
            )

        state_machine.ensure_can_start(test.is_active, test_id)
        now = self.clock.now()
        try:
            attempt = await attempts_repo.insert_attempt(
                self.session,
                test_id=test_id,
                user_id=user_id,
                start_time=now,
                remaining_time_seconds=clock_utils.time_limit_seconds(
                    test.time_limit_minutes
                ),
            )
            await self.session.commit()
        except IntegrityError:
            # lost the race: another request created the attempt first
            await self.session.rollback()
            # rollback expired everything loaded so far
            test = await self._get_test(test_id)
            placements = await attempts_repo.get_test_questions(self.session, test_id)
            winner = await attempts_repo.get_in_progress_attempt(
                self.session, test_id, user_id
            )
            if winner is None:
                raise ConflictError(
                    f"Could not start test {test_id}: a concurrent attempt changed state"
                )
            logger.info(
                f"🔁 Concurrent start for test {test_id}, user {user_id}: returning attempt {winner.id}"
            )
            resumed = await self._resume(winner, test, placements)
            if resumed is None:
                raise ConflictError(
                    f"Could not start test {test_id}: attempt {winner.id} closed meanwhile"
                )
            return resumed

        await self.cache.invalidate_attempts(test_id, user_id)
        logger.info(
            f"📝 Started attempt {attempt.id} for test {test_id}, user {user_id} "
            f"(time limit: {test.time_limit_minutes or 'none'} min)"
        )
        return StartAttemptResponse(
            attempt=AttemptRead.model_validate(attempt),
            test=_test_view(test, len(placements)),
            questions=[_question_view(p) for p in placements],
            saved_answers={},
            is_existing=False,
        )

    async def _resume(
        self, attempt: TestAttempt, test: Test, placements: List[TestQuestion]
    ) -> Optional[StartAttemptResponse]:
        """Resume ``attempt``; ``None`` if it is no longer in progress."""
        remaining = self._server_remaining(attempt, test)
        # also confirms the row is still open, whatever the loaded copy says
        still_open = await self._update_in_progress(
            attempt.id, raise_if_stale=False, remaining_time_seconds=remaining
        )
        await self.session.commit()
        if not still_open:
            return None
        rows = await attempts_repo.get_attempt_answers(self.session, attempt.id)
        logger.debug(f"Resuming attempt {attempt.id}, remaining={remaining}")
        return StartAttemptResponse(
            attempt=AttemptRead.model_validate(attempt),
            test=_test_view(test, len(placements)),
            questions=[_question_view(p) for p in placements],
            saved_answers=_saved_answers(rows),
            is_existing=True,
        )

    # ----------------------------- save progress ---------------------------

    @transient_guard("save_progress")
    async def save_progress(
        self, attempt_id: int, user_id: int, payload: SaveProgressRequest
    ) -> SaveProgressResponse:
        """
        Persist a snapshot of answers, time spent and position.

        Raises:
            NotFoundError: unknown attempt
            PermissionDeniedError: not the owner, or the attempt is finished
            ValidationError: unknown question or an answer of the wrong type
        """
        attempt = await self._get_attempt(attempt_id, for_update=True)
        state_machine.ensure_owner(attempt.user_id, user_id, attempt_id)
        state_machine.ensure_mutable(attempt.status, attempt_id)
        test = await self._get_test(attempt.test_id)

        if await self._expire_if_overdue(attempt, test):
            await self.session.commit()
            state_machine.ensure_mutable(attempt.status, attempt_id)

        placements = await attempts_repo.get_test_questions(self.session, test.id)
        records = self._validate_answers(placements, payload.answers)
        self._validate_position(placements, payload.last_viewed_question_id)

        remaining = self._server_remaining(attempt, test)
        if remaining is not None and payload.remaining_time_seconds is not None:
            remaining = min(remaining, payload.remaining_time_seconds)

        await attempts_repo.upsert_attempt_answers(self.session, attempt_id, records)
        await self._update_in_progress(
            attempt_id,
            last_viewed_question_id=payload.last_viewed_question_id,
            remaining_time_seconds=remaining,
        )
        await self.session.commit()
        await self.cache.invalidate_attempts(attempt.test_id, attempt.user_id)

        logger.debug(
            f"Saved progress for attempt {attempt_id}: {len(records)} answers, remaining={remaining}"
        )
        return SaveProgressResponse(success=True, remaining_time_seconds=remaining)

    # ----------------------------- submit ----------------------------------

    @transient_guard("submit")
    async def submit(
        self, attempt_id: int, user_id: int, payload: SubmitAttemptRequest
    ) -> SubmitAttemptResponse:
        """
        Grade and close an attempt.

        Raises:
            NotFoundError: unknown attempt
            PermissionDeniedError: not the owner, or already submitted
            ValidationError: malformed answers (nothing is written)
            GradingError: scoring failed (nothing is written)
        """
        attempt = await self._get_attempt(attempt_id, for_update=True)
        state_machine.ensure_owner(attempt.user_id, user_id, attempt_id)
        state_machine.ensure_mutable(attempt.status, attempt_id)
        test = await self._get_test(attempt.test_id)
        placements = await attempts_repo.get_test_questions(self.session, test.id)

        records = self._validate_answers(placements, payload.answers)
        self._validate_position(placements, payload.last_viewed_question_id)

        now = self.clock.now()
        overdue = clock_utils.is_expired(
            test.time_limit_minutes, attempt.start_time, now, self.grace_seconds
        )
        timed_out = payload.timed_out or overdue

        remaining = self._server_remaining(attempt, test)
        if remaining is not None and payload.time_left_seconds is not None:
            remaining = min(remaining, payload.time_left_seconds)

        try:
            if overdue:
                # past the deadline only what was saved in time counts
                rows = await attempts_repo.get_attempt_answers(self.session, attempt_id)
                logger.warning(
                    f"Late submit for attempt {attempt_id}: grading saved answers, "
                    f"ignoring {len(records)} submitted"
                )
            else:
                rows = await attempts_repo.upsert_attempt_answers(
                    self.session, attempt_id, records
                )
            grading = self._grade(placements, rows)
            outcome = resolve_outcome(grading, test.passing_score, timed_out=timed_out)
            state_machine.ensure_transition(attempt.status, outcome.status, attempt_id)
            await attempts_repo.apply_grading(self.session, attempt_id, rows, grading)
            await self._update_in_progress(
                attempt_id,
                status=outcome.status,
                score=outcome.score,
                passed=outcome.passed,
                end_time=now,
                remaining_time_seconds=0 if timed_out and remaining is not None else remaining,
                last_viewed_question_id=payload.last_viewed_question_id
                or attempt.last_viewed_question_id,
            )
        except Exception:
            await self.session.rollback()
            raise
        await self.session.commit()
        await self.cache.invalidate_attempts(attempt.test_id, attempt.user_id)

        logger.info(
            f"✅ Attempt {attempt_id} submitted: status={outcome.status.value}, "
            f"score={outcome.score}/{grading.max_score}, passed={outcome.passed}"
        )
        return SubmitAttemptResponse(
            attempt_id=attempt_id,
            status=outcome.status,
            score=outcome.score,
            max_score=grading.max_score,
            passed=outcome.passed,
            needs_manual_grading=grading.needs_manual_grading,
        )

    # ----------------------------- reads -----------------------------------

    @transient_guard("get_status")
    async def get_status(self, test_id: int, user_id: int) -> AttemptStatusResponse:
        """Status of the user's latest attempt; ``not_started`` if none."""
        test = await self._get_test(test_id)
        latest = await attempts_repo.get_latest_attempt(self.session, test_id, user_id)
        if latest is None:
            return AttemptStatusResponse(
                test_id=test_id, status=AttemptStatus.NOT_STARTED
            )
        if latest.status == AttemptStatus.IN_PROGRESS and await self._expire_if_overdue(
            latest, test
        ):
            await self.session.commit()
            await self.cache.invalidate_attempts(test_id, user_id)

        remaining = None
        if latest.status == AttemptStatus.IN_PROGRESS:
            remaining = self._server_remaining(latest, test)
        return AttemptStatusResponse(
            test_id=test_id,
            status=latest.status,
            attempt_id=latest.id,
            remaining_time_seconds=remaining,
        )

    @transient_guard("get_attempts_for_test")
    async def get_attempts_for_test(
        self, test_id: int, user_id: int
    ) -> List[AttemptRead]:
        """All of the user's attempts for a test, newest first."""
        cached = await self.cache.get_attempts(test_id, user_id)
        if cached is not None:
            logger.debug(f"Attempt history for test {test_id}, user {user_id} from cache")
            return [AttemptRead.model_validate(item) for item in cached]

        await self._get_test(test_id)
        attempts = await attempts_repo.get_test_attempts(self.session, test_id, user_id)
        result = [AttemptRead.model_validate(a) for a in attempts]
        await self.cache.set_attempts(
            test_id, user_id, [a.model_dump(mode="json") for a in result]
        )
        return result

    @transient_guard("get_attempt_result")
    async def get_attempt_result(
        self, attempt_id: int, user_id: int
    ) -> AttemptResultResponse:
        """
        Per-question outcome of a finished attempt.

        Raises:
            NotFoundError: unknown attempt
            PermissionDeniedError: not the owner, or the attempt is still running
        """
        attempt = await self._get_attempt(attempt_id)
        state_machine.ensure_owner(attempt.user_id, user_id, attempt_id)
        if not state_machine.is_terminal(attempt.status):
            raise PermissionDeniedError(
                f"Attempt {attempt_id} is still in progress"
            )
        test = await self._get_test(attempt.test_id)
        placements = await attempts_repo.get_test_questions(self.session, test.id)
        rows = await attempts_repo.get_attempt_answers(self.session, attempt_id)

        results = []
        needs_manual = False
        for placement in placements:
            question = placement.question
            row = rows.get(question.id)
            ref = _question_ref(placement)
            if ref.is_manual and (row is None or row.is_correct is None):
                needs_manual = True
            results.append(
                QuestionResultSchema(
                    question_id=question.id,
                    question_type=question.question_type,
                    content=question.content,
                    options=_question_view(placement).options,
                    user_answer=row.user_answer if row else None,
                    correct_answer=None if ref.is_manual else question.correct_answer,
                    is_correct=row.is_correct if row else None,
                    points_awarded=row.points_awarded if row else None,
                    point_value=placement.point_value,
                    explanation=question.explanation,
                    time_spent_seconds=row.time_spent_seconds if row else 0.0,
                    is_marked=row.is_marked if row else False,
                )
            )
        return AttemptResultResponse(
            attempt=AttemptRead.model_validate(attempt),
            test_title=test.title,
            max_score=sum(p.point_value for p in placements),
            needs_manual_grading=needs_manual,
            results=results,
        )

    @transient_guard("get_test_for_taking")
    async def get_test_for_taking(self, test_id: int) -> TestDataForTakingResponse:
        """Test and its questions without correct answers."""
        test = await self._get_test(test_id)
        placements = await attempts_repo.get_test_questions(self.session, test_id)
        return TestDataForTakingResponse(
            test=_test_view(test, len(placements)),
            questions=[_question_view(p) for p in placements],
        )

    # ----------------------------- expiry ----------------------------------

    async def expire_attempt(self, attempt: TestAttempt, test: Test) -> bool:
        """
        Grade saved answers and close an overdue attempt as ``timed_out``.

        Does not commit. Returns ``False`` and writes nothing if the attempt
        was no longer in progress.
        """
        placements = await attempts_repo.get_test_questions(self.session, test.id)
        rows = await attempts_repo.get_attempt_answers(self.session, attempt.id)
        grading = self._grade(placements, rows)
        outcome = resolve_outcome(grading, test.passing_score, timed_out=True)
        changed = await self._update_in_progress(
            attempt.id,
            status=outcome.status,
            score=outcome.score,
            passed=outcome.passed,
            end_time=self.clock.now(),
            remaining_time_seconds=0,
            raise_if_stale=False,
        )
        if changed:
            await attempts_repo.apply_grading(self.session, attempt.id, rows, grading)
            logger.info(
                f"⏰ Attempt {attempt.id} timed out: score={outcome.score}, passed={outcome.passed}"
            )
        return changed

    def _is_overdue(self, attempt: TestAttempt, test: Test) -> bool:
        return attempt.status == AttemptStatus.IN_PROGRESS and clock_utils.is_expired(
            test.time_limit_minutes,
            attempt.start_time,
            self.clock.now(),
            self.grace_seconds,
        )

    async def _expire_if_overdue(self, attempt: TestAttempt, test: Test) -> bool:
        if not self._is_overdue(attempt, test):
            return False
        return await self.expire_attempt(attempt, test)

    # ----------------------------- helpers ---------------------------------

    async def _get_test(self, test_id: int) -> Test:
        test = await attempts_repo.get_test_by_id(self.session, test_id)
        if test is None:
            raise NotFoundError("Test", test_id)
        return test

    async def _get_attempt(self, attempt_id: int, for_update: bool = False) -> TestAttempt:
        attempt = await attempts_repo.get_attempt_by_id(
            self.session, attempt_id, for_update=for_update
        )
        if attempt is None:
            raise NotFoundError("Attempt", attempt_id)
        return attempt

    def _server_remaining(self, attempt: TestAttempt, test: Test) -> Optional[int]:
        return clock_utils.remaining_seconds(
            test.time_limit_minutes, attempt.start_time, self.clock.now()
        )

    def _validate_answers(
        self,
        placements: List[TestQuestion],
        answers: Dict[int, AnswerRecordSchema],
    ) -> Dict[int, AnswerRecordSchema]:
        """Check every answer against its question and normalize raw values."""
        refs = {p.question_id: _question_ref(p) for p in placements}
        normalized: Dict[int, AnswerRecordSchema] = {}
        for question_id, record in answers.items():
            ref = refs.get(question_id)
            if ref is None:
                raise ValidationError(
                    f"Question {question_id} is not part of this test"
                )
            answer = parse_answer(ref, record.user_answer)
            normalized[question_id] = AnswerRecordSchema(
                user_answer=to_raw(answer),
                time_spent_seconds=record.time_spent_seconds,
                is_marked=record.is_marked,
            )
        return normalized

    def _validate_position(
        self, placements: List[TestQuestion], question_id: Optional[int]
    ) -> None:
        if question_id is None:
            return
        if question_id not in {p.question_id for p in placements}:
            raise ValidationError(
                f"Last viewed question {question_id} is not part of this test"
            )

    def _grade(
        self, placements: List[TestQuestion], rows: Dict[int, AttemptAnswer]
    ) -> GradingResult:
        answer_key = {
            p.question_id: AnswerKeyEntry(
                question_type=p.question.question_type,
                correct_answer=p.question.correct_answer,
            )
            for p in placements
        }
        point_values = {p.question_id: p.point_value for p in placements}
        answers: Dict[int, Any] = {
            question_id: row.user_answer
            for question_id, row in rows.items()
            if question_id in answer_key
        }
        return grade(answers, answer_key, point_values)

    async def _update_in_progress(
        self, attempt_id: int, raise_if_stale: bool = True, **values: Any
    ) -> bool:
        """Update an attempt only while it is still in progress."""
        result = await self.session.execute(
            update(TestAttempt)
            .where(
                TestAttempt.id == attempt_id,
                TestAttempt.status == AttemptStatus.IN_PROGRESS,
            )
            .values(**values)
        )
        if result.rowcount == 1:
            return True
        if raise_if_stale:
            await self.session.rollback()
            raise PermissionDeniedError(
                f"Attempt {attempt_id} is no longer in progress"
            )
        return False


class UserAttemptRepository(AttemptRepository):
    """
    In-process implementation of the client port for one user.

    Each call runs in its own session, like one HTTP request would.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        user_id: int,
        clock: Optional[Clock] = None,
        cache: Optional[CacheService] = None,
    ):
        self.session_factory = session_factory
        self.user_id = user_id
        self.clock = clock
        self.cache = cache

    def _service(self, session: AsyncSession) -> AttemptService:
        return AttemptService(session, clock=self.clock, cache=self.cache)

    async def start_or_resume(self, test_id: int) -> StartAttemptResponse:
        async with self.session_factory() as session:
            return await self._service(session).start_or_resume(test_id, self.user_id)

    async def save_progress(
        self, attempt_id: int, payload: SaveProgressRequest
    ) -> SaveProgressResponse:
        async with self.session_factory() as session:
            return await self._service(session).save_progress(
                attempt_id, self.user_id, payload
            )

    async def submit(
        self, attempt_id: int, payload: SubmitAttemptRequest
    ) -> SubmitAttemptResponse:
        async with self.session_factory() as session:
            return await self._service(session).submit(
                attempt_id, self.user_id, payload
            )

    async def get_status(self, test_id: int) -> AttemptStatus:
        async with self.session_factory() as session:
            response = await self._service(session).get_status(test_id, self.user_id)
            return response.status

    async def get_attempts_for_test(self, test_id: int) -> List[AttemptRead]:
        async with self.session_factory() as session:
            return await self._service(session).get_attempts_for_test(
                test_id, self.user_id
            )

    async def get_attempt_result(self, attempt_id: int) -> AttemptResultResponse:
        async with self.session_factory() as session:
            return await self._service(session).get_attempt_result(
                attempt_id, self.user_id
            )
