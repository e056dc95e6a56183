# -*- coding: utf-8 -*-
"""
Client-side aggregate for one running attempt.

``AttemptSession`` owns the answer store, the time tracker, the countdown and
the autosave scheduler of an attempt and is the only thing a UI layer needs
to talk to.
"""

import asyncio
from typing import Any, Optional

from attempt_engine.config.logger import configure_logger
from attempt_engine.domain.enums import AttemptStatus, SaveReason, SaveStatus
from attempt_engine.domain.schemas import (AnswerRecordSchema,
                                           QuestionForTakingSchema,
                                           SaveProgressRequest,
                                           StartAttemptResponse,
                                           SubmitAttemptRequest,
                                           SubmitAttemptResponse)
from attempt_engine.engine import state_machine
from attempt_engine.engine.answer_store import AnswerStore
from attempt_engine.engine.answers import QuestionRef
from attempt_engine.engine.autosave import AutosaveScheduler
from attempt_engine.engine.clock import Clock, Countdown, SystemClock
from attempt_engine.engine.ports import AttemptRepository
from attempt_engine.engine.time_tracker import TimeTracker
from attempt_engine.utils.exceptions import PermissionDeniedError

logger = configure_logger(__name__)


def question_ref(question: QuestionForTakingSchema) -> QuestionRef:
    return QuestionRef(
        id=question.id,
        question_type=question.question_type,
        option_ids=tuple(option.option_id for option in question.options or ()),
        point_value=question.point_value,
    )


class AttemptSession:
    def __init__(
        self,
        repository: AttemptRepository,
        test_id: int,
        clock: Optional[Clock] = None,
        autosave_options: Optional[dict] = None,
        countdown_tick_seconds: float = 1.0,
    ):
        self.repository = repository
        self.test_id = test_id
        self.clock = clock or SystemClock()
        self.tracker = TimeTracker(self.clock)
        self.store: Optional[AnswerStore] = None
        self.countdown: Optional[Countdown] = None
        self.autosave = AutosaveScheduler(
            self._persist,
            self._can_save,
            on_error=self._on_autosave_error,
            **(autosave_options or {}),
        )
        self.attempt_id: Optional[int] = None
        self.status = AttemptStatus.NOT_STARTED
        self.questions: list[QuestionForTakingSchema] = []
        self.last_viewed_question_id: Optional[int] = None
        self.result: Optional[SubmitAttemptResponse] = None
        self.is_resumed = False
        self._countdown_tick = countdown_tick_seconds
        self._countdown_task: Optional[asyncio.Task] = None
        self._submitting = False

    # ----------------------------- lifecycle ------------------------------

    async def start(self) -> StartAttemptResponse:
        """Start or resume the attempt and rehydrate local state."""
        response = await self.repository.start_or_resume(self.test_id)
        attempt = response.attempt
        self.attempt_id = attempt.id
        self.status = attempt.status
        self.is_resumed = response.is_existing
        self.questions = sorted(response.questions, key=lambda q: q.question_order)

        refs = [question_ref(q) for q in self.questions]
        self.store = AnswerStore(refs, self.tracker)
        self.store.initialize(response.saved_answers)
        self.countdown = Countdown(attempt.remaining_time_seconds, self.clock)

        focus = attempt.last_viewed_question_id
        if focus not in self.store.question_ids:
            focus = self.store.question_ids[0] if self.questions else None
        self.go_to(focus)

        if self.status == AttemptStatus.IN_PROGRESS:
            self.autosave.start()
            if self.countdown.is_timed:
                self._countdown_task = asyncio.create_task(self._watch_countdown())
        logger.info(
            f"{'Resumed' if self.is_resumed else 'Started'} attempt {self.attempt_id} for test {self.test_id}"
        )
        return response

    async def close(self) -> None:
        """Tear down timers, flushing a pending edit save first."""
        if self.status == AttemptStatus.IN_PROGRESS and not self._submitting:
            await self.autosave.flush()
        self._stop_timers()
        self.tracker.flush()

    # ----------------------------- reads ----------------------------------

    @property
    def is_in_progress(self) -> bool:
        return self.status == AttemptStatus.IN_PROGRESS

    @property
    def current_question_id(self) -> Optional[int]:
        return self.tracker.active_question_id

    @property
    def save_status(self) -> SaveStatus:
        return self.store.save_status if self.store else SaveStatus.SAVED

    def remaining_seconds(self) -> Optional[int]:
        return self.countdown.remaining() if self.countdown else None

    def progress(self) -> tuple[int, int]:
        """(completed questions, total questions)."""
        if self.store is None:
            return 0, 0
        return self.store.completed_count(), len(self.store.question_ids)

    def get_answer(self, question_id: int) -> Any:
        return self._require_store().get_answer(question_id)

    # ----------------------------- mutations ------------------------------

    async def set_answer(self, question_id: int, value: Any) -> None:
        self._ensure_in_progress()
        self._require_store().set_answer(question_id, value)
        await self.autosave.request_save(SaveReason.EDIT)

    async def toggle_review(self, question_id: int) -> bool:
        self._ensure_in_progress()
        marked = self._require_store().toggle_review(question_id)
        await self.autosave.request_save(SaveReason.EDIT)
        return marked

    def mark_completed(self, question_id: int, completed: bool = True) -> None:
        self._ensure_in_progress()
        self._require_store().mark_completed(question_id, completed)

    def go_to(self, question_id: Optional[int]) -> None:
        """Move focus to a question (``None`` clears focus)."""
        if question_id is not None:
            self._require_store().question(question_id)
        self.tracker.on_question_focus_change(question_id)
        if question_id is not None:
            self.last_viewed_question_id = question_id

    async def on_visibility_change(self, hidden: bool) -> None:
        if hidden:
            self.tracker.suspend()
            await self.autosave.request_save(SaveReason.VISIBILITY_HIDDEN)
        else:
            self.tracker.resume()

    async def save(self) -> bool:
        """Explicit save; errors are raised to the caller."""
        return await self.autosave.request_save(SaveReason.MANUAL)

    async def submit(self, timed_out: bool = False) -> SubmitAttemptResponse:
        """
        Submit the attempt.

        A second submit while one is running, or after the attempt ended,
        fails fast with :class:`PermissionDeniedError`.
        """
        if self._submitting:
            raise PermissionDeniedError(
                f"Attempt {self.attempt_id} is already being submitted"
            )
        self._ensure_in_progress()
        self._submitting = True
        try:
            store = self._require_store()
            records = store.export_for_submission()
            payload = SubmitAttemptRequest(
                answers={
                    r.question_id: AnswerRecordSchema(
                        user_answer=r.user_answer,
                        time_spent_seconds=r.time_spent_seconds,
                        is_marked=r.is_marked,
                    )
                    for r in records
                },
                time_left_seconds=self.remaining_seconds(),
                last_viewed_question_id=self.last_viewed_question_id,
                timed_out=timed_out,
            )
            result = await self.repository.submit(self.attempt_id, payload)
        finally:
            self._submitting = False

        self.status = result.status
        self.result = result
        store.mark_saved()
        self._stop_timers()
        self.tracker.on_question_focus_change(None)
        logger.info(
            f"Attempt {self.attempt_id} submitted: status={result.status.value} score={result.score}"
        )
        return result

    # ----------------------------- internals ------------------------------

    def _can_save(self) -> bool:
        return self.is_in_progress and not self._submitting

    async def _persist(self, reason: SaveReason) -> None:
        store = self._require_store()
        token = store.mark_saving()
        records = store.export_for_submission()
        payload = SaveProgressRequest(
            last_viewed_question_id=self.last_viewed_question_id,
            remaining_time_seconds=self.remaining_seconds(),
            answers={
                r.question_id: AnswerRecordSchema(
                    user_answer=r.user_answer,
                    time_spent_seconds=r.time_spent_seconds,
                    is_marked=r.is_marked,
                )
                for r in records
            },
        )
        try:
            response = await self.repository.save_progress(self.attempt_id, payload)
        except PermissionDeniedError:
            # the server says the attempt is closed
            store.mark_save_failed()
            if self.is_in_progress and not self._submitting:
                self._stop_timers()
            raise
        except Exception:
            store.mark_save_failed()
            raise

        if not self.is_in_progress:
            # response to a save that raced with submit
            logger.debug(f"Ignoring stale save response for attempt {self.attempt_id}")
            return
        store.mark_saved(token)
        server_left = response.remaining_time_seconds
        if server_left is not None and self.countdown is not None:
            local_left = self.countdown.remaining()
            if local_left is None or server_left < local_left:
                self.countdown.reset(server_left)

    def _on_autosave_error(self, error: Exception) -> None:
        logger.warning(f"Autosave for attempt {self.attempt_id} failed: {error}")

    async def _watch_countdown(self) -> None:
        while self.is_in_progress:
            if self.countdown.is_expired() and not self._submitting:
                logger.info(f"Time is up for attempt {self.attempt_id}, auto-submitting")
                try:
                    await self.submit(timed_out=True)
                except PermissionDeniedError:
                    # already closed on the server (sweeper or another tab)
                    self.status = await self.repository.get_status(self.test_id)
                    self._stop_timers()
                    return
                except Exception as e:
                    logger.error(f"Auto-submit of attempt {self.attempt_id} failed: {e}")
                    await asyncio.sleep(self._countdown_tick)
                    continue
                return
            await asyncio.sleep(self._countdown_tick)

    def _stop_timers(self) -> None:
        self.autosave.stop()
        task = self._countdown_task
        self._countdown_task = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    def _ensure_in_progress(self) -> None:
        state_machine.ensure_mutable(self.status, self.attempt_id or 0)

    def _require_store(self) -> AnswerStore:
        if self.store is None:
            raise PermissionDeniedError("Attempt has not been started")
        return self.store
