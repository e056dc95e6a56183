# -*- coding: utf-8 -*-
"""
Client-side answer state for one attempt.

Keeps one typed slot per question, a review flag, a completion flag and the
set of questions changed since the last successful save.
"""

import math
from typing import Any, Iterable, Mapping, Optional

from pydantic import BaseModel

from attempt_engine.config.logger import configure_logger
from attempt_engine.domain.enums import QuestionType, SaveStatus
from attempt_engine.domain.schemas import AnswerRecordSchema
from attempt_engine.engine.answers import (Answer, QuestionRef, is_complete,
                                           parse_answer, to_raw)
from attempt_engine.engine.time_tracker import TimeTracker
from attempt_engine.utils.exceptions import ValidationError

logger = configure_logger(__name__)


class AnswerSlot(BaseModel):
    answer: Optional[Answer] = None
    completed: bool = False
    marked_for_review: bool = False


class ExportedAnswer(BaseModel):
    """Wire record for one question in a save or submit payload."""

    question_id: int
    user_answer: Optional[Any] = None
    time_spent_seconds: int = 0
    is_marked: bool = False


def round_seconds(seconds: float) -> int:
    """Round half up to whole seconds."""
    return int(math.floor(max(0.0, seconds) + 0.5))


class AnswerStore:
    def __init__(
        self,
        questions: Iterable[QuestionRef],
        tracker: Optional[TimeTracker] = None,
    ):
        self.tracker = tracker or TimeTracker()
        self._reset(questions)

    def _reset(self, questions: Iterable[QuestionRef]) -> None:
        self._questions: dict[int, QuestionRef] = {q.id: q for q in questions}
        self._order: list[int] = list(self._questions)
        self._slots: dict[int, AnswerSlot] = {
            question_id: AnswerSlot() for question_id in self._order
        }
        # question id -> edit counter at the time it was last changed
        self._dirty: dict[int, int] = {}
        self._edits = 0
        self.save_status = SaveStatus.SAVED

    @property
    def question_ids(self) -> list[int]:
        return list(self._order)

    @property
    def is_dirty(self) -> bool:
        return bool(self._dirty)

    @property
    def dirty_question_ids(self) -> set[int]:
        return set(self._dirty)

    def question(self, question_id: int) -> QuestionRef:
        try:
            return self._questions[question_id]
        except KeyError:
            raise ValidationError(
                f"Question {question_id} is not part of this attempt"
            )

    def slot(self, question_id: int) -> AnswerSlot:
        self.question(question_id)
        return self._slots[question_id]

    def get_answer(self, question_id: int) -> Optional[Answer]:
        return self.slot(question_id).answer

    def set_answer(self, question_id: int, value: Any) -> AnswerSlot:
        """
        Store an answer (typed or raw) for a question.

        Completion follows the answer on every change: a blank or cleared
        answer is not completed.

        Raises:
            ValidationError: unknown question or a value of the wrong type
        """
        question = self.question(question_id)
        answer = parse_answer(question, value)
        slot = self._slots[question_id]
        slot.answer = answer
        slot.completed = is_complete(answer)
        self._touch(question_id)
        return slot

    def toggle_review(self, question_id: int) -> bool:
        slot = self.slot(question_id)
        slot.marked_for_review = not slot.marked_for_review
        self._touch(question_id)
        return slot.marked_for_review

    def mark_completed(self, question_id: int, completed: bool = True) -> None:
        self.slot(question_id).completed = completed

    def completed_count(self) -> int:
        return sum(1 for slot in self._slots.values() if slot.completed)

    def marked_question_ids(self) -> list[int]:
        return [qid for qid in self._order if self._slots[qid].marked_for_review]

    def initialize(
        self,
        saved_answers: Mapping[int, Any],
        questions: Optional[Iterable[QuestionRef]] = None,
    ) -> None:
        """
        Rehydrate from persisted answers.

        Unknown question ids are skipped. A drawing whose payload cannot be
        parsed comes back unanswered. Values are ``AnswerRecordSchema``
        objects, their dict form, or bare raw answers.
        """
        if questions is not None:
            self._reset(questions)

        times: dict[int, float] = {}
        for question_id, saved in saved_answers.items():
            question_id = int(question_id)
            if question_id not in self._questions:
                logger.warning(
                    f"Skipping saved answer for unknown question {question_id}"
                )
                continue
            record = _as_saved(saved)
            question = self._questions[question_id]
            try:
                answer = parse_answer(question, record.user_answer)
            except ValidationError as e:
                kind = (
                    "drawing"
                    if question.question_type == QuestionType.DRAWING
                    else "answer"
                )
                logger.warning(
                    f"Malformed saved {kind} for question {question_id}, resetting: {e.detail}"
                )
                answer = None
            self._slots[question_id] = AnswerSlot(
                answer=answer,
                completed=is_complete(answer),
                marked_for_review=record.is_marked,
            )
            times[question_id] = record.time_spent_seconds

        self.tracker.seed(times)
        self._dirty.clear()
        self.save_status = SaveStatus.SAVED

    def export_for_submission(
        self, questions: Optional[Iterable[QuestionRef]] = None
    ) -> list[ExportedAnswer]:
        """
        One record per question, in question order.

        Untouched questions are exported with ``user_answer=None``. In-flight
        focus time is flushed first and times are rounded to whole seconds.
        """
        ids = [q.id for q in questions] if questions is not None else self._order
        times = self.tracker.snapshot()
        exported = []
        for question_id in ids:
            slot = self._slots.get(question_id, AnswerSlot())
            exported.append(
                ExportedAnswer(
                    question_id=question_id,
                    user_answer=to_raw(slot.answer),
                    time_spent_seconds=round_seconds(times.get(question_id, 0.0)),
                    is_marked=slot.marked_for_review,
                )
            )
        return exported

    def mark_saving(self) -> dict[int, int]:
        """Enter the saving state and return a token for :meth:`mark_saved`."""
        self.save_status = SaveStatus.SAVING
        return dict(self._dirty)

    def mark_saved(self, token: Optional[dict[int, int]] = None) -> None:
        """Clear dirty flags for what was saved; edits made meanwhile stay dirty."""
        if token is None:
            self._dirty.clear()
        else:
            for question_id, edit in token.items():
                if self._dirty.get(question_id) == edit:
                    del self._dirty[question_id]
        self.save_status = SaveStatus.UNSAVED if self._dirty else SaveStatus.SAVED

    def mark_save_failed(self) -> None:
        self.save_status = SaveStatus.ERROR

    def _touch(self, question_id: int) -> None:
        self._edits += 1
        self._dirty[question_id] = self._edits
        if self.save_status != SaveStatus.SAVING:
            self.save_status = SaveStatus.UNSAVED


def _as_saved(saved: Any) -> AnswerRecordSchema:
    if isinstance(saved, AnswerRecordSchema):
        return saved
    if isinstance(saved, Mapping) and "user_answer" in saved:
        return AnswerRecordSchema.model_validate(saved)
    return AnswerRecordSchema(user_answer=saved)
