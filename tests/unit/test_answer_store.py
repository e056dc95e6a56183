# -*- coding: utf-8 -*-
"""
Unit tests for AnswerStore
"""

import pytest

from attempt_engine.domain.enums import QuestionType, SaveStatus
from attempt_engine.domain.schemas import AnswerRecordSchema
from attempt_engine.engine.answer_store import AnswerStore, round_seconds
from attempt_engine.engine.answers import (DrawingAnswer, MultipleChoiceAnswer,
                                           QuestionRef)
from attempt_engine.engine.clock import ManualClock
from attempt_engine.engine.time_tracker import TimeTracker
from attempt_engine.utils.exceptions import ValidationError

QUESTIONS = [
    QuestionRef(id=1, question_type=QuestionType.MULTIPLE_CHOICE, option_ids=("a", "b")),
    QuestionRef(id=2, question_type=QuestionType.SHORT_ANSWER),
    QuestionRef(id=3, question_type=QuestionType.DRAWING),
]


@pytest.fixture
def store():
    return AnswerStore(QUESTIONS, TimeTracker(ManualClock()))


class TestAnswerStore:
    """Answer slots, completion and dirty tracking"""

    def test_set_answer_marks_completed_and_dirty(self, store):
        # Act
        store.set_answer(1, "a")

        # Assert
        assert store.get_answer(1) == MultipleChoiceAnswer(option_id="a")
        assert store.slot(1).completed is True
        assert store.dirty_question_ids == {1}
        assert store.save_status == SaveStatus.UNSAVED

    def test_blank_text_is_not_completed(self, store):
        store.set_answer(2, "   ")
        assert store.slot(2).completed is False

    def test_blanking_answer_clears_completion(self, store):
        """Completion tracks the latest value, not the best one seen"""
        store.set_answer(2, "Paris")
        store.set_answer(2, "   ")

        assert store.slot(2).completed is False
        assert store.completed_count() == 0

    def test_clearing_answer_clears_completion(self, store):
        store.set_answer(1, "a")
        store.set_answer(1, None)

        assert store.get_answer(1) is None
        assert store.slot(1).completed is False

    def test_unknown_question_rejected(self, store):
        with pytest.raises(ValidationError):
            store.set_answer(42, "a")

    def test_wrong_type_rejected_and_not_stored(self, store):
        with pytest.raises(ValidationError):
            store.set_answer(1, "z")
        assert store.get_answer(1) is None
        assert store.is_dirty is False

    def test_toggle_review(self, store):
        assert store.toggle_review(2) is True
        assert store.marked_question_ids() == [2]
        assert store.toggle_review(2) is False
        assert store.marked_question_ids() == []

    def test_mark_completed_manually(self, store):
        store.mark_completed(3)
        assert store.completed_count() == 1

    def test_edit_during_save_stays_dirty(self, store):
        """Edits made while a save is in flight survive its completion"""
        # Arrange
        store.set_answer(1, "a")
        token = store.mark_saving()

        # Act
        store.set_answer(1, "b")
        store.set_answer(2, "Paris")
        store.mark_saved(token)

        # Assert
        assert store.dirty_question_ids == {1, 2}
        assert store.save_status == SaveStatus.UNSAVED

    def test_save_clears_dirty(self, store):
        store.set_answer(1, "a")
        store.mark_saved(store.mark_saving())

        assert store.is_dirty is False
        assert store.save_status == SaveStatus.SAVED

    def test_save_failure_status(self, store):
        store.set_answer(1, "a")
        store.mark_saving()
        store.mark_save_failed()

        assert store.save_status == SaveStatus.ERROR
        assert store.is_dirty is True


class TestInitialize:
    """Rehydration from saved answers"""

    def test_restores_answers_flags_and_time(self, store):
        # Arrange
        saved = {
            1: AnswerRecordSchema(user_answer="b", time_spent_seconds=12, is_marked=True),
            "2": {"user_answer": "Lyon", "time_spent_seconds": 3, "is_marked": False},
        }

        # Act
        store.initialize(saved)

        # Assert
        assert store.get_answer(1) == MultipleChoiceAnswer(option_id="b")
        assert store.slot(1).marked_for_review is True
        assert store.slot(2).completed is True
        assert store.tracker.seconds_for(1) == 12
        assert store.is_dirty is False
        assert store.save_status == SaveStatus.SAVED

    def test_skips_unknown_questions(self, store):
        store.initialize({99: "a", 1: "a"})

        assert store.get_answer(1) is not None
        assert 99 not in store.question_ids

    def test_malformed_drawing_reset_to_unanswered(self, store):
        """A drawing that is not valid JSON comes back empty"""
        store.initialize({3: "{broken", 2: "Paris"})

        assert store.get_answer(3) is None
        assert store.slot(3).completed is False
        assert store.get_answer(2) is not None

    def test_valid_drawing_restored(self, store):
        store.initialize({3: '{"strokes": []}'})
        assert store.get_answer(3) == DrawingAnswer(payload={"strokes": []})

    def test_with_new_questions_resets(self, store):
        store.set_answer(1, "a")

        store.initialize({}, questions=QUESTIONS[1:])

        assert store.question_ids == [2, 3]
        assert store.is_dirty is False


class TestExport:
    def test_exports_every_question_in_order(self, store):
        """Untouched questions are exported unanswered"""
        # Arrange
        store.set_answer(3, {"strokes": [[1, 2]]})
        store.toggle_review(2)

        # Act
        exported = store.export_for_submission()

        # Assert
        assert [r.question_id for r in exported] == [1, 2, 3]
        assert exported[0].user_answer is None
        assert exported[1].is_marked is True
        assert exported[2].user_answer == '{"strokes":[[1,2]]}'

    def test_times_are_rounded_to_whole_seconds(self):
        clock = ManualClock()
        store = AnswerStore(QUESTIONS, TimeTracker(clock))
        store.tracker.on_question_focus_change(1)
        clock.advance(2.5)
        store.tracker.on_question_focus_change(2)
        clock.advance(1.4)

        exported = {r.question_id: r.time_spent_seconds for r in store.export_for_submission()}

        assert exported == {1: 3, 2: 1, 3: 0}

    def test_round_seconds(self):
        assert round_seconds(0.49) == 0
        assert round_seconds(0.5) == 1
        assert round_seconds(-3) == 0
