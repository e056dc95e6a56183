# -*- coding: utf-8 -*-
"""
Unit tests for the grading engine
"""

import pytest

from attempt_engine.domain.enums import AttemptStatus, QuestionType
from attempt_engine.engine.answers import (DrawingAnswer, MultipleChoiceAnswer,
                                           ShortTextAnswer)
from attempt_engine.engine.grading import (AnswerKeyEntry, grade,
                                           resolve_outcome)
from attempt_engine.utils.exceptions import GradingError

MC = QuestionType.MULTIPLE_CHOICE


def two_mc_key():
    return {
        1: AnswerKeyEntry(question_type=MC, correct_answer="b"),
        2: AnswerKeyEntry(question_type=MC, correct_answer="a"),
    }


class TestGrade:
    """Scoring of submitted answers"""

    def test_one_of_two_correct_passes(self):
        """One correct MC answer out of two reaches the passing score"""
        # Arrange
        answers = {1: "b", 2: "c"}

        # Act
        result = grade(answers, two_mc_key(), {1: 5, 2: 5})
        outcome = resolve_outcome(result, passing_score=5)

        # Assert
        assert result.total_score == 5
        assert result.max_score == 10
        assert result.needs_manual_grading is False
        assert outcome.status == AttemptStatus.GRADED
        assert outcome.passed is True

    def test_all_wrong_fails(self):
        """No correct answer gives zero and a failed attempt"""
        result = grade({1: "a", 2: "c"}, two_mc_key(), {1: 5, 2: 5})
        outcome = resolve_outcome(result, passing_score=5)

        assert result.total_score == 0
        assert outcome.status == AttemptStatus.GRADED
        assert outcome.passed is False

    def test_essay_needs_manual_grading(self):
        """An essay keeps the attempt completed with an unknown pass flag"""
        # Arrange
        key = {
            1: AnswerKeyEntry(question_type=MC, correct_answer="b"),
            2: AnswerKeyEntry(question_type=QuestionType.ESSAY),
        }

        # Act
        result = grade({1: "b", 2: "A long essay"}, key, {1: 5, 2: 5})
        outcome = resolve_outcome(result, passing_score=5)

        # Assert
        assert result.needs_manual_grading is True
        assert result.total_score == 5
        assert outcome.status == AttemptStatus.COMPLETED
        assert outcome.passed is None
        essay = result.result_for(2)
        assert essay.pending is True
        assert essay.is_correct is None
        assert essay.points_awarded is None

    def test_multiple_choice_is_case_insensitive(self):
        result = grade({1: "B"}, {1: two_mc_key()[1]}, {1: 2})
        assert result.result_for(1).is_correct is True
        assert result.total_score == 2

    def test_short_answer_trims_and_ignores_case(self):
        """Short answers match after trimming, ignoring case"""
        key = {1: AnswerKeyEntry(question_type=QuestionType.SHORT_ANSWER, correct_answer="Paris")}

        assert grade({1: "  paris "}, key, {1: 1}).total_score == 1
        assert grade({1: "Paris, France"}, key, {1: 1}).total_score == 0

    def test_unanswered_auto_question_is_incorrect(self):
        result = grade({}, two_mc_key(), {1: 5, 2: 5})

        assert [r.is_correct for r in result.results] == [False, False]
        assert all(r.points_awarded == 0 for r in result.results)

    def test_blank_short_answer_is_incorrect(self):
        key = {1: AnswerKeyEntry(question_type=QuestionType.SHORT_ANSWER, correct_answer="x")}
        assert grade({1: "   "}, key, {1: 1}).result_for(1).is_correct is False

    def test_unanswered_manual_question_is_pending(self):
        key = {1: AnswerKeyEntry(question_type=QuestionType.DRAWING)}

        result = grade({}, key, {1: 4})

        assert result.result_for(1).pending is True
        assert result.needs_manual_grading is True
        assert result.max_score == 4

    def test_accepts_typed_answers(self):
        """Typed answer variants are graded like raw values"""
        key = {
            1: AnswerKeyEntry(question_type=MC, correct_answer="b"),
            2: AnswerKeyEntry(question_type=QuestionType.SHORT_ANSWER, correct_answer="Seine"),
            3: AnswerKeyEntry(question_type=QuestionType.DRAWING),
        }
        answers = {
            1: MultipleChoiceAnswer(option_id="b"),
            2: ShortTextAnswer(text="seine"),
            3: DrawingAnswer(payload={"strokes": []}),
        }

        result = grade(answers, key, {1: 1, 2: 1, 3: 1})

        assert result.total_score == 2
        assert result.needs_manual_grading is True

    def test_unknown_question_raises(self):
        with pytest.raises(GradingError):
            grade({99: "a"}, two_mc_key(), {1: 5, 2: 5})

    def test_negative_points_raise(self):
        with pytest.raises(GradingError):
            grade({}, two_mc_key(), {1: 5, 2: -1})

    def test_missing_points_raise(self):
        with pytest.raises(GradingError):
            grade({}, two_mc_key(), {1: 5})

    def test_auto_question_without_key_raises(self):
        key = {1: AnswerKeyEntry(question_type=MC)}
        with pytest.raises(GradingError):
            grade({1: "a"}, key, {1: 1})


class TestResolveOutcome:
    """Terminal status and pass flag"""

    def test_no_passing_score_gives_unknown_pass(self):
        result = grade({1: "b", 2: "a"}, two_mc_key(), {1: 5, 2: 5})

        outcome = resolve_outcome(result, passing_score=None)

        assert outcome.status == AttemptStatus.GRADED
        assert outcome.passed is None
        assert outcome.score == 10

    def test_score_equal_to_passing_score_passes(self):
        result = grade({1: "b"}, two_mc_key(), {1: 5, 2: 5})
        assert resolve_outcome(result, passing_score=5).passed is True

    def test_timed_out_keeps_timed_out_status(self):
        """A timed out attempt is graded but keeps its status"""
        result = grade({1: "b"}, two_mc_key(), {1: 5, 2: 5})

        outcome = resolve_outcome(result, passing_score=5, timed_out=True)

        assert outcome.status == AttemptStatus.TIMED_OUT
        assert outcome.passed is True
