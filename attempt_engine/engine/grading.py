# -*- coding: utf-8 -*-
"""
Grading engine.

:func:`grade` is a pure function of the submitted answers, the answer key
and the point values. :func:`resolve_outcome` turns a grading result into
the terminal status and pass/fail flag of an attempt.
"""

from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict

from attempt_engine.domain.enums import (MANUAL_GRADED_TYPES, AttemptStatus,
                                         QuestionType)
from attempt_engine.engine.answers import AnswerBase, DrawingAnswer
from attempt_engine.utils.exceptions import GradingError


class AnswerKeyEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    question_type: QuestionType
    correct_answer: Optional[str] = None


class QuestionResult(BaseModel):
    """Outcome for one question. ``is_correct`` is ``None`` while pending."""

    question_id: int
    is_correct: Optional[bool] = None
    points_awarded: Optional[float] = None
    max_points: float = 0.0
    pending: bool = False


class GradingResult(BaseModel):
    total_score: float
    max_score: float
    results: list[QuestionResult]
    needs_manual_grading: bool

    def result_for(self, question_id: int) -> Optional[QuestionResult]:
        for result in self.results:
            if result.question_id == question_id:
                return result
        return None


class Outcome(BaseModel):
    status: AttemptStatus
    score: float
    passed: Optional[bool]


def _raw(answer: Any) -> Any:
    if isinstance(answer, DrawingAnswer):
        return answer.payload
    if isinstance(answer, AnswerBase):
        return answer.to_raw()
    return answer


def _is_blank(raw: Any) -> bool:
    return raw is None or (isinstance(raw, str) and not raw.strip())


def grade(
    answers: Mapping[int, Any],
    answer_key: Mapping[int, AnswerKeyEntry],
    point_values: Mapping[int, float],
) -> GradingResult:
    """
    Score an attempt.

    Every question of ``answer_key`` gets a result; questions missing from
    ``answers`` count as unanswered.

    - multiple_choice: option ids compared case-insensitively
    - short_answer: trimmed, case-insensitive exact match
    - long_answer, essay, drawing: pending manual grading, 0 points for now
    - unanswered: incorrect for auto-graded types, pending for manual ones

    Raises:
        GradingError: unknown question, negative or missing point value,
            or an auto-graded question without a correct answer
    """
    unknown = set(answers) - set(answer_key)
    if unknown:
        raise GradingError(f"Answers for unknown questions: {sorted(unknown)}")

    results: list[QuestionResult] = []
    total = 0.0
    max_score = 0.0
    needs_manual = False

    for question_id, key in answer_key.items():
        if question_id not in point_values:
            raise GradingError(f"No point value for question {question_id}")
        points = float(point_values[question_id])
        if points < 0:
            raise GradingError(
                f"Negative point value {points} for question {question_id}"
            )
        max_score += points
        raw = _raw(answers.get(question_id))

        if key.question_type in MANUAL_GRADED_TYPES:
            needs_manual = True
            results.append(
                QuestionResult(question_id=question_id, max_points=points, pending=True)
            )
            continue

        if key.correct_answer is None:
            raise GradingError(f"Question {question_id} has no correct answer")

        if _is_blank(raw):
            correct = False
        elif key.question_type == QuestionType.MULTIPLE_CHOICE:
            correct = str(raw).lower() == key.correct_answer.lower()
        elif key.question_type == QuestionType.SHORT_ANSWER:
            correct = str(raw).strip().lower() == key.correct_answer.strip().lower()
        else:
            raise GradingError(f"Unsupported question type: {key.question_type}")

        awarded = points if correct else 0.0
        total += awarded
        results.append(
            QuestionResult(
                question_id=question_id,
                is_correct=correct,
                points_awarded=awarded,
                max_points=points,
            )
        )

    return GradingResult(
        total_score=total,
        max_score=max_score,
        results=results,
        needs_manual_grading=needs_manual,
    )


def resolve_outcome(
    result: GradingResult,
    passing_score: Optional[float],
    timed_out: bool = False,
) -> Outcome:
    """
    Terminal status and pass/fail for a graded attempt.

    Manual grading pending: ``completed`` with ``passed=None``. Otherwise
    ``graded`` with ``passed = score >= passing_score`` (``None`` when the test
    has no passing score). A timed out attempt keeps ``timed_out`` as its
    status with the same score rules.
    """
    if result.needs_manual_grading:
        status = AttemptStatus.TIMED_OUT if timed_out else AttemptStatus.COMPLETED
        return Outcome(status=status, score=result.total_score, passed=None)

    passed = None
    if passing_score is not None:
        passed = result.total_score >= passing_score
    status = AttemptStatus.TIMED_OUT if timed_out else AttemptStatus.GRADED
    return Outcome(status=status, score=result.total_score, passed=passed)
