# -*- coding: utf-8 -*-
"""
Typed answer values.

An answer is one of four variants, discriminated by ``kind``. Raw values
coming from storage or from the wire are turned into variants with
:func:`parse_answer`, which checks the value against the question type.
"""

import json
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from attempt_engine.domain.enums import MANUAL_GRADED_TYPES, QuestionType
from attempt_engine.utils.exceptions import ValidationError


class AnswerBase(BaseModel):
    model_config = ConfigDict(frozen=True)


class MultipleChoiceAnswer(AnswerBase):
    kind: Literal["multiple_choice"] = "multiple_choice"
    option_id: str

    def is_complete(self) -> bool:
        return True

    def to_raw(self) -> str:
        return self.option_id


class ShortTextAnswer(AnswerBase):
    kind: Literal["short_text"] = "short_text"
    text: str

    def is_complete(self) -> bool:
        return bool(self.text.strip())

    def to_raw(self) -> str:
        return self.text


class LongTextAnswer(AnswerBase):
    kind: Literal["long_text"] = "long_text"
    text: str

    def is_complete(self) -> bool:
        return bool(self.text.strip())

    def to_raw(self) -> str:
        return self.text


class DrawingAnswer(AnswerBase):
    """Canvas payload (strokes, shapes...), stored as a JSON string."""

    kind: Literal["drawing"] = "drawing"
    payload: Any

    def is_complete(self) -> bool:
        return self.payload is not None

    def to_raw(self) -> str:
        return json.dumps(self.payload, separators=(",", ":"))


Answer = Annotated[
    Union[MultipleChoiceAnswer, ShortTextAnswer, LongTextAnswer, DrawingAnswer],
    Field(discriminator="kind"),
]


_KIND_BY_TYPE = {
    QuestionType.MULTIPLE_CHOICE: "multiple_choice",
    QuestionType.SHORT_ANSWER: "short_text",
    QuestionType.LONG_ANSWER: "long_text",
    QuestionType.ESSAY: "long_text",
    QuestionType.DRAWING: "drawing",
}


class QuestionRef(BaseModel):
    """What the engine needs to know about a question of an attempt."""

    model_config = ConfigDict(frozen=True)

    id: int
    question_type: QuestionType
    option_ids: tuple[str, ...] = ()
    point_value: float = 1.0

    @property
    def is_manual(self) -> bool:
        return self.question_type in MANUAL_GRADED_TYPES


def parse_answer(question: QuestionRef, raw: Any) -> Optional[Answer]:
    """
    Build the typed answer for ``question`` from a raw value.

    ``None`` means unanswered. Already typed answers are re-checked against
    the question type.

    Raises:
        ValidationError: value does not fit the question type
    """
    if raw is None:
        return None
    if isinstance(raw, DrawingAnswer):
        if question.question_type != QuestionType.DRAWING:
            raise _mismatch(question, "drawing")
        return raw
    if isinstance(raw, AnswerBase):
        if _KIND_BY_TYPE.get(question.question_type) != raw.kind:
            raise _mismatch(question, raw.kind)
        raw = raw.to_raw()

    qtype = question.question_type
    if qtype == QuestionType.MULTIPLE_CHOICE:
        if not isinstance(raw, str) or not raw.strip():
            raise _mismatch(question, type(raw).__name__)
        if question.option_ids:
            known = {option.lower() for option in question.option_ids}
            if raw.lower() not in known:
                raise ValidationError(
                    f"Option '{raw}' does not belong to question {question.id}"
                )
        return MultipleChoiceAnswer(option_id=raw)

    if qtype == QuestionType.SHORT_ANSWER:
        if not isinstance(raw, str):
            raise _mismatch(question, type(raw).__name__)
        return ShortTextAnswer(text=raw)

    if qtype in (QuestionType.LONG_ANSWER, QuestionType.ESSAY):
        if not isinstance(raw, str):
            raise _mismatch(question, type(raw).__name__)
        return LongTextAnswer(text=raw)

    if qtype == QuestionType.DRAWING:
        if isinstance(raw, str):
            try:
                payload = json.loads(raw)
            except ValueError:
                raise ValidationError(
                    f"Drawing for question {question.id} is not valid JSON"
                )
        elif isinstance(raw, (dict, list)):
            payload = raw
        else:
            raise _mismatch(question, type(raw).__name__)
        if payload is None:
            return None
        return DrawingAnswer(payload=payload)

    raise ValidationError(f"Unsupported question type: {qtype}")


def to_raw(answer: Optional[Answer]) -> Optional[str]:
    """Raw storage form of an answer (``None`` when unanswered)."""
    if answer is None:
        return None
    return answer.to_raw()


def is_complete(answer: Optional[Answer]) -> bool:
    """Auto-completion rule: any choice, non-blank text, or a drawing."""
    return answer is not None and answer.is_complete()


def _mismatch(question: QuestionRef, got: str) -> ValidationError:
    return ValidationError(
        f"Answer of type {got} does not match {question.question_type.value} "
        f"question {question.id}"
    )
