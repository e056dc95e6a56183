# -*- coding: utf-8 -*-
"""
Pydantic schemas exchanged between the attempt service, the HTTP API and the
client session.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from attempt_engine.domain.enums import AttemptStatus, QuestionType

# ----------------------------- TEST DATA ------------------------------------


class OptionSchema(BaseModel):
    option_id: str
    text: str


class QuestionForTakingSchema(BaseModel):
    """Question as shown while an attempt is running (no correct answer)."""

    id: int
    question_type: QuestionType
    content: str
    options: Optional[List[OptionSchema]] = None
    hint: Optional[str] = None
    image_url: Optional[str] = None
    point_value: float = 1.0
    question_order: int = 0


class TestForTakingSchema(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    instructions: Optional[str] = None
    time_limit_minutes: Optional[int] = None
    passing_score: Optional[float] = None
    question_count: int = 0

    model_config = ConfigDict(from_attributes=True)


class TestDataForTakingResponse(BaseModel):
    test: TestForTakingSchema
    questions: List[QuestionForTakingSchema]


# ----------------------------- ATTEMPTS -------------------------------------


class AttemptRead(BaseModel):
    id: int
    test_id: int
    user_id: int
    status: AttemptStatus
    start_time: datetime
    end_time: Optional[datetime] = None
    remaining_time_seconds: Optional[int] = None
    last_viewed_question_id: Optional[int] = None
    score: Optional[float] = None
    passed: Optional[bool] = None

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("start_time", "end_time")
    def serialize_datetime(self, value: Optional[datetime]) -> Optional[str]:
        return value.isoformat() if value else None


class AnswerRecordSchema(BaseModel):
    """Persisted state of one question: answer, time spent and review flag."""

    user_answer: Optional[Any] = Field(
        default=None, description="Raw answer; null means unanswered"
    )
    time_spent_seconds: float = Field(default=0.0, ge=0)
    is_marked: bool = False


class StartAttemptResponse(BaseModel):
    attempt: AttemptRead
    test: TestForTakingSchema
    questions: List[QuestionForTakingSchema]
    saved_answers: Dict[int, AnswerRecordSchema] = Field(default_factory=dict)
    is_existing: bool = Field(
        default=False, description="True when an in-progress attempt was resumed"
    )


class SaveProgressRequest(BaseModel):
    last_viewed_question_id: Optional[int] = None
    remaining_time_seconds: Optional[int] = Field(default=None, ge=0)
    answers: Dict[int, AnswerRecordSchema] = Field(default_factory=dict)


class SaveProgressResponse(BaseModel):
    success: bool = True
    remaining_time_seconds: Optional[int] = None


class SubmitAttemptRequest(BaseModel):
    answers: Dict[int, AnswerRecordSchema] = Field(default_factory=dict)
    time_left_seconds: Optional[int] = Field(default=None, ge=0)
    last_viewed_question_id: Optional[int] = None
    timed_out: bool = Field(
        default=False, description="Client countdown reached zero"
    )


class SubmitAttemptResponse(BaseModel):
    attempt_id: int
    status: AttemptStatus
    score: float
    max_score: float
    passed: Optional[bool] = None
    needs_manual_grading: bool = False


class AttemptStatusResponse(BaseModel):
    test_id: int
    status: AttemptStatus
    attempt_id: Optional[int] = None
    remaining_time_seconds: Optional[int] = None


# ----------------------------- RESULTS --------------------------------------


class QuestionResultSchema(BaseModel):
    question_id: int
    question_type: QuestionType
    content: str
    options: Optional[List[OptionSchema]] = None
    user_answer: Optional[Any] = None
    correct_answer: Optional[str] = None
    is_correct: Optional[bool] = None
    points_awarded: Optional[float] = None
    point_value: float
    explanation: Optional[str] = None
    time_spent_seconds: float = 0.0
    is_marked: bool = False


class AttemptResultResponse(BaseModel):
    attempt: AttemptRead
    test_title: str
    max_score: float
    needs_manual_grading: bool
    results: List[QuestionResultSchema]
