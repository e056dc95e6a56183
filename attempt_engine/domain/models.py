# -*- coding: utf-8 -*-
"""
attempt_engine/domain/models.py
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
SQLAlchemy ORM models for tests, questions and attempts.

All timestamps are naive UTC.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

import sqlalchemy as sa
from sqlalchemy import (JSON, Boolean, DateTime, Float, ForeignKey, Index,
                        Integer, String, Text, UniqueConstraint)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from attempt_engine.domain.enums import AttemptStatus, QuestionType
from attempt_engine.engine.clock import utcnow


class Base(DeclarativeBase):
    pass


def _enum_column(enum_cls):
    # store enum values ("in_progress"), not member names
    return sa.Enum(
        enum_cls,
        values_callable=lambda members: [m.value for m in members],
        native_enum=False,
        length=32,
        validate_strings=True,
    )


class Test(Base):
    """A timed or untimed test made of ordered questions."""

    __tablename__ = "tests"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    instructions: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    time_limit_minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    passing_score: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    test_questions: Mapped[list["TestQuestion"]] = relationship(
        "TestQuestion",
        back_populates="test",
        cascade="all, delete-orphan",
        order_by="TestQuestion.question_order",
    )
    attempts: Mapped[list["TestAttempt"]] = relationship(
        "TestAttempt", back_populates="test", cascade="all, delete-orphan"
    )


class Question(Base):
    __tablename__ = "questions"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    question_type: Mapped[QuestionType] = mapped_column(
        _enum_column(QuestionType), nullable=False
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    # multiple_choice: [{"option_id": "a", "text": "..."}]
    options: Mapped[Optional[list[dict[str, Any]]]] = mapped_column(
        JSON, nullable=True
    )
    # option id for multiple_choice, canonical text for short_answer
    correct_answer: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    hint: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    explanation: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False
    )


class TestQuestion(Base):
    """Question placement inside a test with its point value."""

    __tablename__ = "test_questions"
    __table_args__ = (
        UniqueConstraint("test_id", "question_id", name="uq_test_question"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    test_id: Mapped[int] = mapped_column(
        ForeignKey("tests.id", ondelete="CASCADE"), nullable=False, index=True
    )
    question_id: Mapped[int] = mapped_column(
        ForeignKey("questions.id", ondelete="CASCADE"), nullable=False
    )
    point_value: Mapped[float] = mapped_column(Float, default=1.0, nullable=False)
    question_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    test: Mapped["Test"] = relationship("Test", back_populates="test_questions")
    question: Mapped["Question"] = relationship("Question", lazy="joined")


class TestAttempt(Base):
    """One user's run through a test."""

    __tablename__ = "test_attempts"
    __table_args__ = (
        # at most one in-progress attempt per (user, test)
        Index(
            "uq_attempt_in_progress",
            "user_id",
            "test_id",
            unique=True,
            postgresql_where=sa.text("status = 'in_progress'"),
            sqlite_where=sa.text("status = 'in_progress'"),
        ),
        Index("ix_attempt_user_test_started", "user_id", "test_id", "start_time"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    test_id: Mapped[int] = mapped_column(
        ForeignKey("tests.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    status: Mapped[AttemptStatus] = mapped_column(
        _enum_column(AttemptStatus),
        default=AttemptStatus.IN_PROGRESS,
        nullable=False,
    )
    start_time: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False
    )
    end_time: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    remaining_time_seconds: Mapped[Optional[int]] = mapped_column(
        Integer, nullable=True
    )
    last_viewed_question_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("questions.id", ondelete="SET NULL"), nullable=True
    )
    score: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    passed: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    test: Mapped["Test"] = relationship("Test", back_populates="attempts")
    answers: Mapped[list["AttemptAnswer"]] = relationship(
        "AttemptAnswer",
        back_populates="attempt",
        cascade="all, delete-orphan",
    )


class AttemptAnswer(Base):
    """Answer, time spent and grading outcome for one question of an attempt."""

    __tablename__ = "attempt_answers"
    __table_args__ = (
        UniqueConstraint("attempt_id", "question_id", name="uq_attempt_answer"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    attempt_id: Mapped[int] = mapped_column(
        ForeignKey("test_attempts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    question_id: Mapped[int] = mapped_column(
        ForeignKey("questions.id", ondelete="CASCADE"), nullable=False
    )
    # None means unanswered
    user_answer: Mapped[Optional[Any]] = mapped_column(JSON, nullable=True)
    time_spent_seconds: Mapped[float] = mapped_column(
        Float, default=0.0, nullable=False
    )
    is_marked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_correct: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    points_awarded: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    attempt: Mapped["TestAttempt"] = relationship(
        "TestAttempt", back_populates="answers"
    )
