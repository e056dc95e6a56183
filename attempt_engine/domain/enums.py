# -*- coding: utf-8 -*-
"""
attempt_engine/domain/enums.py
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
Enumerations shared by the domain models and the engine.
"""

import enum


class QuestionType(str, enum.Enum):
    """Supported question types."""

    MULTIPLE_CHOICE = "multiple_choice"
    SHORT_ANSWER = "short_answer"
    LONG_ANSWER = "long_answer"
    ESSAY = "essay"  # same behaviour as long_answer
    DRAWING = "drawing"


# Types that are never graded automatically
MANUAL_GRADED_TYPES = frozenset(
    {QuestionType.LONG_ANSWER, QuestionType.ESSAY, QuestionType.DRAWING}
)


class AttemptStatus(str, enum.Enum):
    """Lifecycle states of a test attempt."""

    NOT_STARTED = "not_started"  # no row exists
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"  # submitted, manual grading pending
    GRADED = "graded"  # submitted, fully auto-graded
    TIMED_OUT = "timed_out"


TERMINAL_STATUSES = frozenset(
    {AttemptStatus.COMPLETED, AttemptStatus.GRADED, AttemptStatus.TIMED_OUT}
)


class SaveReason(str, enum.Enum):
    """Why the client asked to persist progress."""

    EDIT = "edit"
    INTERVAL = "interval"
    VISIBILITY_HIDDEN = "visibility_hidden"
    MANUAL = "manual"


class SaveStatus(str, enum.Enum):
    """Client-side persistence indicator."""

    SAVED = "saved"
    UNSAVED = "unsaved"
    SAVING = "saving"
    ERROR = "error"
