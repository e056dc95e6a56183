# -*- coding: utf-8 -*-
"""
Attempt lifecycle.

    not_started -> in_progress -> {completed, graded, timed_out}

``in_progress -> in_progress`` is a resume. Terminal states have no way out.
"""

from typing import Optional, Union

from attempt_engine.domain.enums import TERMINAL_STATUSES, AttemptStatus
from attempt_engine.utils.exceptions import PermissionDeniedError

ALLOWED_TRANSITIONS: dict[AttemptStatus, frozenset[AttemptStatus]] = {
    AttemptStatus.NOT_STARTED: frozenset({AttemptStatus.IN_PROGRESS}),
    AttemptStatus.IN_PROGRESS: frozenset(
        {
            AttemptStatus.IN_PROGRESS,
            AttemptStatus.COMPLETED,
            AttemptStatus.GRADED,
            AttemptStatus.TIMED_OUT,
        }
    ),
    AttemptStatus.COMPLETED: frozenset(),
    AttemptStatus.GRADED: frozenset(),
    AttemptStatus.TIMED_OUT: frozenset(),
}


def as_status(value: Union[str, AttemptStatus, None]) -> AttemptStatus:
    """Normalize a stored status; a missing attempt is ``not_started``."""
    if value is None:
        return AttemptStatus.NOT_STARTED
    return AttemptStatus(value)


def is_terminal(status: Union[str, AttemptStatus]) -> bool:
    return as_status(status) in TERMINAL_STATUSES


def can_transition(
    current: Union[str, AttemptStatus, None], target: Union[str, AttemptStatus]
) -> bool:
    return as_status(target) in ALLOWED_TRANSITIONS[as_status(current)]


def ensure_transition(
    current: Union[str, AttemptStatus, None],
    target: Union[str, AttemptStatus],
    attempt_id: Optional[int] = None,
) -> AttemptStatus:
    """
    Check a transition and return the target status.

    Raises:
        PermissionDeniedError: the transition is not allowed
    """
    if not can_transition(current, target):
        label = f"Attempt {attempt_id}" if attempt_id is not None else "Attempt"
        raise PermissionDeniedError(
            f"{label} cannot move from {as_status(current).value} "
            f"to {as_status(target).value}"
        )
    return as_status(target)


def ensure_can_start(test_is_active: bool, test_id: int) -> None:
    if not test_is_active:
        raise PermissionDeniedError(f"Test {test_id} is not active")


def ensure_mutable(status: Union[str, AttemptStatus], attempt_id: int) -> None:
    """Reject any write to an attempt that is not in progress."""
    current = as_status(status)
    if current != AttemptStatus.IN_PROGRESS:
        raise PermissionDeniedError(
            f"Attempt {attempt_id} is {current.value} and can no longer be changed"
        )


def ensure_owner(owner_id: int, user_id: int, attempt_id: int) -> None:
    if owner_id != user_id:
        raise PermissionDeniedError(
            f"Attempt {attempt_id} does not belong to the current user"
        )
