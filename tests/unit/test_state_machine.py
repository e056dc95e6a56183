# -*- coding: utf-8 -*-
"""
Unit tests for the attempt lifecycle
"""

import pytest

from attempt_engine.domain.enums import AttemptStatus
from attempt_engine.engine import state_machine
from attempt_engine.utils.exceptions import PermissionDeniedError

TERMINAL = [AttemptStatus.COMPLETED, AttemptStatus.GRADED, AttemptStatus.TIMED_OUT]


class TestTransitions:
    """Allowed and forbidden status changes"""

    def test_start(self):
        assert state_machine.can_transition(None, AttemptStatus.IN_PROGRESS)
        assert state_machine.can_transition(
            AttemptStatus.NOT_STARTED, AttemptStatus.IN_PROGRESS
        )

    def test_resume_is_allowed(self):
        assert state_machine.can_transition(
            AttemptStatus.IN_PROGRESS, AttemptStatus.IN_PROGRESS
        )

    @pytest.mark.parametrize("target", TERMINAL)
    def test_in_progress_can_finish(self, target):
        assert state_machine.ensure_transition("in_progress", target) == target

    @pytest.mark.parametrize("current", TERMINAL)
    def test_terminal_states_are_final(self, current):
        """Nothing leaves a terminal state"""
        assert state_machine.is_terminal(current)
        for target in AttemptStatus:
            assert not state_machine.can_transition(current, target)
        with pytest.raises(PermissionDeniedError):
            state_machine.ensure_transition(current, AttemptStatus.IN_PROGRESS, 5)

    def test_cannot_skip_in_progress(self):
        assert not state_machine.can_transition(None, AttemptStatus.GRADED)


class TestGuards:
    def test_inactive_test_cannot_start(self):
        with pytest.raises(PermissionDeniedError):
            state_machine.ensure_can_start(False, 1)
        state_machine.ensure_can_start(True, 1)

    @pytest.mark.parametrize("status", TERMINAL)
    def test_finished_attempt_is_immutable(self, status):
        with pytest.raises(PermissionDeniedError):
            state_machine.ensure_mutable(status, 1)

    def test_owner_check(self):
        state_machine.ensure_owner(1, 1, 10)
        with pytest.raises(PermissionDeniedError):
            state_machine.ensure_owner(1, 2, 10)
