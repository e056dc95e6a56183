# -*- coding: utf-8 -*-
"""
Per-question active time accumulation.

Time is charged to the question that has focus. Navigation calls
:meth:`TimeTracker.on_question_focus_change` exactly once per event; the
in-flight interval is flushed before any export.
"""

from typing import Mapping, Optional

from attempt_engine.engine.clock import Clock, SystemClock


class TimeTracker:
    def __init__(
        self,
        clock: Optional[Clock] = None,
        initial: Optional[Mapping[int, float]] = None,
    ):
        self._clock = clock or SystemClock()
        self._accumulated: dict[int, float] = dict(initial or {})
        self._active_id: Optional[int] = None
        self._active_since: Optional[float] = None
        self._suspended = False

    @property
    def active_question_id(self) -> Optional[int]:
        return self._active_id

    def seed(self, times: Mapping[int, float]) -> None:
        """Load time persisted by earlier sessions of the same attempt."""
        for question_id, seconds in times.items():
            self._accumulated[question_id] = max(
                self._accumulated.get(question_id, 0.0), float(seconds or 0.0)
            )

    def on_question_focus_change(self, question_id: Optional[int]) -> None:
        """Charge elapsed time to the active question, then switch to ``question_id``."""
        self._charge()
        self._active_id = question_id
        self._active_since = (
            self._clock.monotonic()
            if question_id is not None and not self._suspended
            else None
        )

    def suspend(self) -> None:
        """Stop the running interval (tab hidden). Focus is kept."""
        if self._suspended:
            return
        self._charge()
        self._active_since = None
        self._suspended = True

    def resume(self) -> None:
        if not self._suspended:
            return
        self._suspended = False
        if self._active_id is not None:
            self._active_since = self._clock.monotonic()

    def flush(self) -> None:
        """Charge the in-flight interval without changing focus."""
        self._charge()
        if self._active_id is not None and not self._suspended:
            self._active_since = self._clock.monotonic()

    def seconds_for(self, question_id: int) -> float:
        return self._accumulated.get(question_id, 0.0)

    def snapshot(self) -> dict[int, float]:
        """Flush and return accumulated seconds per question."""
        self.flush()
        return dict(self._accumulated)

    def _charge(self) -> None:
        if self._active_id is None or self._active_since is None:
            return
        elapsed = max(0.0, self._clock.monotonic() - self._active_since)
        self._accumulated[self._active_id] = (
            self._accumulated.get(self._active_id, 0.0) + elapsed
        )
        self._active_since = None
