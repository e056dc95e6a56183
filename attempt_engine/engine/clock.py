# -*- coding: utf-8 -*-
"""
Clock abstraction and countdown arithmetic.

Everything that needs "now" takes a clock so timing can be driven
deterministically in tests.
"""

import math
import time
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    """Current time as naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Clock(ABC):
    @abstractmethod
    def now(self) -> datetime:
        """Current wall time (naive UTC)."""

    @abstractmethod
    def monotonic(self) -> float:
        """Seconds from an arbitrary fixed point, never going backwards."""


class SystemClock(Clock):
    """Wall clock plus ``time.monotonic`` for durations."""

    def now(self) -> datetime:
        return utcnow()

    def monotonic(self) -> float:
        return time.monotonic()


class ManualClock(Clock):
    """Clock that only moves when told to."""

    def __init__(self, start: Optional[datetime] = None):
        self._now = start or datetime(2024, 1, 1, 12, 0, 0)
        self._mono = 0.0

    def now(self) -> datetime:
        return self._now

    def monotonic(self) -> float:
        return self._mono

    def advance(self, seconds: float) -> None:
        if seconds < 0:
            raise ValueError("Clock cannot go backwards")
        self._now += timedelta(seconds=seconds)
        self._mono += seconds


def time_limit_seconds(time_limit_minutes: Optional[int]) -> Optional[int]:
    """Initial countdown for a test, ``None`` when untimed."""
    if time_limit_minutes is None:
        return None
    return int(time_limit_minutes) * 60


def remaining_seconds(
    time_limit_minutes: Optional[int], start_time: datetime, now: datetime
) -> Optional[int]:
    """
    Seconds left on an attempt, clamped at zero.

    Partial seconds are rounded up so a countdown never shows 0 while time
    is still left.
    """
    limit = time_limit_seconds(time_limit_minutes)
    if limit is None:
        return None
    elapsed = (now - start_time).total_seconds()
    left = limit - elapsed
    if left <= 0:
        return 0
    return int(math.ceil(left))


def deadline(
    time_limit_minutes: Optional[int], start_time: datetime
) -> Optional[datetime]:
    limit = time_limit_seconds(time_limit_minutes)
    if limit is None:
        return None
    return start_time + timedelta(seconds=limit)


def is_expired(
    time_limit_minutes: Optional[int],
    start_time: datetime,
    now: datetime,
    grace_seconds: int = 0,
) -> bool:
    """True once ``now`` is past the deadline plus ``grace_seconds``."""
    end = deadline(time_limit_minutes, start_time)
    if end is None:
        return False
    return now > end + timedelta(seconds=grace_seconds)


def format_countdown(seconds: Optional[int]) -> str:
    """Render a countdown as ``MM:SS`` (or ``H:MM:SS`` past an hour)."""
    if seconds is None:
        return "--:--"
    seconds = max(0, int(seconds))
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"


class Countdown:
    """
    Client countdown for an attempt.

    Seeded from the server's remaining seconds; ticks off the monotonic clock
    so the value does not drift with wall clock changes.
    """

    def __init__(self, remaining: Optional[int], clock: Clock):
        self._clock = clock
        self._initial = remaining
        self._anchor = clock.monotonic()

    @property
    def is_timed(self) -> bool:
        return self._initial is not None

    def remaining(self) -> Optional[int]:
        if self._initial is None:
            return None
        elapsed = self._clock.monotonic() - self._anchor
        return max(0, int(math.ceil(self._initial - elapsed)))

    def is_expired(self) -> bool:
        left = self.remaining()
        return left is not None and left <= 0

    def reset(self, remaining: Optional[int]) -> None:
        self._initial = remaining
        self._anchor = self._clock.monotonic()
