"""
clock.py - Logical time shared by the engine and its collaborators

Price staleness and swap deadlines are judged against this clock, never
against the wall clock, so simulations and tests are reproducible.
"""

from __future__ import annotations
from datetime import datetime, timedelta
from typing import Optional, Union


class ManualClock:
    """
    Monotonic logical clock.

    Time can only move forward, never backward.
    """

    def __init__(self, initial_time: Optional[datetime] = None):
        self._now: datetime = initial_time or datetime(2025, 1, 1)

    @property
    def now(self) -> datetime:
        return self._now

    def advance(self, delta: Union[timedelta, int]) -> datetime:
        """Move forward by a timedelta or a number of seconds."""
        if isinstance(delta, int):
            delta = timedelta(seconds=delta)
        return self.advance_to(self._now + delta)

    def advance_to(self, new_time: datetime) -> datetime:
        """
        Advance the clock to new_time.

        Raises:
            ValueError: If new_time is before the current time
        """
        if new_time < self._now:
            raise ValueError(f"Cannot move time backwards: {new_time} < {self._now}")
        self._now = new_time
        return self._now

    def __repr__(self) -> str:
        return f"ManualClock({self._now.isoformat()})"
