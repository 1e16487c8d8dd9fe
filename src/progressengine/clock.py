"""Calendar sources used for streak and daily-goal day boundaries."""

from __future__ import annotations

from datetime import date, timedelta
from typing import Protocol


class Clock(Protocol):
    """Provides the learner's current calendar day."""

    def today(self) -> date:
        """Return today's date."""
        ...


class SystemClock:
    """Local-time calendar from the host."""

    def today(self) -> date:
        """Return the host's local date."""
        return date.today()


class FixedClock:
    """Manually advanced calendar for previews, replays and tests."""

    def __init__(self, current: date) -> None:
        self.current = current

    def today(self) -> date:
        """Return the pinned date."""
        return self.current

    def advance(self, days: int = 1) -> date:
        """Move the pinned date forward and return it."""
        self.current = self.current + timedelta(days=days)
        return self.current
