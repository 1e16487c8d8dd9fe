"""Daily practice streak transitions."""

from __future__ import annotations

from datetime import date, timedelta

from .models import ProgressState


def advance_daily_streak(state: ProgressState, today: date) -> bool:
    """Apply one practice day to the streak and return whether it changed.

    - first practice ever starts the streak at 1.
    - a second practice on the same day leaves it untouched.
    - practice on the day after the last one extends it by 1.
    - any longer gap restarts it at 1.

    A last-practice date after `today` (the clock moved backwards) counts
    as same-day so the streak is never punished for clock drift.
    """
    last = state.last_practice_date
    previous = state.daily_streak_days

    if last is None:
        state.daily_streak_days = 1
    elif last >= today:
        return False
    elif last == today - timedelta(days=1):
        state.daily_streak_days = previous + 1
    else:
        state.daily_streak_days = 1

    state.last_practice_date = today
    state.longest_streak_days = max(state.longest_streak_days, state.daily_streak_days)
    return state.daily_streak_days != previous
