"""Points awarded for correct answers within a question streak."""

from __future__ import annotations

BASE_POINTS = 10
STREAK_GROWTH = 1.25
EXPONENTIAL_CAP = 5.0
MILESTONE_MULTIPLIERS = {5: 1.5, 10: 2.0, 20: 2.5, 50: 3.0}
STREAK_MILESTONES = tuple(sorted(MILESTONE_MULTIPLIERS))


def milestone_multiplier(question_streak: int) -> float:
    """Return the one-off boost applied when a streak lands on a milestone."""
    return MILESTONE_MULTIPLIERS.get(question_streak, 1.0)


def is_streak_milestone(question_streak: int) -> bool:
    """Return whether the streak value is a celebrated milestone."""
    return question_streak in MILESTONE_MULTIPLIERS


def points_for_streak(question_streak: int) -> int:
    """Return points earned for the correct answer that made `question_streak`.

    Model:
    - growth is exponential in the streak length, capped at 5x base.
    - milestone streaks (5/10/20/50) stack a further multiplier on top.
    - off-milestone answers drop fractional points; milestone answers round
      to the nearest point.

    Streaks 1..5 therefore score 10, 12, 15, 19, 37.
    """
    streak = max(1, question_streak)
    exponential = min(EXPONENTIAL_CAP, STREAK_GROWTH ** (streak - 1))
    raw = BASE_POINTS * exponential
    multiplier = milestone_multiplier(streak)
    if multiplier == 1.0:
        return int(raw)
    return int(round(raw * multiplier))
