"""Core domain models for learner progress and gamification."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Sequence

THEMES = ("system", "light", "dark", "alpha")


@dataclass(frozen=True)
class Lesson:
    """One lesson in the static catalog."""

    id: str
    title: str
    category: str
    order: int
    description: str = ""
    difficulty: str = "beginner"
    xp_reward: int = 0
    estimated_minutes: int = 0


class LessonCatalog(Protocol):
    """Read-only lesson metadata consulted by achievement rules."""

    def lessons(self) -> Sequence[Lesson]:
        """Return every lesson in catalog order."""
        ...

    def lessons_in_category(self, category: str) -> list[Lesson]:
        """Return lessons belonging to one category."""
        ...

    def get(self, lesson_id: str) -> Lesson | None:
        """Return one lesson by id."""
        ...


class GoalTier(Enum):
    """Daily goal difficulty tier."""

    SIMPLE = "simple"
    MODERATE = "moderate"
    ADVANCED = "advanced"

    @property
    def xp_reward(self) -> int:
        """XP awarded when a goal of this tier completes."""
        return _TIER_REWARDS[self]


_TIER_REWARDS = {GoalTier.SIMPLE: 15, GoalTier.MODERATE: 30, GoalTier.ADVANCED: 50}


class Rarity(Enum):
    """Achievement rarity."""

    COMMON = "common"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"


@dataclass
class DailyGoal:
    """One of the three goals active for the current day."""

    id: str
    title: str
    description: str
    tier: GoalTier
    icon: str
    target_value: int
    current_progress: int = 0
    is_completed: bool = False
    created_at: date | None = None

    @property
    def xp_reward(self) -> int:
        """Tier reward for completing this goal."""
        return self.tier.xp_reward

    @property
    def progress_fraction(self) -> float:
        """Completion ratio clamped to [0, 1]."""
        if self.target_value <= 0:
            return 1.0
        return min(1.0, self.current_progress / self.target_value)


@dataclass
class ProgressState:
    """Aggregate progress for one learner.

    `level` is derived from `total_xp` and is only ever written by the store.
    Id sets are append-only. `streak_milestone_hit` is display-only and is
    not persisted.
    """

    total_xp: int = 0
    level: int = 1
    daily_streak_days: int = 0
    last_practice_date: date | None = None
    longest_streak_days: int = 0
    question_streak: int = 0
    best_question_streak: int = 0
    session_points: int = 0
    total_points: int = 0
    completed_lesson_ids: set[str] = field(default_factory=set)
    completed_categories: set[str] = field(default_factory=set)
    last_lesson_id: str | None = None
    perfect_lessons: int = 0
    unlocked_achievement_ids: set[str] = field(default_factory=set)
    active_daily_goals: list[DailyGoal] = field(default_factory=list)
    last_daily_goal_reset_date: date | None = None
    today_daily_goals_xp: int = 0
    total_daily_goals_completed: int = 0
    is_pro_user: bool = False
    pro_expiry: date | None = None
    streak_milestone_hit: int | None = None
    username: str = ""
    selected_theme: str = "alpha"
    notifications_enabled: bool = True
    sound_enabled: bool = True
    haptics_enabled: bool = True
    has_attempted_question: bool = False


Requirement = Callable[[ProgressState, LessonCatalog], bool]


@dataclass(frozen=True)
class Achievement:
    """Immutable catalog entry unlocked once when its requirement holds."""

    id: str
    title: str
    description: str
    icon: str
    rarity: Rarity
    xp_reward: int
    requirement: Requirement = field(compare=False, repr=False)
