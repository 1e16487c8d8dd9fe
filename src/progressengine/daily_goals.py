"""Daily goal pools, rotation, and progress tracking."""

from __future__ import annotations

import logging
import random
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Protocol
from uuid import uuid4

from .models import DailyGoal, GoalTier, ProgressState

logger = logging.getLogger(__name__)

ALL_GOALS_BONUS_XP = 25


class ActionKind(Enum):
    """Semantic learning actions that move daily goals."""

    APP_OPENED = "app_opened"
    LESSON_COMPLETED = "lesson_completed"
    QUESTION_CORRECT = "question_correct"
    QUESTION_INCORRECT = "question_incorrect"
    XP_EARNED = "xp_earned"
    PERFECT_LESSON = "perfect_lesson"
    STREAK_MAINTAINED = "streak_maintained"


@dataclass(frozen=True)
class GoalAction:
    """One action fed to the goal manager; `amount` only matters for XP."""

    kind: ActionKind
    amount: int = 0

    @classmethod
    def app_opened(cls) -> GoalAction:
        return cls(ActionKind.APP_OPENED)

    @classmethod
    def lesson_completed(cls) -> GoalAction:
        return cls(ActionKind.LESSON_COMPLETED)

    @classmethod
    def question_correct(cls) -> GoalAction:
        return cls(ActionKind.QUESTION_CORRECT)

    @classmethod
    def question_incorrect(cls) -> GoalAction:
        return cls(ActionKind.QUESTION_INCORRECT)

    @classmethod
    def xp_earned(cls, amount: int) -> GoalAction:
        return cls(ActionKind.XP_EARNED, max(0, amount))

    @classmethod
    def perfect_lesson(cls) -> GoalAction:
        return cls(ActionKind.PERFECT_LESSON)

    @classmethod
    def streak_maintained(cls) -> GoalAction:
        return cls(ActionKind.STREAK_MAINTAINED)


@dataclass(frozen=True)
class GoalTemplate:
    """Pool entry a daily goal is stamped from.

    `tracks` is the action that moves it. `latch` goals jump straight to 1
    instead of accumulating. `consecutive` goals drop back to 0 on a wrong
    answer.
    """

    title: str
    description: str
    tier: GoalTier
    icon: str
    target_value: int
    tracks: ActionKind
    latch: bool = False
    consecutive: bool = False

    def instantiate(self, today: date) -> DailyGoal:
        """Create a fresh goal with zero progress."""
        return DailyGoal(
            id=str(uuid4()),
            title=self.title,
            description=self.description,
            tier=self.tier,
            icon=self.icon,
            target_value=self.target_value,
            created_at=today,
        )


_S, _M, _A = GoalTier.SIMPLE, GoalTier.MODERATE, GoalTier.ADVANCED
_LESSON, _QUESTION, _XP = ActionKind.LESSON_COMPLETED, ActionKind.QUESTION_CORRECT, ActionKind.XP_EARNED
_PERFECT = ActionKind.PERFECT_LESSON

GOAL_POOLS: dict[GoalTier, tuple[GoalTemplate, ...]] = {
    GoalTier.SIMPLE: (
        GoalTemplate("Daily Check-in", "Open the app today", _S, "house.fill", 1, ActionKind.APP_OPENED, latch=True),
        GoalTemplate("First Lesson", "Complete 1 lesson", _S, "play.circle.fill", 1, _LESSON),
        GoalTemplate("Quick XP", "Earn 50 XP", _S, "star.fill", 50, _XP),
        GoalTemplate(
            "Learning Streak", "Maintain your streak", _S, "flame.fill", 1, ActionKind.STREAK_MAINTAINED, latch=True
        ),
    ),
    GoalTier.MODERATE: (
        GoalTemplate("Double Down", "Complete 3 lessons", _M, "list.bullet", 3, _LESSON),
        GoalTemplate("Question Master", "Get 10 questions right", _M, "checkmark.circle.fill", 10, _QUESTION),
        GoalTemplate("XP Hunter", "Earn 150 XP", _M, "target", 150, _XP),
        GoalTemplate("Perfect Streak", "Complete 2 lessons perfectly", _M, "crown.fill", 2, _PERFECT),
    ),
    GoalTier.ADVANCED: (
        GoalTemplate("Perfect Score", "Complete a lesson perfectly", _A, "crown.fill", 1, _PERFECT, latch=True),
        GoalTemplate(
            "Question Streak", "Get 15 questions right in a row", _A, "bolt.fill", 15, _QUESTION, consecutive=True
        ),
        GoalTemplate("XP Champion", "Earn 300 XP", _A, "trophy.fill", 300, _XP),
        GoalTemplate("Module Master", "Complete 5 lessons", _A, "graduationcap.fill", 5, _LESSON),
    ),
}

_TEMPLATES_BY_TITLE = {template.title: template for pool in GOAL_POOLS.values() for template in pool}


class GoalPicker(Protocol):
    """Random source used to pick one template per tier."""

    def choice(self, seq: Sequence[GoalTemplate]) -> GoalTemplate:
        """Return one element of `seq`."""
        ...


class DailyGoalManager:
    """Generates, rotates and advances the three active daily goals."""

    def __init__(self, rng: GoalPicker | None = None) -> None:
        self._rng: GoalPicker = rng if rng is not None else random.Random()

    def generate(self, today: date) -> list[DailyGoal]:
        """Pick one goal per tier, in simple/moderate/advanced order."""
        return [self._rng.choice(GOAL_POOLS[tier]).instantiate(today) for tier in GoalTier]

    def reset_if_new_day(self, state: ProgressState, today: date) -> bool:
        """Replace goals when the last reset was on another day; return whether it did."""
        last_reset = state.last_daily_goal_reset_date
        if last_reset is not None and last_reset == today and has_valid_goal_set(state.active_daily_goals):
            return False

        state.active_daily_goals = self.generate(today)
        state.last_daily_goal_reset_date = today
        state.today_daily_goals_xp = 0
        logger.info("Daily goals reset for %s: %s", today, [goal.title for goal in state.active_daily_goals])
        return True

    def advance(self, state: ProgressState, action: GoalAction) -> list[int]:
        """Apply an action to open goals and return the XP rewards it unlocked.

        Completion bookkeeping (`is_completed`, `total_daily_goals_completed`)
        happens here. Awarding the returned XP, and adding it to
        `today_daily_goals_xp`, is the caller's job.
        """
        rewards: list[int] = []
        for goal in state.active_daily_goals:
            if goal.is_completed:
                continue
            template = _TEMPLATES_BY_TITLE.get(goal.title)
            if template is None:
                continue
            if action.kind is ActionKind.QUESTION_INCORRECT:
                if template.consecutive and goal.current_progress:
                    goal.current_progress = 0
                    logger.debug("Daily goal %s reset by a wrong answer", goal.title)
                continue
            if template.tracks is not action.kind:
                continue

            if template.latch:
                goal.current_progress = max(goal.current_progress, 1)
            elif action.kind is ActionKind.XP_EARNED:
                goal.current_progress += action.amount
            else:
                goal.current_progress += 1

            if goal.current_progress >= goal.target_value:
                goal.is_completed = True
                state.total_daily_goals_completed += 1
                rewards.append(goal.xp_reward)
                logger.info("Daily goal completed: %s (+%d XP)", goal.title, goal.xp_reward)
                if all(item.is_completed for item in state.active_daily_goals):
                    rewards.append(ALL_GOALS_BONUS_XP)
                    logger.info("All daily goals completed (+%d XP bonus)", ALL_GOALS_BONUS_XP)
        return rewards


def has_valid_goal_set(goals: list[DailyGoal]) -> bool:
    """Return whether goals are exactly one per tier."""
    return len(goals) == len(GoalTier) and {goal.tier for goal in goals} == set(GoalTier)
