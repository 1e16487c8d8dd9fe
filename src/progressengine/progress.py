"""Progress aggregate: the single writer for XP, streaks, goals and achievements."""

from __future__ import annotations

import copy
import logging
from collections import deque
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import date

from .achievements import ACHIEVEMENTS, category_complete, evaluate_achievements
from .clock import Clock, SystemClock
from .daily_goals import DailyGoalManager, GoalAction
from .events import (
    AppOpened,
    AwardXP,
    CorrectAnswer,
    IncorrectAnswer,
    LessonCompleted,
    PerfectLesson,
    ProgressEvent,
    SessionReset,
)
from .level_curve import current_level_progress, level_for, xp_to_next_level
from .models import THEMES, Achievement, LessonCatalog, ProgressState
from .persistence import PersistenceAdapter
from .scoring import is_streak_milestone, points_for_streak
from .streaks import advance_daily_streak

logger = logging.getLogger(__name__)

Listener = Callable[[ProgressState], None]

PREFERENCE_FIELDS = ("username", "selected_theme", "notifications_enabled", "sound_enabled", "haptics_enabled")


class ProgressStore:
    """Owns one learner's `ProgressState` and applies learning events to it.

    Every public mutator runs to completion on the caller's thread. XP from
    goal completions and achievement unlocks is queued and drained inside the
    same call, so nested rewards never recurse back into goal or achievement
    processing. After each outermost event the state is handed to the
    persistence adapter and to subscribed listeners.
    """

    def __init__(
        self,
        state: ProgressState | None = None,
        *,
        catalog: LessonCatalog,
        clock: Clock | None = None,
        goals: DailyGoalManager | None = None,
        persistence: PersistenceAdapter | None = None,
        achievements: tuple[Achievement, ...] = ACHIEVEMENTS,
    ) -> None:
        self._state = state if state is not None else ProgressState()
        self._catalog = catalog
        self._clock: Clock = clock if clock is not None else SystemClock()
        self._goals = goals if goals is not None else DailyGoalManager()
        self._persistence = persistence
        self._achievements = achievements
        self._listeners: list[Listener] = []
        self._xp_queue: deque[int] = deque()
        self._draining = False
        self._depth = 0
        self.last_unlocked: list[Achievement] = []

    @classmethod
    def open(
        cls,
        persistence: PersistenceAdapter | None,
        *,
        catalog: LessonCatalog,
        clock: Clock | None = None,
        goals: DailyGoalManager | None = None,
    ) -> ProgressStore:
        """Load persisted progress (or first-run defaults) and ensure daily goals exist."""
        state = persistence.load() if persistence is not None else None
        if state is None:
            state = ProgressState()
        store = cls(state, catalog=catalog, clock=clock, goals=goals, persistence=persistence)
        if not state.active_daily_goals or state.last_daily_goal_reset_date is None:
            store.check_and_reset_daily_goals()
        return store

    @property
    def state(self) -> ProgressState:
        """Live aggregate; treat as read-only outside the store."""
        return self._state

    @property
    def today(self) -> date:
        return self._clock.today()

    @property
    def xp_to_next_level(self) -> int:
        """XP span of the current level."""
        return xp_to_next_level(self._state.level)

    @property
    def current_level_progress(self) -> int:
        """XP earned inside the current level."""
        return current_level_progress(self._state.total_xp)

    def snapshot(self) -> ProgressState:
        """Return a deep copy safe to hand to other threads."""
        return copy.deepcopy(self._state)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener; returns a callable that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def award_xp(self, amount: int) -> int:
        """Award XP and return the amount actually applied."""
        if isinstance(amount, bool) or not isinstance(amount, int):
            logger.warning("Ignoring non-integer XP amount %r", amount)
            return 0
        awarded = max(0, amount)
        if awarded == 0:
            return 0
        with self._mutation("award_xp"):
            self._award(awarded)
        return awarded

    def handle_correct_answer(self) -> int:
        """Extend the question streak, award its points and return them."""
        with self._mutation("correct_answer"):
            state = self._state
            state.question_streak += 1
            state.best_question_streak = max(state.best_question_streak, state.question_streak)
            state.has_attempted_question = True
            points = points_for_streak(state.question_streak)
            state.session_points += points
            state.total_points += points
            self._award(points)
            self._advance_goals(GoalAction.question_correct())
            if is_streak_milestone(state.question_streak):
                state.streak_milestone_hit = state.question_streak
                logger.info("Question streak milestone: %d", state.question_streak)
            else:
                state.streak_milestone_hit = None
        logger.debug("Correct answer: streak=%d points=%d", state.question_streak, points)
        return points

    def handle_incorrect_answer(self) -> None:
        """Break the question streak; points already earned are kept."""
        with self._mutation("incorrect_answer"):
            self._state.question_streak = 0
            self._state.streak_milestone_hit = None
            self._state.has_attempted_question = True
            self._advance_goals(GoalAction.question_incorrect())

    def mark_lesson_completed(self, lesson_id: str) -> bool:
        """Record a completed lesson; return whether it was new."""
        with self._mutation("lesson_completed"):
            state = self._state
            is_new = lesson_id not in state.completed_lesson_ids
            state.completed_lesson_ids.add(lesson_id)
            state.last_lesson_id = lesson_id
            lesson = self._catalog.get(lesson_id)
            if lesson is None:
                logger.debug("Completed lesson %s is not in the catalog", lesson_id)
            elif lesson.category not in state.completed_categories and category_complete(
                state, self._catalog, lesson.category
            ):
                state.completed_categories.add(lesson.category)
                logger.info("Category completed: %s", lesson.category)
            self._advance_goals(GoalAction.lesson_completed())
            self._evaluate_achievements()
        return is_new

    def record_perfect_lesson(self) -> None:
        """Count a lesson finished with every answer correct."""
        with self._mutation("perfect_lesson"):
            self._state.perfect_lessons += 1
            self._advance_goals(GoalAction.perfect_lesson())
            self._evaluate_achievements()

    def app_opened(self) -> None:
        """Roll daily goals over if needed and credit the check-in."""
        with self._mutation("app_opened"):
            self._goals.reset_if_new_day(self._state, self.today)
            self._advance_goals(GoalAction.app_opened())

    def update_daily_goal_progress(self, action: GoalAction) -> None:
        """Feed one action to the active daily goals."""
        with self._mutation("goal_progress"):
            self._advance_goals(action)

    def check_and_reset_daily_goals(self) -> bool:
        """Regenerate daily goals when the day has changed; return whether it did."""
        with self._mutation("goal_reset"):
            changed = self._goals.reset_if_new_day(self._state, self.today)
        return changed

    def reset_session(self) -> None:
        """Start a new question session."""
        with self._mutation("session_reset"):
            self._state.question_streak = 0
            self._state.session_points = 0
            self._state.streak_milestone_hit = None

    def upgrade_to_pro(self, expiry: date) -> None:
        """Record a purchase valid until `expiry`."""
        with self._mutation("upgrade"):
            self._state.pro_expiry = expiry
            self._state.is_pro_user = expiry > self.today
        logger.info("Pro access recorded until %s", expiry)

    def restore_purchases(self) -> bool:
        """Re-derive pro access from the stored expiry; return the result."""
        with self._mutation("restore"):
            expiry = self._state.pro_expiry
            self._state.is_pro_user = expiry is not None and expiry > self.today
        return self._state.is_pro_user

    def update_preferences(self, **changes: object) -> None:
        """Update learner preferences; unknown keys and bad values are ignored."""
        with self._mutation("preferences"):
            for name, value in changes.items():
                if name not in PREFERENCE_FIELDS:
                    logger.warning("Ignoring unknown preference %r", name)
                    continue
                if name == "selected_theme" and value not in THEMES:
                    logger.warning("Ignoring unknown theme %r", value)
                    continue
                if name == "username":
                    if not isinstance(value, str):
                        logger.warning("Ignoring non-string username %r", value)
                        continue
                    setattr(self._state, name, value.strip())
                elif name == "selected_theme":
                    setattr(self._state, name, value)
                elif isinstance(value, bool):
                    setattr(self._state, name, value)
                else:
                    logger.warning("Ignoring non-boolean value %r for %s", value, name)

    def apply(self, event: ProgressEvent) -> object:
        """Dispatch one event dataclass to its handler and return its result."""
        if isinstance(event, AwardXP):
            return self.award_xp(event.amount)
        if isinstance(event, CorrectAnswer):
            return self.handle_correct_answer()
        if isinstance(event, IncorrectAnswer):
            return self.handle_incorrect_answer()
        if isinstance(event, LessonCompleted):
            return self.mark_lesson_completed(event.lesson_id)
        if isinstance(event, PerfectLesson):
            return self.record_perfect_lesson()
        if isinstance(event, AppOpened):
            return self.app_opened()
        if isinstance(event, SessionReset):
            return self.reset_session()
        raise TypeError(f"Unsupported progress event: {event!r}")

    def flush(self) -> bool:
        """Write any pending snapshot now."""
        if self._persistence is None:
            return True
        return self._persistence.flush()

    def close(self) -> None:
        """Flush and release persistence resources."""
        if self._persistence is not None:
            self._persistence.close()

    @contextmanager
    def _mutation(self, event: str) -> Iterator[None]:
        """Wrap one public event; only the outermost one saves and notifies."""
        if self._depth == 0:
            self.last_unlocked = []
        self._depth += 1
        try:
            yield
        finally:
            self._depth -= 1
        if self._depth == 0:
            logger.debug("Applied %s: xp=%d level=%d", event, self._state.total_xp, self._state.level)
            if self._persistence is not None:
                self._persistence.schedule_save(self._state)
            self._notify()

    def _award(self, amount: int) -> None:
        self._xp_queue.append(amount)
        if self._draining:
            return
        self._draining = True
        try:
            while self._xp_queue:
                self._apply_xp(self._xp_queue.popleft())
        finally:
            self._draining = False

    def _apply_xp(self, amount: int) -> None:
        state = self._state
        previous_level = state.level
        state.total_xp += amount
        state.level = level_for(state.total_xp)
        if state.level > previous_level:
            logger.info("Level up: %d -> %d", previous_level, state.level)

        if advance_daily_streak(state, self.today):
            logger.info("Daily streak now %d day(s)", state.daily_streak_days)
        self._advance_goals(GoalAction.streak_maintained())
        self._advance_goals(GoalAction.xp_earned(amount))
        self._evaluate_achievements()

    def _advance_goals(self, action: GoalAction) -> None:
        for reward in self._goals.advance(self._state, action):
            self._state.today_daily_goals_xp += reward
            self._award(reward)

    def _evaluate_achievements(self) -> None:
        for achievement in evaluate_achievements(self._state, self._catalog, self._achievements):
            self.last_unlocked.append(achievement)
            self._award(achievement.xp_reward)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception:
                logger.exception("Progress listener %r failed", listener)
