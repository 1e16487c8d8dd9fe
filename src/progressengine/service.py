"""Application service wiring settings, storage and the progress store together."""

from __future__ import annotations

from dataclasses import dataclass

from .achievements import ACHIEVEMENTS
from .clock import Clock, SystemClock
from .config import Settings, get_settings
from .content_loader import StaticLessonCatalog, load_catalog
from .daily_goals import DailyGoalManager
from .level_curve import current_level_progress, xp_to_next_level
from .models import Achievement, DailyGoal, Lesson, ProgressState
from .persistence import PersistenceAdapter
from .progress import ProgressStore
from .storage import BlobStore

FREE_LESSONS_PER_CATEGORY = 2
COMPLETION_RATIO = 0.75


@dataclass(frozen=True)
class LessonState:
    """Lesson availability for the current learner."""

    lesson: Lesson
    accessible: bool
    completed: bool


@dataclass(frozen=True)
class CategoryProgress:
    """Per-category completion summary."""

    category: str
    total_lessons: int
    completed_lessons: int

    @property
    def is_complete(self) -> bool:
        return self.total_lessons > 0 and self.completed_lessons >= self.total_lessons


@dataclass(frozen=True)
class LessonResult:
    """Outcome of finishing one lesson attempt."""

    lesson_id: str
    correct: int
    total: int
    xp_earned: int
    completed: bool
    perfect: bool
    unlocked: tuple[Achievement, ...]


@dataclass(frozen=True)
class StatusSummary:
    """Headline numbers for status screens."""

    level: int
    total_xp: int
    level_progress: int
    level_span: int
    daily_streak_days: int
    longest_streak_days: int
    question_streak: int
    best_question_streak: int
    session_points: int
    total_points: int
    completed_lessons: int
    perfect_lessons: int
    achievements_unlocked: int
    achievements_total: int
    is_pro_user: bool


class LearnService:
    """Coordinates the lesson catalog and learner progress."""

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        catalog: StaticLessonCatalog | None = None,
        clock: Clock | None = None,
        goals: DailyGoalManager | None = None,
    ) -> None:
        """Open storage and load progress described by `settings`."""
        self.settings = settings if settings is not None else get_settings()
        self.catalog = catalog if catalog is not None else load_catalog()
        self.clock: Clock = clock if clock is not None else SystemClock()
        backend = BlobStore(self.settings.db_path)
        self.persistence = PersistenceAdapter(
            backend,
            debounce_seconds=self.settings.save_debounce_seconds,
            enabled=not self.settings.skip_save,
        )
        self.progress = ProgressStore.open(self.persistence, catalog=self.catalog, clock=self.clock, goals=goals)
        self._closed = False

    @property
    def state(self) -> ProgressState:
        """Live learner state."""
        return self.progress.state

    def status(self) -> StatusSummary:
        """Return headline progress numbers."""
        state = self.progress.state
        return StatusSummary(
            level=state.level,
            total_xp=state.total_xp,
            level_progress=current_level_progress(state.total_xp),
            level_span=xp_to_next_level(state.level),
            daily_streak_days=state.daily_streak_days,
            longest_streak_days=state.longest_streak_days,
            question_streak=state.question_streak,
            best_question_streak=state.best_question_streak,
            session_points=state.session_points,
            total_points=state.total_points,
            completed_lessons=len(state.completed_lesson_ids),
            perfect_lessons=state.perfect_lessons,
            achievements_unlocked=len(state.unlocked_achievement_ids),
            achievements_total=len(ACHIEVEMENTS),
            is_pro_user=state.is_pro_user,
        )

    def can_access_lesson(self, lesson_id: str) -> bool:
        """Return whether the learner may open a lesson.

        The first lesson of each category is always open and the second opens
        once the first is completed. Later lessons also need pro access.
        """
        lesson = self.catalog.get(lesson_id)
        if lesson is None:
            return False
        ordered = self.catalog.lessons_in_category(lesson.category)
        index = next(idx for idx, item in enumerate(ordered) if item.id == lesson_id)
        if index == 0:
            return True
        previous_done = ordered[index - 1].id in self.state.completed_lesson_ids
        if index < FREE_LESSONS_PER_CATEGORY:
            return previous_done
        return self.state.is_pro_user and previous_done

    def list_lesson_states(self, category: str | None = None) -> list[LessonState]:
        """Return lessons in catalog order with access and completion flags."""
        lessons = self.catalog.lessons() if category is None else self.catalog.lessons_in_category(category)
        completed = self.state.completed_lesson_ids
        return [
            LessonState(lesson=lesson, accessible=self.can_access_lesson(lesson.id), completed=lesson.id in completed)
            for lesson in lessons
        ]

    def category_progress(self) -> list[CategoryProgress]:
        """Return completion counts for every category."""
        completed = self.state.completed_lesson_ids
        summaries: list[CategoryProgress] = []
        for category in self.catalog.categories():
            lessons = self.catalog.lessons_in_category(category)
            summaries.append(
                CategoryProgress(
                    category=category,
                    total_lessons=len(lessons),
                    completed_lessons=sum(1 for lesson in lessons if lesson.id in completed),
                )
            )
        return summaries

    def next_lesson(self) -> Lesson | None:
        """Return the next accessible, not yet completed lesson.

        The search starts after the last completed lesson and wraps around
        the catalog.
        """
        lessons = list(self.catalog.lessons())
        if not lessons:
            return None
        start = 0
        last_id = self.state.last_lesson_id
        if last_id is not None:
            for idx, lesson in enumerate(lessons):
                if lesson.id == last_id:
                    start = idx + 1
                    break
        completed = self.state.completed_lesson_ids
        for offset in range(len(lessons)):
            lesson = lessons[(start + offset) % len(lessons)]
            if lesson.id not in completed and self.can_access_lesson(lesson.id):
                return lesson
        return None

    def answer(self, correct: bool) -> int:
        """Record one answer; return points earned (0 when incorrect)."""
        if correct:
            return self.progress.handle_correct_answer()
        self.progress.handle_incorrect_answer()
        return 0

    def finish_lesson(self, lesson_id: str, correct: int, total: int) -> LessonResult:
        """Award lesson XP and record completion for one finished attempt.

        XP scales from half the lesson reward at 0% to the full reward at
        100%. The lesson counts as completed from 75% and as perfect at 100%.
        Raises `ValueError` for a score outside 0 <= correct <= total, total > 0.
        """
        lesson = self.catalog.get(lesson_id)
        if lesson is None:
            raise KeyError(lesson_id)
        if total <= 0 or not 0 <= correct <= total:
            raise ValueError(f"Invalid lesson score {correct}/{total}.")
        ratio = correct / total
        earned = int(lesson.xp_reward * (0.5 + 0.5 * ratio))

        unlocked: list[Achievement] = []
        self.progress.award_xp(earned)
        unlocked.extend(self.progress.last_unlocked)
        completed = ratio >= COMPLETION_RATIO
        if completed:
            self.progress.mark_lesson_completed(lesson_id)
            unlocked.extend(self.progress.last_unlocked)
        perfect = correct == total
        if perfect:
            self.progress.record_perfect_lesson()
            unlocked.extend(self.progress.last_unlocked)
        return LessonResult(
            lesson_id=lesson_id,
            correct=correct,
            total=total,
            xp_earned=earned,
            completed=completed,
            perfect=perfect,
            unlocked=tuple(unlocked),
        )

    def daily_goals(self) -> list[DailyGoal]:
        """Return today's goals, rolling them over first if the day changed."""
        self.progress.check_and_reset_daily_goals()
        return list(self.state.active_daily_goals)

    def achievements(self) -> list[tuple[Achievement, bool]]:
        """Return every achievement with its unlocked flag."""
        unlocked = self.state.unlocked_achievement_ids
        return [(achievement, achievement.id in unlocked) for achievement in ACHIEVEMENTS]

    def close(self) -> None:
        """Flush pending progress and close resources."""
        if self._closed:
            return
        self._closed = True
        self.progress.close()

    def __del__(self) -> None:  # pragma: no cover
        """Best-effort cleanup for test/process teardown."""
        try:
            self.close()
        except Exception:
            pass
