"""Achievement catalog and idempotent unlock evaluation."""

from __future__ import annotations

import logging

from .models import Achievement, LessonCatalog, ProgressState, Rarity, Requirement

logger = logging.getLogger(__name__)


def _lessons_at_least(count: int) -> Requirement:
    return lambda state, _catalog: len(state.completed_lesson_ids) >= count


def _xp_at_least(amount: int) -> Requirement:
    return lambda state, _catalog: state.total_xp >= amount


def _streak_at_least(days: int) -> Requirement:
    return lambda state, _catalog: state.daily_streak_days >= days


def _perfect_at_least(count: int) -> Requirement:
    return lambda state, _catalog: state.perfect_lessons >= count


def _categories_complete(*categories: str) -> Requirement:
    def requirement(state: ProgressState, catalog: LessonCatalog) -> bool:
        return all(category_complete(state, catalog, category) for category in categories)

    return requirement


def category_complete(state: ProgressState, catalog: LessonCatalog, category: str) -> bool:
    """Return whether every lesson of a non-empty category is completed."""
    lessons = catalog.lessons_in_category(category)
    return bool(lessons) and all(lesson.id in state.completed_lesson_ids for lesson in lessons)


_C, _R, _E, _L = Rarity.COMMON, Rarity.RARE, Rarity.EPIC, Rarity.LEGENDARY

# "Power Hour" and "Deal Starter" keep their lifetime-count rules; there is no
# per-day lesson history or lesson tagging to check them against.
ACHIEVEMENTS: tuple[Achievement, ...] = (
    Achievement("first-deal", "First Deal", "Complete your first lesson", "star.fill", _C, 50, _lessons_at_least(1)),
    Achievement("early-bird", "Early Bird", "Study 3 days in a row", "sunrise.fill", _C, 100, _streak_at_least(3)),
    Achievement("quick-learner", "Quick Learner", "Complete 5 lessons", "bolt.fill", _C, 150, _lessons_at_least(5)),
    Achievement("rising-star", "Rising Star", "Earn 500 XP", "star.circle.fill", _C, 200, _xp_at_least(500)),
    Achievement(
        "power-hour", "Power Hour", "Complete 3 lessons in one day", "clock.fill", _R, 250, _lessons_at_least(3)
    ),
    Achievement(
        "deal-starter", "Deal Starter", "Complete your first IB lesson", "building.2.fill", _R, 200, _lessons_at_least(1)
    ),
    Achievement("deal-flow", "Deal Flow", "Complete 15 lessons", "doc.text.fill", _R, 400, _lessons_at_least(15)),
    Achievement("week-warrior", "Week Warrior", "Maintain a 7-day streak", "flame.fill", _R, 500, _streak_at_least(7)),
    Achievement("pitch-perfect", "Pitch Perfect", "Score 90%+ on 5 lessons", "target", _R, 600, _perfect_at_least(5)),
    Achievement(
        "knowledge-builder", "Knowledge Builder", "Earn 2,500 XP", "brain.head.profile", _E, 700, _xp_at_least(2500)
    ),
    Achievement(
        "dcf-master",
        "DCF Master",
        "Complete all DCF lessons",
        "chart.line.uptrend.xyaxis",
        _E,
        800,
        _categories_complete("DCF Fundamentals"),
    ),
    Achievement(
        "valuation-ace",
        "Valuation Ace",
        "Master all valuation lessons",
        "chart.line.uptrend.xyaxis",
        _E,
        900,
        _categories_complete("Valuation Techniques"),
    ),
    Achievement(
        "investment-banker",
        "Investment Banker",
        "Complete 50 lessons",
        "graduationcap.fill",
        _E,
        1200,
        _lessons_at_least(50),
    ),
    Achievement(
        "marathon-runner", "Marathon Runner", "Maintain a 30-day streak", "calendar", _L, 1500, _streak_at_least(30)
    ),
    Achievement(
        "elite-performer",
        "Elite Performer",
        "Score 95%+ on 20 lessons",
        "checkmark.seal.fill",
        _L,
        1800,
        _perfect_at_least(20),
    ),
    Achievement("xp-legend", "XP Legend", "Earn 10,000 total XP", "star.circle.fill", _L, 2000, _xp_at_least(10_000)),
    Achievement(
        "wall-street-ready",
        "Wall Street Ready",
        "Complete all M&A and LBO lessons",
        "building.2.fill",
        _L,
        2500,
        _categories_complete("M&A Fundamentals", "LBO Fundamentals"),
    ),
    Achievement(
        "perfect-record",
        "Perfect Record",
        "Get 100% on 15 lessons",
        "checkmark.circle.fill",
        _L,
        3000,
        _perfect_at_least(15),
    ),
)

ACHIEVEMENTS_BY_ID = {achievement.id: achievement for achievement in ACHIEVEMENTS}


def evaluate_achievements(
    state: ProgressState,
    catalog: LessonCatalog,
    achievements: tuple[Achievement, ...] = ACHIEVEMENTS,
) -> list[Achievement]:
    """Unlock every achievement whose requirement now holds.

    Ids are added to `state.unlocked_achievement_ids`; the caller awards the
    returned achievements' XP. Already unlocked ids are skipped, so running
    this again on unchanged state unlocks nothing.
    """
    unlocked: list[Achievement] = []
    for achievement in achievements:
        if achievement.id in state.unlocked_achievement_ids:
            continue
        if not achievement.requirement(state, catalog):
            continue
        state.unlocked_achievement_ids.add(achievement.id)
        unlocked.append(achievement)
        logger.info("Achievement unlocked: %s (+%d XP)", achievement.title, achievement.xp_reward)
    return unlocked
