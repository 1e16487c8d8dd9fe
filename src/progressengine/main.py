"""CLI entrypoint for the learning progress engine."""

from __future__ import annotations

import argparse
from collections.abc import Callable

from .config import get_settings
from .logging_config import configure_logging
from .models import Achievement
from .service import LearnService, LessonResult

InputFn = Callable[[str], str]
PrintFn = Callable[[str], None]
MENU_QUIT_COMMANDS = {"q"}
MENU_BACK_COMMANDS = {"b"}


def _service() -> LearnService:
    """Create app service from environment settings."""
    return LearnService(get_settings())


def run(argv: list[str] | None = None) -> int:
    """Run the CLI application."""
    parser = argparse.ArgumentParser(prog="progressengine", description="Learning progress and gamification")
    parser.add_argument("command", nargs="?", default="play", choices=["play", "status"])
    parser.add_argument("--log-level", default=None, help="Override PROGRESSENGINE_LOG_LEVEL")
    args = parser.parse_args(argv)

    settings = get_settings()
    configure_logging(args.log_level or settings.log_level, settings.log_format)
    if args.command == "status":
        return status_command()
    return play_shell()


def status_command(print_fn: PrintFn = print) -> int:
    """Print a one-shot progress summary."""
    service = _service()
    try:
        _status_flow(service, print_fn)
    finally:
        service.close()
    return 0


def play_shell(input_fn: InputFn = input, print_fn: PrintFn = print) -> int:
    """Run persistent menu-driven shell."""
    service = _service()
    try:
        service.progress.app_opened()
        while True:
            print_fn("\n=== Progress Engine ===")
            state = service.state
            print_fn(f"Level {state.level} | {state.total_xp} XP | streak {state.daily_streak_days} day(s)")
            print_fn("1) Answer correctly")
            print_fn("2) Answer incorrectly")
            print_fn("3) Finish a lesson")
            print_fn("4) Status")
            print_fn("5) Daily goals")
            print_fn("6) Achievements")
            print_fn("7) New session")
            print_fn("q) Quit")
            choice = input_fn("Choose: ").strip().lower()

            if choice == "1":
                points = service.answer(True)
                print_fn(f"Correct. +{points} points (streak {service.state.question_streak}).")
                if service.state.streak_milestone_hit is not None:
                    print_fn(f"Streak milestone: {service.state.streak_milestone_hit} in a row!")
                _print_unlocks(service.progress.last_unlocked, print_fn)
            elif choice == "2":
                service.answer(False)
                print_fn("Incorrect. Question streak reset.")
            elif choice == "3":
                _lesson_flow(service, input_fn, print_fn)
            elif choice == "4":
                _status_flow(service, print_fn)
            elif choice == "5":
                _daily_goals_flow(service, print_fn)
            elif choice == "6":
                _achievements_flow(service, print_fn)
            elif choice == "7":
                service.progress.reset_session()
                print_fn("New session started.")
            elif choice in MENU_QUIT_COMMANDS:
                return 0
            else:
                print_fn("Invalid choice.")
    finally:
        service.close()


def _lesson_flow(service: LearnService, input_fn: InputFn, print_fn: PrintFn) -> None:
    """Pick a lesson and record its score."""
    states = [item for item in service.list_lesson_states() if item.accessible]
    suggested = service.next_lesson()
    print_fn("\n=== Lessons ===")
    for idx, item in enumerate(states, start=1):
        marker = "x" if item.completed else " "
        hint = " (next)" if suggested is not None and item.lesson.id == suggested.id else ""
        print_fn(f"{idx}) [{marker}] {item.lesson.category}: {item.lesson.title}{hint}")
    print_fn("b) Back")
    choice = input_fn("Choose lesson: ").strip().lower()
    if choice in MENU_BACK_COMMANDS:
        return
    if not choice.isdigit() or not (0 < int(choice) <= len(states)):
        print_fn("Invalid choice.")
        return
    lesson = states[int(choice) - 1].lesson

    raw_score = input_fn("Score as correct/total (e.g. 4/5): ").strip()
    try:
        correct_raw, total_raw = raw_score.split("/", 1)
        correct, total = int(correct_raw), int(total_raw)
    except ValueError:
        print_fn("Invalid score.")
        return
    if total <= 0 or not 0 <= correct <= total:
        print_fn("Invalid score.")
        return
    result = service.finish_lesson(lesson.id, correct, total)
    _print_lesson_result(result, print_fn)


def _print_lesson_result(result: LessonResult, print_fn: PrintFn) -> None:
    print_fn(f"Lesson finished: {result.correct}/{result.total}, +{result.xp_earned} XP.")
    if result.perfect:
        print_fn("Perfect lesson!")
    elif result.completed:
        print_fn("Lesson completed.")
    else:
        print_fn("Score at least 75% to complete this lesson.")
    _print_unlocks(result.unlocked, print_fn)


def _print_unlocks(unlocked: list[Achievement] | tuple[Achievement, ...], print_fn: PrintFn) -> None:
    for achievement in unlocked:
        print_fn(f"Achievement unlocked: {achievement.title} (+{achievement.xp_reward} XP)")


def _status_flow(service: LearnService, print_fn: PrintFn) -> None:
    """Print headline progress and per-category completion."""
    summary = service.status()
    print_fn("\n=== Status ===")
    print_fn(f"Level: {summary.level} ({summary.level_progress}/{summary.level_span} XP into level)")
    print_fn(f"Total XP: {summary.total_xp}")
    print_fn(f"Daily streak: {summary.daily_streak_days} (longest {summary.longest_streak_days})")
    print_fn(f"Question streak: {summary.question_streak} (best {summary.best_question_streak})")
    print_fn(f"Points: {summary.session_points} this session, {summary.total_points} total")
    print_fn(f"Lessons completed: {summary.completed_lessons} ({summary.perfect_lessons} perfect)")
    print_fn(f"Achievements: {summary.achievements_unlocked}/{summary.achievements_total}")
    print_fn(f"Pro: {'yes' if summary.is_pro_user else 'no'}")

    rows = service.category_progress()
    if not rows:
        return
    width = max(len("Category"), max(len(row.category) for row in rows))
    print_fn(f"{'Category':<{width}} Done")
    print_fn(f"{'-' * width} ----")
    for row in rows:
        print_fn(f"{row.category:<{width}} {row.completed_lessons}/{row.total_lessons}")


def _daily_goals_flow(service: LearnService, print_fn: PrintFn) -> None:
    """Print today's goals."""
    goals = service.daily_goals()
    print_fn("\n=== Daily Goals ===")
    for goal in goals:
        status = "done" if goal.is_completed else f"{goal.current_progress}/{goal.target_value}"
        print_fn(f"[{goal.tier.value}] {goal.title}: {goal.description} ({status}, +{goal.xp_reward} XP)")
    print_fn(f"Goal XP today: {service.state.today_daily_goals_xp}")


def _achievements_flow(service: LearnService, print_fn: PrintFn) -> None:
    """Print the achievement catalog with unlock markers."""
    print_fn("\n=== Achievements ===")
    for achievement, unlocked in service.achievements():
        marker = "x" if unlocked else " "
        print_fn(f"[{marker}] {achievement.title} ({achievement.rarity.value}, {achievement.xp_reward} XP)")


def main_entry() -> None:
    """Console script entrypoint."""
    raise SystemExit(run())


if __name__ == "__main__":  # pragma: no cover
    main_entry()
