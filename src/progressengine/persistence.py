"""Serialize progress state and write it behind the event thread."""

from __future__ import annotations

import json
import logging
import math
import sqlite3
import threading
from datetime import date, datetime
from typing import Protocol, cast

from .daily_goals import has_valid_goal_set
from .level_curve import level_for
from .models import THEMES, DailyGoal, GoalTier, ProgressState

logger = logging.getLogger(__name__)

STATE_KEY = "progress_state"
FORMAT_VERSION = 2


class BlobBackend(Protocol):
    """Minimal storage surface used by the adapter."""

    def read(self, key: str) -> str | None: ...

    def write(self, key: str, payload: str) -> None: ...

    def close(self) -> None: ...


def encode_state(state: ProgressState) -> str:
    """Return the JSON blob for one state snapshot."""
    payload = {
        "format_version": FORMAT_VERSION,
        "total_xp": state.total_xp,
        "level": state.level,
        "daily_streak_days": state.daily_streak_days,
        "last_practice_date": _date_to_str(state.last_practice_date),
        "longest_streak_days": state.longest_streak_days,
        "best_question_streak": state.best_question_streak,
        "total_points": state.total_points,
        "completed_lesson_ids": sorted(state.completed_lesson_ids),
        "completed_categories": sorted(state.completed_categories),
        "last_lesson_id": state.last_lesson_id,
        "perfect_lessons": state.perfect_lessons,
        "unlocked_achievement_ids": sorted(state.unlocked_achievement_ids),
        "daily_goals": [_goal_to_dict(goal) for goal in state.active_daily_goals],
        "last_daily_goal_reset_date": _date_to_str(state.last_daily_goal_reset_date),
        "today_daily_goals_xp": state.today_daily_goals_xp,
        "total_daily_goals_completed": state.total_daily_goals_completed,
        "is_pro_user": state.is_pro_user,
        "pro_expiry": _date_to_str(state.pro_expiry),
        "username": state.username,
        "selected_theme": state.selected_theme,
        "notifications_enabled": state.notifications_enabled,
        "sound_enabled": state.sound_enabled,
        "haptics_enabled": state.haptics_enabled,
        "has_attempted_question": state.has_attempted_question,
    }
    return json.dumps(payload, sort_keys=True)


def decode_state(raw: str) -> ProgressState:
    """Rebuild state from a JSON blob, defaulting missing or malformed fields.

    Raises `ValueError` only when the blob is not a JSON object at all.
    Session-scoped counters always start at zero and `level` is recomputed
    from XP rather than trusted.
    """
    raw_obj: object = json.loads(raw)
    if not isinstance(raw_obj, dict):
        raise ValueError("Progress blob root must be a JSON object.")
    data = cast(dict[str, object], raw_obj)

    version = _coerce_int(data.get("format_version"), default=0) or 0
    if version > FORMAT_VERSION:
        logger.warning(
            "Progress blob format %d is newer than supported %d; reading known fields", version, FORMAT_VERSION
        )

    total_xp = _non_negative(data.get("total_xp"))
    goals = _decode_goals(data.get("daily_goals"))
    reset_date = _coerce_date(data.get("last_daily_goal_reset_date"))
    if goals and not has_valid_goal_set(goals):
        logger.warning("Discarding persisted daily goals that are not one per tier")
        goals = []
        reset_date = None

    theme = data.get("selected_theme")
    streak_days = _non_negative(data.get("daily_streak_days"))
    return ProgressState(
        total_xp=total_xp,
        level=level_for(total_xp),
        daily_streak_days=streak_days,
        last_practice_date=_coerce_date(data.get("last_practice_date")),
        longest_streak_days=max(streak_days, _non_negative(data.get("longest_streak_days"))),
        best_question_streak=_non_negative(data.get("best_question_streak")),
        total_points=_non_negative(data.get("total_points")),
        completed_lesson_ids=_coerce_str_set(data.get("completed_lesson_ids")),
        completed_categories=_coerce_str_set(data.get("completed_categories")),
        last_lesson_id=_coerce_optional_str(data.get("last_lesson_id")),
        perfect_lessons=_non_negative(data.get("perfect_lessons")),
        unlocked_achievement_ids=_coerce_str_set(data.get("unlocked_achievement_ids")),
        active_daily_goals=goals,
        last_daily_goal_reset_date=reset_date,
        today_daily_goals_xp=_non_negative(data.get("today_daily_goals_xp")),
        total_daily_goals_completed=_non_negative(data.get("total_daily_goals_completed")),
        is_pro_user=_coerce_bool(data.get("is_pro_user"), default=False),
        pro_expiry=_coerce_date(data.get("pro_expiry")),
        username=_coerce_optional_str(data.get("username")) or "",
        selected_theme=theme if isinstance(theme, str) and theme in THEMES else "alpha",
        notifications_enabled=_coerce_bool(data.get("notifications_enabled"), default=True),
        sound_enabled=_coerce_bool(data.get("sound_enabled"), default=True),
        haptics_enabled=_coerce_bool(data.get("haptics_enabled"), default=True),
        has_attempted_question=_coerce_bool(data.get("has_attempted_question"), default=False),
    )


class PersistenceAdapter:
    """Debounced, latest-wins writer for state snapshots.

    `schedule_save` encodes the snapshot on the caller's thread, so the blob
    always reflects state at or after the triggering event. A background
    thread waits for a quiet period and writes only the newest pending blob.
    Write failures are logged and dropped; the next event schedules a fresh
    snapshot.
    """

    def __init__(
        self,
        backend: BlobBackend | None,
        *,
        key: str = STATE_KEY,
        debounce_seconds: float = 0.2,
        enabled: bool = True,
    ) -> None:
        self._backend = backend
        self._key = key
        self._debounce = max(0.0, debounce_seconds)
        self.enabled = enabled and backend is not None
        self._cond = threading.Condition()
        self._io_lock = threading.Lock()
        self._pending: str | None = None
        self._generation = 0
        self._closed = False
        self._worker: threading.Thread | None = None
        self.failed_writes = 0

    def load(self) -> ProgressState | None:
        """Return the persisted state, or None when absent or unreadable."""
        if self._backend is None:
            return None
        try:
            raw = self._backend.read(self._key)
        except sqlite3.Error:
            logger.exception("Could not read persisted progress; starting fresh")
            return None
        if raw is None:
            logger.info("No persisted progress found; starting fresh")
            return None
        try:
            return decode_state(raw)
        except (ValueError, RecursionError):
            logger.warning("Persisted progress is corrupt; starting fresh", exc_info=True)
            return None

    def schedule_save(self, state: ProgressState) -> None:
        """Queue a snapshot of `state` for writing."""
        if not self.enabled or self._closed:
            return
        try:
            payload = encode_state(state)
        except (TypeError, ValueError):
            self.failed_writes += 1
            logger.exception("Could not serialize progress; will retry on next change")
            return
        with self._cond:
            self._generation += 1
            self._pending = payload
            self._ensure_worker()
            self._cond.notify_all()

    @property
    def has_pending(self) -> bool:
        """Return whether a snapshot is waiting to be written."""
        with self._cond:
            return self._pending is not None

    def flush(self) -> bool:
        """Write any pending snapshot now; return False if the write failed."""
        return self._write_pending()

    def close(self) -> None:
        """Flush, stop the writer thread and release the backend."""
        self._write_pending()
        with self._cond:
            self._closed = True
            self._cond.notify_all()
        worker = self._worker
        if worker is not None and worker is not threading.current_thread():
            worker.join(timeout=5)
        if self._backend is not None:
            self._backend.close()

    def _ensure_worker(self) -> None:
        if self._worker is None or not self._worker.is_alive():
            self._worker = threading.Thread(target=self._run, name="progress-writer", daemon=True)
            self._worker.start()

    def _run(self) -> None:
        while True:
            with self._cond:
                while self._pending is None and not self._closed:
                    self._cond.wait()
                if self._closed:
                    return
                seen = self._generation
                while not self._closed:
                    self._cond.wait(timeout=self._debounce)
                    if self._generation == seen:
                        break
                    seen = self._generation
            self._write_pending()

    def _write_pending(self) -> bool:
        with self._io_lock:
            with self._cond:
                payload = self._pending
                generation = self._generation
                self._pending = None
            if payload is None or self._backend is None:
                return True
            try:
                self._backend.write(self._key, payload)
            except (sqlite3.Error, OSError):
                self.failed_writes += 1
                logger.exception("Saving progress failed; will retry on next change")
                return False
            logger.debug("Saved progress snapshot generation %d", generation)
            return True


def _goal_to_dict(goal: DailyGoal) -> dict[str, object]:
    return {
        "id": goal.id,
        "title": goal.title,
        "description": goal.description,
        "tier": goal.tier.value,
        "icon": goal.icon,
        "target_value": goal.target_value,
        "current_progress": goal.current_progress,
        "is_completed": goal.is_completed,
        "created_at": _date_to_str(goal.created_at),
    }


def _decode_goals(raw: object) -> list[DailyGoal]:
    """Normalize raw daily goal rows, skipping unusable entries."""
    if not isinstance(raw, list):
        return []
    goals: list[DailyGoal] = []
    for item in cast(list[object], raw):
        if not isinstance(item, dict):
            continue
        row = cast(dict[str, object], item)
        goal_id = row.get("id")
        title = row.get("title")
        tier_value = row.get("tier")
        if not isinstance(goal_id, str) or not isinstance(title, str) or not isinstance(tier_value, str):
            continue
        try:
            tier = GoalTier(tier_value.lower())
        except ValueError:
            continue
        target = _coerce_int(row.get("target_value"), default=0) or 0
        if target <= 0:
            continue
        progress = _non_negative(row.get("current_progress"))
        description = row.get("description")
        icon = row.get("icon")
        goals.append(
            DailyGoal(
                id=goal_id,
                title=title,
                description=description if isinstance(description, str) else "",
                tier=tier,
                icon=icon if isinstance(icon, str) else "",
                target_value=target,
                current_progress=progress,
                is_completed=_coerce_bool(row.get("is_completed"), default=False) or progress >= target,
                created_at=_coerce_date(row.get("created_at")),
            )
        )
    return goals


def _date_to_str(value: date | None) -> str | None:
    return None if value is None else value.isoformat()


def _coerce_date(value: object) -> date | None:
    """Accept ISO dates or datetimes; anything else is None."""
    if not isinstance(value, str) or not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(value).date()
    except ValueError:
        return None


def _coerce_int(value: object, default: int | None = None) -> int | None:
    """Coerce value to int for blob normalization."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else default
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return default
    return default


def _non_negative(value: object) -> int:
    return max(0, _coerce_int(value, default=0) or 0)


def _coerce_bool(value: object, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    return default


def _coerce_optional_str(value: object) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _coerce_str_set(value: object) -> set[str]:
    if not isinstance(value, list):
        return set()
    return {item.strip() for item in cast(list[object], value) if isinstance(item, str) and item.strip()}
