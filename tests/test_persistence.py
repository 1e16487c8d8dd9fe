import json
import sqlite3
import time
from datetime import date

import pytest
from conftest import FirstChoice

from progressengine.daily_goals import DailyGoalManager
from progressengine.models import ProgressState
from progressengine.persistence import FORMAT_VERSION, PersistenceAdapter, decode_state, encode_state
from progressengine.storage import BlobStore

DAY = date(2026, 3, 2)


class RecordingBackend:
    def __init__(self, stored: str | None = None) -> None:
        self.stored = stored
        self.writes: list[str] = []
        self.closed = False
        self.fail = False

    def read(self, key: str) -> str | None:
        return self.stored

    def write(self, key: str, payload: str) -> None:
        if self.fail:
            raise sqlite3.OperationalError("disk I/O error")
        self.writes.append(payload)
        self.stored = payload

    def close(self) -> None:
        self.closed = True


def _populated_state() -> ProgressState:
    state = ProgressState(
        total_xp=1_300_000,
        level=2,
        daily_streak_days=4,
        last_practice_date=DAY,
        longest_streak_days=9,
        best_question_streak=12,
        total_points=880,
        completed_lesson_ids={"dcf-1", "dcf-2"},
        completed_categories={"DCF Fundamentals"},
        last_lesson_id="dcf-2",
        perfect_lessons=3,
        unlocked_achievement_ids={"first-deal"},
        today_daily_goals_xp=15,
        total_daily_goals_completed=8,
        is_pro_user=True,
        pro_expiry=date(2027, 1, 1),
        username="sam",
        selected_theme="dark",
        sound_enabled=False,
        has_attempted_question=True,
    )
    DailyGoalManager(FirstChoice()).reset_if_new_day(state, DAY)
    state.today_daily_goals_xp = 15
    state.active_daily_goals[0].current_progress = 1
    state.active_daily_goals[0].is_completed = True
    return state


def test_encode_decode_preserves_persistent_fields() -> None:
    state = _populated_state()
    restored = decode_state(encode_state(state))
    assert restored == state


def test_session_fields_are_not_persisted() -> None:
    state = ProgressState(question_streak=4, session_points=60, streak_milestone_hit=5)
    restored = decode_state(encode_state(state))
    assert restored.question_streak == 0
    assert restored.session_points == 0
    assert restored.streak_milestone_hit is None


def test_blob_records_format_version() -> None:
    payload = json.loads(encode_state(ProgressState()))
    assert payload["format_version"] == FORMAT_VERSION
    assert payload["daily_goals"] == []


def test_empty_object_decodes_to_defaults() -> None:
    assert decode_state("{}") == ProgressState()


def test_malformed_fields_fall_back_to_defaults() -> None:
    raw = json.dumps(
        {
            "total_xp": "abc",
            "level": 50,
            "daily_streak_days": -3,
            "last_practice_date": "yesterday",
            "completed_lesson_ids": ["a", 3, "", " b "],
            "daily_goals": [{"id": "x"}],
            "selected_theme": "neon",
            "sound_enabled": "no",
        }
    )
    state = decode_state(raw)
    assert state.total_xp == 0
    assert state.level == 1
    assert state.daily_streak_days == 0
    assert state.last_practice_date is None
    assert state.completed_lesson_ids == {"a", "b"}
    assert state.active_daily_goals == []
    assert state.selected_theme == "alpha"
    assert state.sound_enabled is True


def test_level_is_recomputed_from_xp() -> None:
    state = decode_state(json.dumps({"total_xp": 1_000_000, "level": 1}))
    assert state.level == 2


def test_datetime_strings_are_accepted() -> None:
    state = decode_state(json.dumps({"last_practice_date": "2026-03-02T08:15:00"}))
    assert state.last_practice_date == DAY


def test_invalid_goal_set_is_discarded() -> None:
    state = _populated_state()
    payload = json.loads(encode_state(state))
    payload["daily_goals"] = [payload["daily_goals"][0], payload["daily_goals"][0]]
    restored = decode_state(json.dumps(payload))
    assert restored.active_daily_goals == []
    assert restored.last_daily_goal_reset_date is None


def test_non_object_blob_is_rejected() -> None:
    with pytest.raises(ValueError):
        decode_state("[]")
    with pytest.raises(ValueError):
        decode_state("not json")


def test_load_returns_none_for_missing_or_corrupt_blob(caplog: pytest.LogCaptureFixture) -> None:
    assert PersistenceAdapter(RecordingBackend()).load() is None
    assert PersistenceAdapter(None).load() is None
    with caplog.at_level("WARNING", logger="progressengine.persistence"):
        assert PersistenceAdapter(RecordingBackend("{broken")).load() is None
    assert any("corrupt" in record.getMessage() for record in caplog.records)


def test_load_treats_deeply_nested_blob_as_first_run() -> None:
    deep = "[" * 100_000 + "]" * 100_000
    assert PersistenceAdapter(RecordingBackend(deep)).load() is None


def test_flush_writes_only_latest_snapshot() -> None:
    backend = RecordingBackend()
    adapter = PersistenceAdapter(backend, debounce_seconds=60)
    for xp in (1, 2, 3):
        adapter.schedule_save(ProgressState(total_xp=xp))
    assert adapter.has_pending is True

    assert adapter.flush() is True
    assert len(backend.writes) == 1
    assert json.loads(backend.writes[0])["total_xp"] == 3
    assert adapter.has_pending is False
    adapter.close()
    assert backend.closed is True


def test_background_writer_saves_after_debounce() -> None:
    backend = RecordingBackend()
    adapter = PersistenceAdapter(backend, debounce_seconds=0.01)
    adapter.schedule_save(ProgressState(total_xp=7))
    deadline = time.monotonic() + 5
    while not backend.writes and time.monotonic() < deadline:
        time.sleep(0.01)
    adapter.close()
    assert json.loads(backend.writes[-1])["total_xp"] == 7


def test_failed_write_is_logged_and_next_save_retries(caplog: pytest.LogCaptureFixture) -> None:
    backend = RecordingBackend()
    backend.fail = True
    adapter = PersistenceAdapter(backend, debounce_seconds=60)
    adapter.schedule_save(ProgressState(total_xp=5))
    with caplog.at_level("ERROR", logger="progressengine.persistence"):
        assert adapter.flush() is False
    assert adapter.failed_writes == 1
    assert any("Saving progress failed" in record.getMessage() for record in caplog.records)

    backend.fail = False
    adapter.schedule_save(ProgressState(total_xp=6))
    assert adapter.flush() is True
    assert json.loads(backend.stored or "{}")["total_xp"] == 6
    adapter.close()


def test_disabled_adapter_discards_snapshots() -> None:
    backend = RecordingBackend()
    adapter = PersistenceAdapter(backend, enabled=False)
    adapter.schedule_save(ProgressState(total_xp=5))
    assert adapter.has_pending is False
    assert adapter.flush() is True
    assert backend.writes == []


def test_round_trip_through_sqlite() -> None:
    adapter = PersistenceAdapter(BlobStore(":memory:"), debounce_seconds=60)
    state = _populated_state()
    adapter.schedule_save(state)
    assert adapter.flush() is True
    assert adapter.load() == state
    adapter.close()
