from __future__ import annotations

import shutil
import sys
from collections.abc import Iterator, Sequence
from datetime import date
from pathlib import Path
from typing import TypeVar
from uuid import uuid4

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from progressengine.clock import FixedClock  # noqa: E402
from progressengine.content_loader import StaticLessonCatalog, load_catalog  # noqa: E402
from progressengine.daily_goals import DailyGoalManager  # noqa: E402
from progressengine.progress import ProgressStore  # noqa: E402

START_DAY = date(2026, 3, 2)

T = TypeVar("T")


class FirstChoice:
    """Deterministic goal picker: always the first template of each tier."""

    def choice(self, seq: Sequence[T]) -> T:
        return seq[0]


class TitlePicker:
    """Goal picker that prefers templates with the given titles."""

    def __init__(self, *titles: str) -> None:
        self.titles = set(titles)

    def choice(self, seq: Sequence[T]) -> T:
        for item in seq:
            if getattr(item, "title", None) in self.titles:
                return item
        return seq[0]


def _tmp_path_fixture() -> Iterator[Path]:
    """Provide per-test temporary directory path inside the workspace.

    This intentionally overrides pytest's builtin ``tmp_path`` fixture for this
    repository. Tests keep temporary files under the project working directory
    at ``.tmp_pytest/``.
    """
    base = ROOT / ".tmp_pytest"
    base.mkdir(parents=True, exist_ok=True)
    path = base / str(uuid4())
    path.mkdir(parents=True, exist_ok=False)
    try:
        yield path
    finally:
        shutil.rmtree(path, ignore_errors=True)
        try:
            next(base.iterdir())
        except StopIteration:
            base.rmdir()
        except FileNotFoundError:
            pass


tmp_path = pytest.fixture(name="tmp_path")(_tmp_path_fixture)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(START_DAY)


@pytest.fixture
def catalog() -> StaticLessonCatalog:
    return load_catalog()


@pytest.fixture
def goals() -> DailyGoalManager:
    return DailyGoalManager(FirstChoice())


@pytest.fixture
def store(catalog: StaticLessonCatalog, clock: FixedClock, goals: DailyGoalManager) -> ProgressStore:
    return ProgressStore.open(None, catalog=catalog, clock=clock, goals=goals)
