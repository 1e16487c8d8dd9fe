"""Load the lesson catalog from bundled JSON resources."""

from __future__ import annotations

import json
from collections.abc import Sequence
from importlib import resources
from pathlib import Path
from typing import Any

from .models import Lesson

CONTENT_PACKAGE = "progressengine.content"
CATALOG_RESOURCE = "lessons.json"


class StaticLessonCatalog:
    """In-memory lesson catalog preserving authoring order."""

    def __init__(self, lessons: Sequence[Lesson]) -> None:
        """Index lessons by id and category."""
        self._lessons = tuple(lessons)
        self._by_id: dict[str, Lesson] = {}
        self._by_category: dict[str, list[Lesson]] = {}
        for lesson in self._lessons:
            if lesson.id in self._by_id:
                raise ValueError(f"Duplicate lesson id: {lesson.id}")
            self._by_id[lesson.id] = lesson
            self._by_category.setdefault(lesson.category, []).append(lesson)

    def lessons(self) -> Sequence[Lesson]:
        """Return every lesson in catalog order."""
        return self._lessons

    def categories(self) -> list[str]:
        """Return category names in catalog order."""
        return list(self._by_category)

    def lessons_in_category(self, category: str) -> list[Lesson]:
        """Return lessons of one category ordered by level."""
        return sorted(self._by_category.get(category, []), key=lambda item: item.order)

    def get(self, lesson_id: str) -> Lesson | None:
        """Return one lesson by id."""
        return self._by_id.get(lesson_id)

    def __len__(self) -> int:
        return len(self._lessons)


def _lesson_from_dict(category: str, slug: str, index: int, raw: dict[str, Any]) -> Lesson:
    """Build a lesson from raw JSON content."""
    title = str(raw.get("title", "")).strip()
    if not title:
        raise ValueError(f"Lesson #{index} in category '{category}' has no title.")
    lesson_id = str(raw.get("id") or f"{slug}-{index}").strip()
    return Lesson(
        id=lesson_id,
        title=title,
        category=category,
        order=int(raw.get("order", index)),
        description=str(raw.get("description", "")),
        difficulty=str(raw.get("difficulty", "beginner")),
        xp_reward=int(raw.get("xp_reward", 0)),
        estimated_minutes=int(raw.get("estimated_minutes", 0)),
    )


def _catalog_from_dict(raw: dict[str, Any]) -> StaticLessonCatalog:
    """Build a catalog from the root JSON object."""
    lessons: list[Lesson] = []
    for category_raw in raw.get("categories", []):
        name = str(category_raw["name"]).strip()
        slug = str(category_raw.get("slug") or name.lower().replace(" ", "-"))
        for index, lesson_raw in enumerate(category_raw.get("lessons", []), start=1):
            lessons.append(_lesson_from_dict(name, slug, index, lesson_raw))
    return StaticLessonCatalog(lessons)


def load_catalog() -> StaticLessonCatalog:
    """Load the bundled lesson catalog."""
    entry = resources.files(CONTENT_PACKAGE).joinpath(CATALOG_RESOURCE)
    raw = json.loads(entry.read_text(encoding="utf-8-sig"))
    return _catalog_from_dict(raw)


def load_catalog_from_file(path: Path | str) -> StaticLessonCatalog:
    """Load a catalog from an arbitrary JSON file for tests/tools."""
    raw = json.loads(Path(path).read_text(encoding="utf-8-sig"))
    return _catalog_from_dict(raw)
