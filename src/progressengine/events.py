"""Learning events accepted by `ProgressStore.apply`."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class AwardXP:
    amount: int


@dataclass(frozen=True)
class CorrectAnswer:
    pass


@dataclass(frozen=True)
class IncorrectAnswer:
    pass


@dataclass(frozen=True)
class LessonCompleted:
    lesson_id: str


@dataclass(frozen=True)
class PerfectLesson:
    pass


@dataclass(frozen=True)
class AppOpened:
    pass


@dataclass(frozen=True)
class SessionReset:
    pass


ProgressEvent = AwardXP | CorrectAnswer | IncorrectAnswer | LessonCompleted | PerfectLesson | AppOpened | SessionReset
