"""Program progress: where a user stands in the 28-day program."""

from __future__ import annotations

import math
from enum import Enum

from pydantic import BaseModel

from lessonflow.config import settings
from lessonflow.persistence.models import Reflection, UserProgress


class LessonStatus(str, Enum):
    COMPLETED = "completed"
    CURRENT = "current"
    AVAILABLE = "available"
    LOCKED = "locked"


class DayStatus(BaseModel):
    day: int
    week: int
    status: LessonStatus
    week_start: bool


class ProgramProgress(BaseModel):
    user_id: str
    current_day: int
    streak_count: int
    current_week: int
    completion_percent: int
    days: list[DayStatus]


def week_for_day(day: int) -> int:
    return max(1, math.ceil(day / 7))


def is_week_start(day: int) -> bool:
    return day % 7 == 1


def completion_percent(current_day: int, total_days: int | None = None) -> int:
    total = total_days or settings.program_length_days
    return round(min(max(current_day, 0), total) / total * 100)


def lesson_status(day: int, current_day: int, completed: bool) -> LessonStatus:
    if completed:
        return LessonStatus.COMPLETED
    if day == current_day:
        return LessonStatus.CURRENT
    if day < current_day:
        return LessonStatus.AVAILABLE
    return LessonStatus.LOCKED


def program_progress(progress: UserProgress, reflections: list[Reflection]) -> ProgramProgress:
    """Status of every program day; lessons are keyed by day number."""
    completed = {r.lesson_id for r in reflections if r.completed}
    current_day = progress.current_day or 1
    days = [
        DayStatus(
            day=day,
            week=week_for_day(day),
            status=lesson_status(day, current_day, day in completed),
            week_start=is_week_start(day),
        )
        for day in range(1, settings.program_length_days + 1)
    ]
    return ProgramProgress(
        user_id=progress.id,
        current_day=current_day,
        streak_count=progress.streak_count,
        current_week=week_for_day(current_day),
        completion_percent=completion_percent(current_day),
        days=days,
    )
