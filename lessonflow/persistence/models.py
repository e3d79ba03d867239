"""Data models for persisted reflections and user progress."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from lessonflow.problems.models import CamelModel, ExternalProblem, InternalProblem


class StructuredRecord(CamelModel):
    """Full snapshot of a reflection, stored in the `structured_data` column."""

    internal_problems: list[InternalProblem] = []
    external_problems: list[ExternalProblem] = []
    feedback_rating: int = 0
    feedback_text: str = ""
    completed_at: datetime | None = None


class Reflection(BaseModel):
    """One row of the reflections table, unique per (user_id, lesson_id)."""

    id: str | None = None
    user_id: str
    lesson_id: int
    structured_data: StructuredRecord = Field(default_factory=StructuredRecord)
    completed: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_str(cls, value):
        return None if value is None else str(value)

    @field_validator("structured_data", mode="before")
    @classmethod
    def _legacy_rows(cls, value):
        # rows written by the free-text lesson view carry no structured data
        return {} if value is None else value


class UserProgress(BaseModel):
    id: str
    current_day: int = 1
    streak_count: int = 0
    updated_at: datetime | None = None
