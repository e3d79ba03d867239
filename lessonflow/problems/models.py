"""Data models for internal and external problems."""

from __future__ import annotations

from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def new_problem_id() -> str:
    return uuid4().hex[:12]


class ProblemKind(str, Enum):
    INTERNAL = "internal"
    EXTERNAL = "external"


class CamelModel(BaseModel):
    """Base for models persisted inside the structured record (camelCase on the wire)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Problem(CamelModel):
    id: str = Field(default_factory=new_problem_id)
    text: str


class InternalProblem(Problem):
    """A thought, feeling or behavioural pattern the user reports."""

    category: str | None = None
    subcategory: str | None = None
    linked_external_ids: list[str] = []


class ExternalAssessment(CamelModel):
    """Narrative answers about an external problem, plus optional slider ratings."""

    what_bothers: str = ""
    how_it_feels: str = ""
    story_telling: str = ""
    contributing: str = ""
    control: int | None = Field(default=None, ge=1, le=10)
    impact: int | None = Field(default=None, ge=1, le=10)
    strategies: list[str] = []


class ExternalProblem(Problem):
    """A circumstance or situational factor the user reports."""

    assessment: ExternalAssessment | None = None
    linked_internal_ids: list[str] = []


def rating_band(value: int | None) -> str:
    """Qualitative band for a 1-10 control/impact rating."""
    if value is None:
        return "unrated"
    if value <= 3:
        return "low"
    if value <= 7:
        return "moderate"
    return "high"
