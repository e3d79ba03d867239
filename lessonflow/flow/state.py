"""Flow state: the serialisable state one lesson flow session carries between actions."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, Field

from lessonflow.problems.store import ProblemStore


class Stage(str, Enum):
    INTRO = "intro"
    COLLECTION = "collection"
    CATEGORIZATION = "categorization"
    EXTERNAL_ASSESSMENT = "external_assessment"
    SUMMARY = "summary"
    COMPLETED = "completed"


class FlowState(BaseModel):
    flow_id: str = Field(default_factory=lambda: uuid4().hex)
    user_id: str
    lesson_id: int
    stage: Stage = Stage.INTRO

    # Edit mode
    edit_mode: bool = False
    reflection_id: str | None = None
    previously_completed: bool = False
    prior_completed_at: datetime | None = None

    # Problems
    problems: ProblemStore = Field(default_factory=ProblemStore)

    # Cursors
    categorizing_index: int = 0
    external_index: int = 0
    question_index: int = 0
    linking: bool = False

    # Feedback
    feedback_rating: int = Field(default=0, ge=0, le=5)
    feedback_text: str = ""

    # Save bookkeeping
    saving: bool = False
    saved: bool = False
    day_advanced: bool = False
    last_error: str = ""
