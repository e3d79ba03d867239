"""Read models describing what a flow should show at its current stage."""

from __future__ import annotations

from pydantic import BaseModel

from lessonflow.content.models import AssessmentPrompt
from lessonflow.flow.state import Stage
from lessonflow.problems.models import ExternalProblem, InternalProblem


class CurrentItem(BaseModel):
    """The problem in focus during categorization or external assessment."""

    problem: InternalProblem | ExternalProblem
    position: int
    total: int
    percent: int
    prompt: AssessmentPrompt | None = None
    answer: str = ""
    linking: bool = False
    suggestions: list[str] = []


class FlowView(BaseModel):
    flow_id: str
    user_id: str
    lesson_id: int
    stage: Stage
    edit_mode: bool
    dirty: bool
    saving: bool
    last_error: str = ""
    step: int
    total_steps: int
    internal_problems: list[InternalProblem]
    external_problems: list[ExternalProblem]
    editing_id: str | None = None
    current: CurrentItem | None = None
    feedback_rating: int = 0
    feedback_text: str = ""
