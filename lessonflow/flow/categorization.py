"""Categorization stage: walk the internal problems in order and tag each with a root cause."""

from __future__ import annotations

import logging

from lessonflow.content.catalog import UNKNOWN_CATEGORY
from lessonflow.content.models import LessonContent
from lessonflow.flow.errors import FlowValidationError
from lessonflow.flow.state import FlowState, Stage
from lessonflow.problems.models import InternalProblem

logger = logging.getLogger("lessonflow.flow")


class CategorizationStage:
    """Explicit-cursor walk over `state.problems.internal`."""

    def __init__(self, state: FlowState, content: LessonContent) -> None:
        self._state = state
        self._content = content

    @property
    def total(self) -> int:
        return len(self._state.problems.internal)

    @property
    def current(self) -> InternalProblem | None:
        index = self._state.categorizing_index
        if 0 <= index < self.total:
            return self._state.problems.internal[index]
        return None

    def progress(self) -> dict:
        position = min(self._state.categorizing_index + 1, self.total)
        percent = round(position / self.total * 100) if self.total else 100
        return {"position": position, "total": self.total, "percent": percent}

    def enter(self, from_end: bool = False) -> Stage:
        self._state.categorizing_index = self.total - 1 if from_end else 0
        return Stage.CATEGORIZATION

    def _validate(self, category: str, subcategory: str | None) -> None:
        if category == UNKNOWN_CATEGORY:
            if subcategory:
                raise FlowValidationError("The Unknown category takes no subcategory", field="subcategory")
            return

        known = self._content.category_named(category)
        if known is None:
            raise FlowValidationError(f"Unknown category: {category}", field="category")
        if subcategory and known.subcategory_named(subcategory) is None:
            raise FlowValidationError(
                f"'{subcategory}' is not a subcategory of {category}", field="subcategory"
            )

    def categorize(self, category: str, subcategory: str | None = None) -> Stage:
        """Tag the current problem, then advance. Returns the stage to move to."""
        problem = self.current
        if problem is None:
            raise FlowValidationError("There is no problem left to categorize")

        self._validate(category, subcategory)
        problem.category = category
        problem.subcategory = subcategory or None
        self._state.problems.dirty = True
        logger.info(
            "Problem categorized: flow=%s id=%s category=%s subcategory=%s",
            self._state.flow_id, problem.id, category, subcategory,
        )
        return self._advance()

    def confirm(self) -> Stage:
        """Keep the current problem's stored tags and advance."""
        problem = self.current
        if problem is None or not problem.category:
            raise FlowValidationError("Choose a category before moving on", field="category")
        return self._advance()

    def _advance(self) -> Stage:
        if self._state.categorizing_index < self.total - 1:
            self._state.categorizing_index += 1
            return Stage.CATEGORIZATION
        if self._state.problems.external:
            self._state.external_index = 0
            self._state.question_index = 0
            self._state.linking = False
            return Stage.EXTERNAL_ASSESSMENT
        return Stage.SUMMARY

    def back(self) -> Stage:
        if self._state.categorizing_index > 0:
            self._state.categorizing_index -= 1
            return Stage.CATEGORIZATION
        return Stage.COLLECTION
