"""External assessment stage: narrative questions per external problem, then linking."""

from __future__ import annotations

import logging

from lessonflow.config import settings
from lessonflow.content.models import AssessmentPrompt, LessonContent
from lessonflow.flow.errors import FlowValidationError, StageError
from lessonflow.flow.state import FlowState, Stage
from lessonflow.flow.suggestions import suggest_links
from lessonflow.problems.models import ExternalAssessment, ExternalProblem

logger = logging.getLogger("lessonflow.flow")


class ExternalAssessmentStage:
    """Walks external problems one at a time.

    For each problem the prompts are asked in order (`question_index`); once the
    last one is answered the linking sub-stage opens (`linking`), unless there
    are no internal problems to link to. Answers are written straight onto the
    problem's assessment so backward navigation finds them again.
    """

    def __init__(self, state: FlowState, content: LessonContent, require_link: bool | None = None) -> None:
        self._state = state
        self._content = content
        self._require_link = settings.require_link if require_link is None else require_link

    @property
    def total(self) -> int:
        return len(self._state.problems.external)

    @property
    def current(self) -> ExternalProblem | None:
        index = self._state.external_index
        if 0 <= index < self.total:
            return self._state.problems.external[index]
        return None

    @property
    def prompt(self) -> AssessmentPrompt | None:
        if self._state.linking:
            return None
        return self._content.prompts[self._state.question_index]

    def progress(self) -> dict:
        position = min(self._state.external_index + 1, self.total)
        percent = round(position / self.total * 100) if self.total else 100
        return {"position": position, "total": self.total, "percent": percent}

    def enter(self, from_end: bool = False) -> Stage:
        if from_end and self.total:
            self._state.external_index = self.total - 1
            if self._state.problems.internal:
                self._state.linking = True
            else:
                self._state.linking = False
                self._state.question_index = len(self._content.prompts) - 1
        else:
            self._state.external_index = 0
            self._state.question_index = 0
            self._state.linking = False
        return Stage.EXTERNAL_ASSESSMENT

    def _assessment(self) -> ExternalAssessment:
        problem = self.current
        if problem is None:
            raise FlowValidationError("There is no external problem left to assess")
        if problem.assessment is None:
            problem.assessment = ExternalAssessment()
        return problem.assessment

    def current_answer(self) -> str:
        problem = self.current
        prompt = self.prompt
        if problem is None or prompt is None or problem.assessment is None:
            return ""
        return getattr(problem.assessment, prompt.key)

    def answer(self, text: str) -> Stage:
        """Record the answer to the current prompt and move to the next one."""
        prompt = self.prompt
        if prompt is None:
            raise StageError("All questions are answered; choose the linked internal problems")

        value = text.strip()
        if prompt.required and not value:
            raise FlowValidationError("This question needs an answer", field=prompt.key)

        assessment = self._assessment()
        setattr(assessment, prompt.key, value)
        self._state.problems.dirty = True

        if self._state.question_index < len(self._content.prompts) - 1:
            self._state.question_index += 1
            return Stage.EXTERNAL_ASSESSMENT

        if self._state.problems.internal:
            self._state.linking = True
            return Stage.EXTERNAL_ASSESSMENT
        return self._next_problem()

    def rate(self, control: int | None = None, impact: int | None = None, strategies: list[str] | None = None) -> None:
        """Optional slider ratings and strategies for the current problem."""
        for name, value in (("control", control), ("impact", impact)):
            if value is not None and not 1 <= value <= 10:
                raise FlowValidationError(f"{name} must be between 1 and 10", field=name)

        chosen = list(dict.fromkeys(strategies or []))
        unknown = set(chosen) - self._content.strategy_ids()
        if unknown:
            raise FlowValidationError(f"Unknown strategies: {', '.join(sorted(unknown))}", field="strategies")

        assessment = self._assessment()
        assessment.control = control
        assessment.impact = impact
        assessment.strategies = chosen
        self._state.problems.dirty = True

    def suggestions(self) -> list[str]:
        problem = self.current
        if problem is None:
            return []
        return suggest_links(problem.assessment, self._state.problems.internal, self._content)

    def link(self, internal_ids: list[str]) -> Stage:
        """Commit the linked internal problems for the current external problem."""
        if not self._state.linking:
            raise StageError("Answer the questions before linking")

        problem = self.current
        if problem is None:
            raise FlowValidationError("There is no external problem left to assess")

        known = {p.id for p in self._state.problems.internal}
        unknown = [i for i in internal_ids if i not in known]
        if unknown:
            raise FlowValidationError(f"Unknown internal problems: {', '.join(unknown)}", field="internal_ids")
        if self._require_link and not internal_ids:
            raise FlowValidationError(
                "Select at least one internal problem this situation triggers", field="internal_ids"
            )

        self._state.problems.link(problem.id, internal_ids)
        logger.info(
            "External problem linked: flow=%s id=%s links=%d",
            self._state.flow_id, problem.id, len(problem.linked_internal_ids),
        )
        return self._next_problem()

    def _next_problem(self) -> Stage:
        self._state.linking = False
        self._state.question_index = 0
        if self._state.external_index < self.total - 1:
            self._state.external_index += 1
            return Stage.EXTERNAL_ASSESSMENT
        return Stage.SUMMARY

    def back(self) -> Stage:
        if self._state.linking:
            self._state.linking = False
            self._state.question_index = len(self._content.prompts) - 1
            return Stage.EXTERNAL_ASSESSMENT
        if self._state.question_index > 0:
            self._state.question_index -= 1
            return Stage.EXTERNAL_ASSESSMENT
        if self._state.problems.internal:
            return Stage.CATEGORIZATION
        return Stage.COLLECTION
