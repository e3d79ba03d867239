"""Flow controller: the state machine that drives one lesson flow from intro to saved record."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable

from lessonflow.config import settings
from lessonflow.content.catalog import load_content
from lessonflow.content.models import LessonContent
from lessonflow.flow.assessment import ExternalAssessmentStage
from lessonflow.flow.categorization import CategorizationStage
from lessonflow.flow.errors import (
    FlowValidationError,
    PersistenceError,
    SaveInProgressError,
    StageError,
    UnsavedChangesError,
)
from lessonflow.flow.state import FlowState, Stage
from lessonflow.flow.summary import ReflectionSummary, summarize
from lessonflow.flow.view import CurrentItem, FlowView
from lessonflow.persistence.client import BackendClient
from lessonflow.persistence.models import Reflection, StructuredRecord
from lessonflow.problems.models import Problem, ProblemKind
from lessonflow.problems.store import ProblemStore
from lessonflow.telemetry.metrics import (
    flows_started_total,
    reflections_completed_total,
    stage_transitions_total,
    validation_failures_total,
)

logger = logging.getLogger("lessonflow.flow")

CompletionCallback = Callable[[FlowState, Reflection], Awaitable[None]]


class LessonFlow:
    """Owns a FlowState and routes user actions to the stage that handles them.

    Stages:   intro -> collection -> categorization -> external_assessment -> summary -> completed
    Backward navigation re-enters earlier stages with their stored values.
    Only `start`, `complete` and `save_changes` touch the backend.
    """

    def __init__(
        self,
        state: FlowState,
        backend: BackendClient,
        content: LessonContent | None = None,
        on_complete: CompletionCallback | None = None,
    ) -> None:
        self.state = state
        self._backend = backend
        self._content = content or load_content()
        self._on_complete = on_complete
        self._completion_task: asyncio.Task | None = None
        self.categorization = CategorizationStage(state, self._content)
        self.assessment = ExternalAssessmentStage(state, self._content)

    @classmethod
    async def start(
        cls,
        backend: BackendClient,
        user_id: str,
        lesson_id: int,
        content: LessonContent | None = None,
        on_complete: CompletionCallback | None = None,
    ) -> LessonFlow:
        """Open a flow, resuming from the stored reflection when there is one."""
        existing = await backend.get_reflection(user_id, lesson_id)
        state = FlowState(user_id=user_id, lesson_id=lesson_id)

        if existing is not None:
            data = existing.structured_data
            state.edit_mode = True
            state.reflection_id = existing.id
            state.previously_completed = existing.completed
            state.prior_completed_at = data.completed_at
            state.problems = ProblemStore(internal=data.internal_problems, external=data.external_problems)
            state.feedback_rating = data.feedback_rating
            state.feedback_text = data.feedback_text
            state.stage = Stage.SUMMARY

        flows_started_total.labels(edit_mode=str(state.edit_mode).lower()).inc()
        logger.info(
            "Flow started: flow=%s user=%s lesson=%s edit_mode=%s stage=%s",
            state.flow_id, user_id, lesson_id, state.edit_mode, state.stage.value,
        )
        return cls(state, backend, content, on_complete)

    # ── Plumbing ────────────────────────────────────────────────────

    @property
    def stage(self) -> Stage:
        return self.state.stage

    @property
    def problems(self) -> ProblemStore:
        return self.state.problems

    @property
    def completion_task(self) -> asyncio.Task | None:
        return self._completion_task

    def _require(self, *stages: Stage) -> None:
        if self.state.stage not in stages:
            allowed = ", ".join(s.value for s in stages)
            raise StageError(f"Not available during {self.state.stage.value} (needs {allowed})")

    def _move(self, to: Stage) -> Stage:
        if to != self.state.stage:
            stage_transitions_total.labels(from_stage=self.state.stage.value, to_stage=to.value).inc()
            logger.info("Flow %s: %s -> %s", self.state.flow_id, self.state.stage.value, to.value)
            self.state.stage = to
        return to

    def _invalid(self, exc: FlowValidationError) -> FlowValidationError:
        validation_failures_total.labels(stage=self.state.stage.value).inc()
        logger.info("Flow %s blocked at %s: %s", self.state.flow_id, self.state.stage.value, exc)
        return exc

    # ── Intro & collection ──────────────────────────────────────────

    def begin(self) -> Stage:
        self._require(Stage.INTRO)
        return self._move(Stage.COLLECTION)

    def add_problem(self, kind: ProblemKind, text: str) -> Problem | None:
        self._require(Stage.COLLECTION)
        return self.problems.add_problem(kind, text)

    def delete_problem(self, kind: ProblemKind, problem_id: str) -> bool:
        self._require(Stage.COLLECTION)
        return self.problems.delete_problem(kind, problem_id)

    def start_edit(self, kind: ProblemKind, problem_id: str, text: str | None = None) -> None:
        self._require(Stage.COLLECTION)
        problem = self.problems.get(kind, problem_id)
        if problem is None:
            raise self._invalid(FlowValidationError(f"No {kind.value} problem {problem_id}", field="id"))
        self.problems.start_edit(problem_id, problem.text if text is None else text)

    def commit_edit(self, kind: ProblemKind, problem_id: str, text: str | None = None) -> Problem | None:
        self._require(Stage.COLLECTION)
        return self.problems.commit_edit(kind, problem_id, text)

    def finish_collection(self) -> Stage:
        """Leave collection for the first stage that has work to do."""
        self._require(Stage.COLLECTION)
        store = self.problems
        if store.editing_id is not None:
            kind = ProblemKind.INTERNAL if store.get_internal(store.editing_id) else ProblemKind.EXTERNAL
            store.commit_edit(kind, store.editing_id)

        total = len(store.internal) + len(store.external)
        if total < max(settings.min_total_problems, 1):
            raise self._invalid(FlowValidationError("Add at least one problem to continue", field="problems"))
        if len(store.internal) < settings.min_internal_problems:
            raise self._invalid(FlowValidationError(
                f"Add at least {settings.min_internal_problems} internal problems to continue",
                field="internal",
            ))

        if store.internal:
            return self._move(self.categorization.enter())
        return self._move(self.assessment.enter())

    # ── Categorization ──────────────────────────────────────────────

    def categorize(self, category: str, subcategory: str | None = None) -> Stage:
        self._require(Stage.CATEGORIZATION)
        try:
            to = self.categorization.categorize(category, subcategory)
        except FlowValidationError as exc:
            raise self._invalid(exc)
        return self._move(to)

    def confirm_category(self) -> Stage:
        self._require(Stage.CATEGORIZATION)
        try:
            to = self.categorization.confirm()
        except FlowValidationError as exc:
            raise self._invalid(exc)
        return self._move(to)

    # ── External assessment ─────────────────────────────────────────

    def answer(self, text: str) -> Stage:
        self._require(Stage.EXTERNAL_ASSESSMENT)
        try:
            to = self.assessment.answer(text)
        except FlowValidationError as exc:
            raise self._invalid(exc)
        return self._move(to)

    def rate_external(self, control: int | None = None, impact: int | None = None, strategies: list[str] | None = None) -> None:
        self._require(Stage.EXTERNAL_ASSESSMENT)
        try:
            self.assessment.rate(control, impact, strategies)
        except FlowValidationError as exc:
            raise self._invalid(exc)

    def suggestions(self) -> list[str]:
        self._require(Stage.EXTERNAL_ASSESSMENT)
        return self.assessment.suggestions()

    def link(self, internal_ids: list[str]) -> Stage:
        self._require(Stage.EXTERNAL_ASSESSMENT)
        try:
            to = self.assessment.link(internal_ids)
        except FlowValidationError as exc:
            raise self._invalid(exc)
        return self._move(to)

    # ── Navigation ──────────────────────────────────────────────────

    def back(self) -> Stage:
        stage = self.state.stage
        if stage == Stage.COLLECTION and not self.state.edit_mode:
            return self._move(Stage.INTRO)
        if stage == Stage.CATEGORIZATION:
            return self._move(self.categorization.back())
        if stage == Stage.EXTERNAL_ASSESSMENT:
            to = self.assessment.back()
            if to == Stage.CATEGORIZATION:
                self.categorization.enter(from_end=True)
            return self._move(to)
        if stage == Stage.SUMMARY:
            if self.problems.external:
                return self._move(self.assessment.enter(from_end=True))
            if self.problems.internal:
                return self._move(self.categorization.enter(from_end=True))
            return self._move(Stage.COLLECTION)
        raise StageError(f"Cannot go back from {stage.value}")

    def leave(self, force: bool = False) -> None:
        """Abandon the flow. Unsaved edits need `force`."""
        if self.state.stage != Stage.COMPLETED and self.problems.dirty and not force:
            raise UnsavedChangesError("You have unsaved changes. Are you sure you want to leave?")
        logger.info("Flow %s left at %s (dirty=%s)", self.state.flow_id, self.state.stage.value, self.problems.dirty)

    # ── Summary & persistence ───────────────────────────────────────

    def summary(self) -> ReflectionSummary:
        return summarize(self.problems.internal, self.problems.external)

    def set_feedback(self, rating: int | None = None, text: str | None = None) -> None:
        self._require(Stage.SUMMARY)
        if rating is not None:
            if not 0 <= rating <= 5:
                raise self._invalid(FlowValidationError("Rating must be between 0 and 5", field="rating"))
            self.state.feedback_rating = rating
        if text is not None:
            self.state.feedback_text = text
        self.problems.dirty = True

    def build_record(self, completed_at: datetime | None) -> StructuredRecord:
        return StructuredRecord(
            internal_problems=[p.model_copy(deep=True) for p in self.problems.internal],
            external_problems=[p.model_copy(deep=True) for p in self.problems.external],
            feedback_rating=self.state.feedback_rating,
            feedback_text=self.state.feedback_text,
            completed_at=completed_at,
        )

    async def _persist(self, completed: bool, completed_at: datetime | None) -> Reflection:
        if self.state.saving:
            raise SaveInProgressError("A save for this reflection is already in progress")

        reflection = Reflection(
            id=self.state.reflection_id,
            user_id=self.state.user_id,
            lesson_id=self.state.lesson_id,
            structured_data=self.build_record(completed_at),
            completed=completed,
        )

        self.state.saving = True
        try:
            saved = await self._backend.save_reflection(reflection)
        except PersistenceError as exc:
            self.state.last_error = str(exc)
            logger.warning("Flow %s save failed: %s", self.state.flow_id, exc)
            raise
        finally:
            self.state.saving = False

        self.state.reflection_id = saved.id
        self.state.saved = True
        self.state.last_error = ""
        self.problems.dirty = False
        return saved

    async def complete(self) -> Reflection:
        """Save the reflection as completed and, on first completion, advance the user a day."""
        self._require(Stage.SUMMARY)
        saved = await self._persist(completed=True, completed_at=datetime.now(timezone.utc))

        if not self.state.previously_completed and not self.state.day_advanced:
            try:
                await self._backend.advance_user_day(self.state.user_id)
            except PersistenceError as exc:
                self.state.last_error = str(exc)
                logger.warning("Flow %s saved but day not advanced: %s", self.state.flow_id, exc)
                raise
            self.state.day_advanced = True

        reflections_completed_total.labels(kind="complete").inc()
        self._move(Stage.COMPLETED)
        if self._on_complete is not None:
            self._completion_task = asyncio.create_task(self._signal_complete(saved))
        return saved

    async def save_changes(self) -> Reflection:
        """Edit mode only: persist the current record keeping its completion status."""
        self._require(Stage.SUMMARY)
        if not self.state.edit_mode:
            raise StageError("Saving without completing is only available when editing a lesson")
        saved = await self._persist(
            completed=self.state.previously_completed,
            completed_at=self.state.prior_completed_at,
        )
        reflections_completed_total.labels(kind="edit").inc()
        return saved

    async def _signal_complete(self, reflection: Reflection) -> None:
        await asyncio.sleep(settings.celebration_delay_seconds)
        try:
            await self._on_complete(self.state, reflection)
        except Exception:
            logger.exception("Completion callback failed for flow=%s", self.state.flow_id)

    # ── Presentation ────────────────────────────────────────────────

    def step(self) -> tuple[int, int]:
        """Position for the "step N of M" header."""
        total = 4 if self.problems.external else 3
        stage = self.state.stage
        if stage == Stage.INTRO:
            return 0, total
        if stage == Stage.COLLECTION:
            return 1, total
        if stage == Stage.CATEGORIZATION:
            return 2, total
        if stage == Stage.EXTERNAL_ASSESSMENT:
            return (3 if self.problems.internal else 2), total
        return total, total

    def _current(self) -> CurrentItem | None:
        if self.state.stage == Stage.CATEGORIZATION and self.categorization.current is not None:
            return CurrentItem(problem=self.categorization.current, **self.categorization.progress())
        if self.state.stage == Stage.EXTERNAL_ASSESSMENT and self.assessment.current is not None:
            return CurrentItem(
                problem=self.assessment.current,
                prompt=self.assessment.prompt,
                answer=self.assessment.current_answer(),
                linking=self.state.linking,
                suggestions=self.assessment.suggestions() if self.state.linking else [],
                **self.assessment.progress(),
            )
        return None

    def view(self) -> FlowView:
        step, total = self.step()
        return FlowView(
            flow_id=self.state.flow_id,
            user_id=self.state.user_id,
            lesson_id=self.state.lesson_id,
            stage=self.state.stage,
            edit_mode=self.state.edit_mode,
            dirty=self.problems.dirty,
            saving=self.state.saving,
            last_error=self.state.last_error,
            step=step,
            total_steps=total,
            internal_problems=self.problems.internal,
            external_problems=self.problems.external,
            editing_id=self.problems.editing_id,
            current=self._current(),
            feedback_rating=self.state.feedback_rating,
            feedback_text=self.state.feedback_text,
        )
