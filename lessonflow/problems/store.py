"""Problem store: the two ordered problem lists of a flow and the edits made to them."""

from __future__ import annotations

import logging

from pydantic import BaseModel

from lessonflow.problems.models import (
    ExternalProblem,
    InternalProblem,
    Problem,
    ProblemKind,
    new_problem_id,
)

logger = logging.getLogger("lessonflow.problems")


class ProblemStore(BaseModel):
    """Internal and external problem lists with add/edit/delete and a dirty flag.

    Every mutation marks the store dirty; the flow clears it after a successful save.
    Only one problem can be in inline-edit at a time.
    """

    internal: list[InternalProblem] = []
    external: list[ExternalProblem] = []
    dirty: bool = False
    editing_id: str | None = None
    editing_text: str = ""

    def problems(self, kind: ProblemKind) -> list[Problem]:
        return self.internal if kind == ProblemKind.INTERNAL else self.external

    def get(self, kind: ProblemKind, problem_id: str) -> Problem | None:
        for problem in self.problems(kind):
            if problem.id == problem_id:
                return problem
        return None

    def get_internal(self, problem_id: str) -> InternalProblem | None:
        return self.get(ProblemKind.INTERNAL, problem_id)

    def get_external(self, problem_id: str) -> ExternalProblem | None:
        return self.get(ProblemKind.EXTERNAL, problem_id)

    def _unique_id(self, kind: ProblemKind) -> str:
        taken = {p.id for p in self.problems(kind)}
        problem_id = new_problem_id()
        while problem_id in taken:
            problem_id = new_problem_id()
        return problem_id

    def add_problem(self, kind: ProblemKind, text: str) -> Problem | None:
        """Append a problem; blank text is a silent no-op returning None."""
        trimmed = text.strip()
        if not trimmed:
            return None

        problem_id = self._unique_id(kind)
        if kind == ProblemKind.INTERNAL:
            problem: Problem = InternalProblem(id=problem_id, text=trimmed)
            self.internal.append(problem)
        else:
            problem = ExternalProblem(id=problem_id, text=trimmed)
            self.external.append(problem)

        self.dirty = True
        logger.info("Problem added: kind=%s id=%s", kind.value, problem_id)
        return problem

    def delete_problem(self, kind: ProblemKind, problem_id: str) -> bool:
        """Remove a problem and any links pointing at it. Absent ids are ignored."""
        problems = self.problems(kind)
        remaining = [p for p in problems if p.id != problem_id]
        if len(remaining) == len(problems):
            return False

        problems[:] = remaining
        if kind == ProblemKind.INTERNAL:
            for ext in self.external:
                if problem_id in ext.linked_internal_ids:
                    ext.linked_internal_ids = [i for i in ext.linked_internal_ids if i != problem_id]
        else:
            for internal in self.internal:
                if problem_id in internal.linked_external_ids:
                    internal.linked_external_ids = [i for i in internal.linked_external_ids if i != problem_id]

        if self.editing_id == problem_id:
            self.cancel_edit()
        self.dirty = True
        logger.info("Problem deleted: kind=%s id=%s", kind.value, problem_id)
        return True

    def start_edit(self, problem_id: str, text: str) -> None:
        self.editing_id = problem_id
        self.editing_text = text

    def cancel_edit(self) -> None:
        self.editing_id = None
        self.editing_text = ""

    def commit_edit(self, kind: ProblemKind, problem_id: str, new_text: str | None = None) -> Problem | None:
        """Replace a problem's text verbatim and leave edit mode.

        `new_text` defaults to the text captured by `start_edit`; a problem
        that is not being edited keeps its text in that case.
        """
        editing = self.editing_id == problem_id
        if new_text is None and not editing:
            return self.get(kind, problem_id)

        text = self.editing_text if new_text is None else new_text
        problem = self.get(kind, problem_id)
        if problem is not None:
            problem.text = text
            self.dirty = True
        if editing:
            self.cancel_edit()
        return problem

    def link(self, external_id: str, internal_ids: list[str]) -> None:
        """Set an external problem's links and mirror them onto the internal side."""
        ext = self.get_external(external_id)
        if ext is None:
            return

        selected = list(dict.fromkeys(internal_ids))
        ext.linked_internal_ids = selected
        for internal in self.internal:
            linked = internal.id in selected
            has_back_link = external_id in internal.linked_external_ids
            if linked and not has_back_link:
                internal.linked_external_ids.append(external_id)
            elif not linked and has_back_link:
                internal.linked_external_ids = [i for i in internal.linked_external_ids if i != external_id]
        self.dirty = True

    def triggered_by(self, external_id: str) -> list[InternalProblem]:
        ext = self.get_external(external_id)
        if ext is None:
            return []
        return [p for p in self.internal if p.id in ext.linked_internal_ids]
