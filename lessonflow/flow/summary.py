"""Summary stage: counts, category grouping and linked relationships for the reality map."""

from __future__ import annotations

from pydantic import BaseModel

from lessonflow.content.catalog import UNCATEGORIZED, UNKNOWN_CATEGORY
from lessonflow.problems.models import ExternalProblem, InternalProblem, rating_band


class ExternalSummary(BaseModel):
    problem: ExternalProblem
    control_band: str = "unrated"
    impact_band: str = "unrated"
    triggers: list[InternalProblem] = []


class ReflectionSummary(BaseModel):
    internal_count: int
    external_count: int
    category_count: int
    categorized_count: int
    by_category: dict[str, list[InternalProblem]]
    external: list[ExternalSummary]


def group_by_category(internal: list[InternalProblem]) -> dict[str, list[InternalProblem]]:
    groups: dict[str, list[InternalProblem]] = {}
    for problem in internal:
        groups.setdefault(problem.category or UNCATEGORIZED, []).append(problem)
    return groups


def categorized_count(internal: list[InternalProblem]) -> int:
    return sum(1 for p in internal if p.category and p.category != UNKNOWN_CATEGORY)


def summarize(internal: list[InternalProblem], external: list[ExternalProblem]) -> ReflectionSummary:
    by_category = group_by_category(internal)
    by_id = {p.id: p for p in internal}

    externals = []
    for problem in external:
        assessment = problem.assessment
        externals.append(ExternalSummary(
            problem=problem,
            control_band=rating_band(assessment.control if assessment else None),
            impact_band=rating_band(assessment.impact if assessment else None),
            triggers=[by_id[i] for i in problem.linked_internal_ids if i in by_id],
        ))

    return ReflectionSummary(
        internal_count=len(internal),
        external_count=len(external),
        category_count=len(by_category),
        categorized_count=categorized_count(internal),
        by_category=by_category,
        external=externals,
    )
