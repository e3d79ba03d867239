"""Link suggestions: match feeling words in an assessment to likely internal problems."""

from __future__ import annotations

from lessonflow.content.models import KeywordFamily, LessonContent
from lessonflow.problems.models import ExternalAssessment, InternalProblem


def triggered_families(assessment: ExternalAssessment | None, families: tuple[KeywordFamily, ...]) -> list[KeywordFamily]:
    if assessment is None:
        return []
    text = f"{assessment.how_it_feels} {assessment.story_telling}".lower()
    return [f for f in families if any(k in text for k in f.keywords)]


def _matches(problem: InternalProblem, family: KeywordFamily) -> bool:
    if problem.category and problem.category in family.categories:
        return True
    if problem.subcategory and problem.subcategory in family.subcategories:
        return True
    text = problem.text.lower()
    return any(k in text for k in family.keywords)


def suggest_links(
    assessment: ExternalAssessment | None,
    internal: list[InternalProblem],
    content: LessonContent,
) -> list[str]:
    """Ids of internal problems worth pre-highlighting, in list order.

    Suggestions never select anything on their own.
    """
    families = triggered_families(assessment, content.keyword_families)
    if not families:
        return []
    return [p.id for p in internal if any(_matches(p, f) for f in families)]
