"""Data models for fixed lesson content."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class Subcategory(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str


class Category(BaseModel):
    """A root-cause category an internal problem can be filed under."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str
    subcategories: tuple[Subcategory, ...] = ()

    def subcategory_named(self, name: str) -> Subcategory | None:
        for sub in self.subcategories:
            if sub.name == name:
                return sub
        return None


class AssessmentPrompt(BaseModel):
    """One narrative question asked about each external problem."""

    model_config = ConfigDict(frozen=True)

    key: str  # attribute on ExternalAssessment
    question: str
    placeholder: str = ""
    required: bool = True


class Strategy(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    label: str
    description: str


class KeywordFamily(BaseModel):
    """Feeling words that hint at which internal problems an external one triggers."""

    model_config = ConfigDict(frozen=True)

    id: str
    keywords: tuple[str, ...]
    categories: tuple[str, ...] = ()
    subcategories: tuple[str, ...] = ()


class LessonContent(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str
    description: str
    objectives: tuple[str, ...]
    internal_examples: tuple[str, ...]
    external_examples: tuple[str, ...]
    categories: tuple[Category, ...]
    prompts: tuple[AssessmentPrompt, ...]
    strategies: tuple[Strategy, ...]
    keyword_families: tuple[KeywordFamily, ...]

    def category_named(self, name: str) -> Category | None:
        for category in self.categories:
            if category.name == name:
                return category
        return None

    def strategy_ids(self) -> set[str]:
        return {s.id for s in self.strategies}
