"""Day 1 lesson content: taxonomy, assessment prompts, strategies and keyword families.

Loaded once at startup and never mutated.
"""

from __future__ import annotations

from functools import lru_cache

from lessonflow.content.models import (
    AssessmentPrompt,
    Category,
    KeywordFamily,
    LessonContent,
    Strategy,
    Subcategory,
)

UNKNOWN_CATEGORY = "Unknown"
UNCATEGORIZED = "Uncategorized"

_CATEGORIES = (
    Category(
        id="conditioning",
        name="Conditioning",
        description="Patterns learned from past experiences, family, or society",
        subcategories=(
            Subcategory(id="childhood", name="Childhood experiences",
                        description="Patterns formed in early years that still affect you"),
            Subcategory(id="family", name="Family patterns",
                        description="Behaviors and beliefs inherited from family dynamics"),
            Subcategory(id="cultural", name="Cultural/societal programming",
                        description="Expectations and norms from society that shaped you"),
            Subcategory(id="trauma", name="Past trauma or wounds",
                        description="Unresolved experiences that created protective patterns"),
        ),
    ),
    Category(
        id="mind",
        name="Mind",
        description="Mental patterns, thoughts, and cognitive habits",
        subcategories=(
            Subcategory(id="beliefs", name="Limiting beliefs",
                        description="Thoughts about what's possible or impossible for you"),
            Subcategory(id="stories", name="Stories you tell yourself",
                        description="Narratives you've created about who you are"),
            Subcategory(id="fears", name="Fear-based thinking",
                        description="Thoughts driven by fear of failure, rejection, or loss"),
            Subcategory(id="comparison", name="Comparison and judgment",
                        description="Measuring yourself against others or impossible standards"),
        ),
    ),
    Category(
        id="emotional",
        name="Emotional",
        description="Unprocessed emotions and feeling patterns",
        subcategories=(
            Subcategory(id="suppressed", name="Suppressed emotions",
                        description="Feelings you've pushed down or avoided"),
            Subcategory(id="triggers", name="Emotional triggers",
                        description="Situations that provoke strong emotional reactions"),
            Subcategory(id="attachment", name="Attachment patterns",
                        description="How you connect (or disconnect) in relationships"),
            Subcategory(id="worth", name="Self-worth issues",
                        description="Deep feelings about your value and deservingness"),
        ),
    ),
)

_PROMPTS = (
    AssessmentPrompt(
        key="what_bothers",
        question="What exactly about this situation bothers you?",
        placeholder="e.g., 'He points out my mistakes in front of the team'",
    ),
    AssessmentPrompt(
        key="how_it_feels",
        question="How does it make you feel?",
        placeholder="e.g., 'Anxious, small, a bit angry'",
    ),
    AssessmentPrompt(
        key="story_telling",
        question="What story do you tell yourself about it?",
        placeholder="e.g., 'I'm not good enough and everyone can see it'",
    ),
    AssessmentPrompt(
        key="contributing",
        question="What might you be contributing to this situation?",
        placeholder="Optional, leave blank if nothing comes to mind",
        required=False,
    ),
)

_STRATEGIES = (
    Strategy(id="boundaries", label="Set clear boundaries",
             description="Define what you will and won't accept"),
    Strategy(id="communication", label="Improve communication",
             description="Express needs and expectations clearly"),
    Strategy(id="support", label="Seek support",
             description="Get help from others or professionals"),
    Strategy(id="distance", label="Create distance",
             description="Limit exposure or interaction"),
    Strategy(id="acceptance", label="Practice acceptance",
             description="Accept what cannot be changed"),
    Strategy(id="influence", label="Expand influence",
             description="Find ways to increase your control"),
    Strategy(id="perspective", label="Shift perspective",
             description="Reframe how you view the situation"),
    Strategy(id="alternatives", label="Find alternatives",
             description="Explore other options or paths"),
)

_KEYWORD_FAMILIES = (
    KeywordFamily(
        id="anxiety",
        keywords=("anxious", "anxiety", "worry", "worried", "nervous", "scared", "afraid", "fear", "panic"),
        subcategories=("Fear-based thinking", "Emotional triggers"),
    ),
    KeywordFamily(
        id="anger",
        keywords=("angry", "anger", "frustrated", "frustration", "irritated", "furious", "resent", "annoyed"),
        subcategories=("Emotional triggers", "Suppressed emotions"),
    ),
    KeywordFamily(
        id="powerless",
        keywords=("powerless", "helpless", "stuck", "trapped", "hopeless", "no control", "can't change"),
        categories=("Conditioning",),
        subcategories=("Limiting beliefs",),
    ),
    KeywordFamily(
        id="insecurity",
        keywords=("insecure", "not good enough", "failure", "fail", "worthless", "inadequate", "doubt", "stupid"),
        subcategories=("Self-worth issues", "Comparison and judgment", "Limiting beliefs"),
    ),
)


@lru_cache(maxsize=1)
def load_content() -> LessonContent:
    """Return the Day 1 lesson content."""
    return LessonContent(
        title="Expose Your Reality",
        description=(
            "Today, we're going to surface everything that's been weighing on your mind. "
            "No judgment, no analysis yet - just honest acknowledgment of what you're experiencing."
        ),
        objectives=(
            "Identify and list your current problems and challenges",
            "Separate internal struggles from external circumstances",
            "Begin to see patterns in what's troubling you",
            "Create a complete picture of your current reality",
        ),
        internal_examples=(
            "I feel anxious about the future",
            "I can't stop comparing myself to others",
            "I procrastinate on important tasks",
            "I doubt my abilities constantly",
        ),
        external_examples=(
            "My workplace is toxic",
            "My partner doesn't understand me",
            "Money is tight this month",
            "My family has too many expectations",
        ),
        categories=_CATEGORIES,
        prompts=_PROMPTS,
        strategies=_STRATEGIES,
        keyword_families=_KEYWORD_FAMILIES,
    )
