import pytest

from lessonflow.content.catalog import load_content
from lessonflow.flow.assessment import ExternalAssessmentStage
from lessonflow.flow.errors import FlowValidationError, StageError
from lessonflow.flow.state import FlowState, Stage
from lessonflow.problems.models import ProblemKind

ANSWERS = ("He points out my mistakes in meetings", "Anxious and small", "I'm not good enough", "")


def _stage(internal=("I doubt myself",), external=("My boss criticizes me",), require_link=True):
    state = FlowState(user_id="user-1", lesson_id=1, stage=Stage.EXTERNAL_ASSESSMENT)
    for text in internal:
        state.problems.add_problem(ProblemKind.INTERNAL, text)
    for text in external:
        state.problems.add_problem(ProblemKind.EXTERNAL, text)
    return state, ExternalAssessmentStage(state, load_content(), require_link=require_link)


def _answer_all(stage):
    result = None
    for text in ANSWERS:
        result = stage.answer(text)
    return result


def test_required_questions_reject_blank_answers():
    state, stage = _stage()

    with pytest.raises(FlowValidationError) as exc:
        stage.answer("   ")

    assert exc.value.field == "what_bothers"
    assert state.question_index == 0


def test_contributing_may_be_left_blank():
    state, stage = _stage()

    assert _answer_all(stage) == Stage.EXTERNAL_ASSESSMENT
    assert state.linking
    assessment = state.problems.external[0].assessment
    assert assessment.story_telling == "I'm not good enough"
    assert assessment.contributing == ""


def test_linking_requires_a_selection():
    state, stage = _stage()
    _answer_all(stage)

    with pytest.raises(FlowValidationError) as exc:
        stage.link([])
    assert exc.value.field == "internal_ids"
    assert state.linking

    doubt = state.problems.internal[0]
    assert stage.link([doubt.id]) == Stage.SUMMARY
    boss = state.problems.external[0]
    assert boss.linked_internal_ids == [doubt.id]
    assert doubt.linked_external_ids == [boss.id]


def test_empty_link_allowed_when_not_required():
    state, stage = _stage(require_link=False)
    _answer_all(stage)

    assert stage.link([]) == Stage.SUMMARY


def test_unknown_internal_id_is_rejected():
    state, stage = _stage()
    _answer_all(stage)

    with pytest.raises(FlowValidationError):
        stage.link(["not-a-problem"])


def test_linking_skipped_without_internal_problems():
    state, stage = _stage(internal=())

    assert _answer_all(stage) == Stage.SUMMARY
    assert not state.linking


def test_each_external_problem_is_assessed_in_turn():
    state, stage = _stage(external=("My boss criticizes me", "Money is tight"))
    _answer_all(stage)

    assert stage.link([state.problems.internal[0].id]) == Stage.EXTERNAL_ASSESSMENT
    assert state.external_index == 1
    assert state.question_index == 0
    assert stage.current.text == "Money is tight"


def test_back_keeps_answers():
    state, stage = _stage()
    _answer_all(stage)

    assert stage.back() == Stage.EXTERNAL_ASSESSMENT
    assert not state.linking
    assert stage.prompt.key == "contributing"

    stage.back()
    stage.back()
    assert stage.prompt.key == "how_it_feels"
    assert stage.current_answer() == "Anxious and small"

    stage.back()
    assert stage.back() == Stage.CATEGORIZATION


def test_back_from_first_question_without_internals_goes_to_collection():
    state, stage = _stage(internal=())

    assert stage.back() == Stage.COLLECTION


def test_answer_during_linking_is_a_stage_error():
    state, stage = _stage()
    _answer_all(stage)

    with pytest.raises(StageError):
        stage.answer("more")


def test_link_before_questions_is_a_stage_error():
    state, stage = _stage()

    with pytest.raises(StageError):
        stage.link([state.problems.internal[0].id])


def test_ratings_are_validated_and_stored():
    state, stage = _stage()

    with pytest.raises(FlowValidationError) as exc:
        stage.rate(control=11)
    assert exc.value.field == "control"

    with pytest.raises(FlowValidationError):
        stage.rate(strategies=["teleport"])

    stage.rate(control=3, impact=8, strategies=["boundaries", "support", "boundaries"])
    assessment = state.problems.external[0].assessment
    assert (assessment.control, assessment.impact) == (3, 8)
    assert assessment.strategies == ["boundaries", "support"]


def test_suggestions_match_feelings_to_internal_problems():
    state, stage = _stage(internal=("I worry about everything", "I hold back in meetings", "I procrastinate"))
    state.problems.internal[1].category = "Mind"
    state.problems.internal[1].subcategory = "Fear-based thinking"
    _answer_all(stage)

    worry, held_back, _ = state.problems.internal
    assert stage.suggestions() == [worry.id, held_back.id]
    assert state.problems.external[0].linked_internal_ids == []


def test_no_suggestions_without_feeling_words():
    state, stage = _stage()
    stage.answer("The commute")
    stage.answer("Tired")
    stage.answer("It is what it is")

    assert stage.suggestions() == []
