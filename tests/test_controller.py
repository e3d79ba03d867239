import pytest

from conftest import walk_to_summary
from lessonflow.config import settings
from lessonflow.flow.controller import LessonFlow
from lessonflow.flow.errors import (
    FlowValidationError,
    PersistenceError,
    SaveInProgressError,
    StageError,
    UnsavedChangesError,
)
from lessonflow.flow.state import Stage
from lessonflow.problems.models import ProblemKind

INTERNAL = ProblemKind.INTERNAL
EXTERNAL = ProblemKind.EXTERNAL


async def _start(backend) -> LessonFlow:
    return await LessonFlow.start(backend, "user-1", 1)


async def test_fresh_flow_opens_on_the_intro(backend):
    flow = await _start(backend)

    assert flow.stage == Stage.INTRO
    assert not flow.state.edit_mode
    assert flow.begin() == Stage.COLLECTION
    assert flow.back() == Stage.INTRO


async def test_internal_only_flow_goes_from_categorization_to_summary(backend):
    flow = await _start(backend)
    flow.begin()
    flow.add_problem(INTERNAL, "I doubt myself")
    flow.add_problem(INTERNAL, "I procrastinate")

    assert flow.finish_collection() == Stage.CATEGORIZATION
    assert flow.categorize("Mind", "Limiting beliefs") == Stage.CATEGORIZATION
    assert flow.categorize("Mind", "Fear-based thinking") == Stage.SUMMARY

    summary = flow.summary()
    assert summary.internal_count == 2
    assert summary.external_count == 0
    assert summary.category_count == 1


async def test_external_only_flow_skips_categorization(backend):
    flow = await _start(backend)
    flow.begin()
    flow.add_problem(EXTERNAL, "My boss criticizes me")

    assert flow.finish_collection() == Stage.EXTERNAL_ASSESSMENT
    assert flow.step() == (2, 4)


async def test_collection_needs_at_least_one_problem(backend):
    flow = await _start(backend)
    flow.begin()
    flow.add_problem(INTERNAL, "   ")

    with pytest.raises(FlowValidationError):
        flow.finish_collection()
    assert flow.stage == Stage.COLLECTION


async def test_minimum_internal_problems_is_configurable(backend, monkeypatch):
    monkeypatch.setattr(settings, "min_internal_problems", 2)
    flow = await _start(backend)
    flow.begin()
    flow.add_problem(INTERNAL, "I doubt myself")
    flow.add_problem(EXTERNAL, "Money is tight")

    with pytest.raises(FlowValidationError) as exc:
        flow.finish_collection()
    assert exc.value.field == "internal"

    flow.add_problem(INTERNAL, "I procrastinate")
    assert flow.finish_collection() == Stage.CATEGORIZATION


async def test_pending_inline_edit_is_committed_when_collection_finishes(backend):
    flow = await _start(backend)
    flow.begin()
    problem = flow.add_problem(INTERNAL, "I doubt")
    flow.start_edit(INTERNAL, problem.id, "I doubt myself constantly")

    flow.finish_collection()

    assert flow.problems.internal[0].text == "I doubt myself constantly"
    assert flow.problems.editing_id is None


async def test_linking_blocks_until_an_internal_problem_is_chosen(backend):
    flow = await _start(backend)
    flow.begin()
    doubt = flow.add_problem(INTERNAL, "I doubt myself")
    boss = flow.add_problem(EXTERNAL, "My boss criticizes me")
    flow.finish_collection()
    flow.categorize("Mind", "Limiting beliefs")
    for text in ("He points out my mistakes", "Anxious", "I'm not good enough", ""):
        flow.answer(text)

    with pytest.raises(FlowValidationError):
        flow.link([])
    assert flow.stage == Stage.EXTERNAL_ASSESSMENT
    assert flow.view().current.linking

    assert doubt.id in flow.suggestions()
    assert flow.link([doubt.id]) == Stage.SUMMARY
    assert flow.problems.get_external(boss.id).linked_internal_ids == [doubt.id]
    assert flow.problems.get_internal(doubt.id).linked_external_ids == [boss.id]


async def test_actions_outside_their_stage_are_rejected(backend):
    flow = await _start(backend)

    with pytest.raises(StageError):
        flow.add_problem(INTERNAL, "I doubt myself")
    with pytest.raises(StageError):
        flow.categorize("Mind")
    with pytest.raises(StageError):
        await flow.complete()


async def test_back_navigation_keeps_everything(backend):
    flow = walk_to_summary(await _start(backend))
    before = flow.problems.model_dump()

    assert flow.back() == Stage.EXTERNAL_ASSESSMENT
    assert flow.state.linking
    flow.back()
    assert flow.assessment.prompt.key == "contributing"
    for _ in range(3):
        flow.back()
    assert flow.back() == Stage.CATEGORIZATION
    assert flow.back() == Stage.COLLECTION

    assert flow.problems.model_dump() == before


async def test_complete_saves_the_record_and_advances_the_day(backend, postgrest):
    flow = walk_to_summary(await _start(backend))
    flow.set_feedback(4, "Helpful")

    saved = await flow.complete()

    assert flow.stage == Stage.COMPLETED
    assert saved.completed
    assert not flow.problems.dirty
    row = postgrest.reflections[0]
    assert row["structured_data"]["feedbackRating"] == 4
    assert row["structured_data"]["feedbackText"] == "Helpful"
    assert row["structured_data"]["completedAt"] is not None
    assert postgrest.profiles["user-1"]["current_day"] == 2
    assert postgrest.profiles["user-1"]["streak_count"] == 1


async def test_saved_record_reads_back_unchanged(backend):
    flow = walk_to_summary(await _start(backend))
    flow.set_feedback(3, "Some of it landed")
    await flow.complete()

    fetched = await backend.get_reflection("user-1", 1)

    record = fetched.structured_data
    assert record.internal_problems == flow.problems.internal
    assert record.external_problems == flow.problems.external
    assert record.feedback_rating == 3
    assert record.feedback_text == "Some of it landed"


async def test_unset_feedback_is_saved_as_defaults(backend, postgrest):
    flow = walk_to_summary(await _start(backend))
    await flow.complete()

    record = postgrest.reflections[0]["structured_data"]
    assert record["feedbackRating"] == 0
    assert record["feedbackText"] == ""


async def test_rating_outside_range_is_rejected(backend):
    flow = walk_to_summary(await _start(backend))

    with pytest.raises(FlowValidationError):
        flow.set_feedback(rating=6)
    assert flow.state.feedback_rating == 0


async def test_failed_save_keeps_summary_and_can_be_retried(backend, postgrest):
    flow = walk_to_summary(await _start(backend))
    before = flow.problems.model_dump()
    postgrest.offline = True

    with pytest.raises(PersistenceError):
        await flow.complete()

    assert flow.stage == Stage.SUMMARY
    assert flow.state.last_error
    assert not flow.state.saving
    assert flow.problems.model_dump() == before
    assert postgrest.profiles["user-1"]["current_day"] == 1

    postgrest.offline = False
    await flow.complete()

    assert flow.stage == Stage.COMPLETED
    assert flow.state.last_error == ""
    assert postgrest.profiles["user-1"]["current_day"] == 2


async def test_failed_day_advance_retries_only_what_is_missing(backend, postgrest):
    flow = walk_to_summary(await _start(backend))
    postgrest.failing.add(("PATCH", "profiles"))

    with pytest.raises(PersistenceError):
        await flow.complete()
    assert flow.stage == Stage.SUMMARY
    assert len(postgrest.reflections) == 1

    postgrest.failing.clear()
    await flow.complete()

    assert len(postgrest.reflections) == 1
    assert postgrest.profiles["user-1"]["current_day"] == 2


async def test_second_save_while_one_is_pending_is_rejected(backend):
    flow = walk_to_summary(await _start(backend))
    flow.state.saving = True

    with pytest.raises(SaveInProgressError):
        await flow.complete()


async def test_completion_is_signalled_after_the_celebration(backend):
    calls = []

    async def on_complete(state, reflection):
        calls.append((state.flow_id, reflection.id))

    flow = await LessonFlow.start(backend, "user-1", 1, on_complete=on_complete)
    walk_to_summary(flow)
    saved = await flow.complete()
    await flow.completion_task

    assert calls == [(flow.state.flow_id, saved.id)]


async def test_edit_mode_resumes_from_the_stored_record(backend, postgrest):
    first = walk_to_summary(await _start(backend))
    first.set_feedback(5, "Great")
    await first.complete()
    completed_at = postgrest.reflections[0]["structured_data"]["completedAt"]

    flow = await _start(backend)

    assert flow.state.edit_mode
    assert flow.stage == Stage.SUMMARY
    assert flow.problems.internal == first.problems.internal
    assert flow.state.feedback_rating == 5
    assert flow.problems.internal[0].category == "Mind"

    flow.set_feedback(text="Even better on reflection")
    saved = await flow.save_changes()

    assert saved.completed
    assert saved.updated_at is not None
    assert postgrest.reflections[0]["structured_data"]["completedAt"] == completed_at
    assert postgrest.reflections[0]["structured_data"]["feedbackText"] == "Even better on reflection"
    assert postgrest.profiles["user-1"]["current_day"] == 2


async def test_edit_mode_allows_reentering_every_stage(backend):
    await walk_to_summary(await _start(backend)).complete()
    flow = await _start(backend)

    assert flow.back() == Stage.EXTERNAL_ASSESSMENT
    flow.back()
    for _ in range(4):
        flow.back()
    assert flow.stage == Stage.CATEGORIZATION
    assert flow.confirm_category() == Stage.EXTERNAL_ASSESSMENT
    assert flow.view().current.answer == "He points out my mistakes in meetings"


async def test_completing_again_in_edit_mode_does_not_advance_the_day(backend, postgrest):
    await walk_to_summary(await _start(backend)).complete()
    flow = await _start(backend)

    await flow.complete()

    assert postgrest.profiles["user-1"]["current_day"] == 2


async def test_save_changes_is_edit_mode_only(backend):
    flow = walk_to_summary(await _start(backend))

    with pytest.raises(StageError):
        await flow.save_changes()


async def test_leaving_with_unsaved_changes_needs_force(backend):
    flow = await _start(backend)
    flow.leave()

    flow.begin()
    flow.add_problem(INTERNAL, "I doubt myself")
    with pytest.raises(UnsavedChangesError):
        flow.leave()
    flow.leave(force=True)


async def test_fetch_failure_on_start_is_surfaced(backend, postgrest):
    postgrest.offline = True

    with pytest.raises(PersistenceError):
        await _start(backend)


async def test_step_indicator_follows_the_stages(backend):
    flow = await _start(backend)
    flow.begin()
    assert flow.step() == (1, 3)

    flow.add_problem(INTERNAL, "I doubt myself")
    flow.add_problem(EXTERNAL, "Money is tight")
    flow.finish_collection()
    assert flow.step() == (2, 4)

    flow.categorize("Unknown")
    assert flow.step() == (3, 4)
