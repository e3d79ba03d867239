import pytest

from lessonflow.flow.errors import SessionNotFoundError
from lessonflow.flow.state import FlowState, Stage
from lessonflow.problems.models import ProblemKind
from lessonflow.sessions.redis_client import SAVE_LOCK_PREFIX, SESSION_PREFIX
from lessonflow.sessions.store import SessionStore


@pytest.fixture
def sessions(redis):
    return SessionStore(redis, ttl_seconds=600)


async def test_saved_state_loads_back(sessions):
    state = FlowState(user_id="user-1", lesson_id=4, stage=Stage.COLLECTION)
    state.problems.add_problem(ProblemKind.INTERNAL, "I doubt myself")

    await sessions.save(state)
    loaded = await sessions.load(state.flow_id)

    assert loaded.stage == Stage.COLLECTION
    assert loaded.problems.internal[0].text == "I doubt myself"
    assert loaded.problems.dirty


async def test_sessions_expire(sessions, redis):
    state = FlowState(user_id="user-1", lesson_id=4)

    await sessions.save(state)

    assert 0 < await redis.ttl(f"{SESSION_PREFIX}{state.flow_id}") <= 600


async def test_unknown_session_raises(sessions):
    with pytest.raises(SessionNotFoundError):
        await sessions.load("missing")


async def test_save_lock_is_exclusive(sessions):
    assert await sessions.acquire_save_lock("flow-1")
    assert not await sessions.acquire_save_lock("flow-1")
    assert await sessions.acquire_save_lock("flow-2")

    await sessions.release_save_lock("flow-1")

    assert await sessions.acquire_save_lock("flow-1")


async def test_discard_removes_session_and_lock(sessions, redis):
    state = FlowState(user_id="user-1", lesson_id=4)
    await sessions.save(state)
    await sessions.acquire_save_lock(state.flow_id)

    await sessions.discard(state.flow_id)

    assert await redis.exists(f"{SESSION_PREFIX}{state.flow_id}", f"{SAVE_LOCK_PREFIX}{state.flow_id}") == 0
    with pytest.raises(SessionNotFoundError):
        await sessions.load(state.flow_id)


async def test_save_lock_held_follows_the_lock(sessions):
    assert not await sessions.save_lock_held("flow-1")

    await sessions.acquire_save_lock("flow-1")
    assert await sessions.save_lock_held("flow-1")

    await sessions.release_save_lock("flow-1")
    assert not await sessions.save_lock_held("flow-1")
