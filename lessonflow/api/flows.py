"""Lesson flow endpoints: one session per flow, each action a request."""

from __future__ import annotations

import logging
from typing import Callable

from fastapi import APIRouter, Request
from pydantic import BaseModel

from lessonflow.config import settings
from lessonflow.flow.controller import LessonFlow
from lessonflow.flow.errors import SaveInProgressError
from lessonflow.flow.state import FlowState
from lessonflow.flow.summary import ReflectionSummary
from lessonflow.flow.view import FlowView
from lessonflow.persistence.client import BackendClient
from lessonflow.persistence.models import Reflection
from lessonflow.problems.models import ProblemKind
from lessonflow.sessions.store import SessionStore

logger = logging.getLogger("lessonflow.api")
router = APIRouter(prefix="/flows", tags=["flows"])


class StartFlowRequest(BaseModel):
    user_id: str
    lesson_id: int


class ProblemRequest(BaseModel):
    kind: ProblemKind
    text: str


class EditRequest(BaseModel):
    text: str | None = None


class CategorizeRequest(BaseModel):
    category: str
    subcategory: str | None = None


class AnswerRequest(BaseModel):
    text: str = ""


class RatingsRequest(BaseModel):
    control: int | None = None
    impact: int | None = None
    strategies: list[str] = []


class LinkRequest(BaseModel):
    internal_ids: list[str] = []


class FeedbackRequest(BaseModel):
    rating: int | None = None
    text: str | None = None


class SaveResponse(BaseModel):
    flow: FlowView
    reflection: Reflection
    dismiss_after_seconds: float = 0.0


def _sessions(request: Request) -> SessionStore:
    return request.app.state.sessions


def _backend(request: Request) -> BackendClient:
    return request.app.state.backend


def _unmount(sessions: SessionStore):
    async def on_complete(state: FlowState, reflection: Reflection) -> None:
        await sessions.discard(state.flow_id)
        logger.info("Flow %s finished with reflection %s", state.flow_id, reflection.id)
    return on_complete


async def _load(request: Request, flow_id: str) -> LessonFlow:
    sessions = _sessions(request)
    state = await sessions.load(flow_id)
    return LessonFlow(state, _backend(request), on_complete=_unmount(sessions))


async def _ensure_not_saving(sessions: SessionStore, flow_id: str) -> None:
    # a pending save writes its own copy of the state back when it finishes
    if await sessions.save_lock_held(flow_id):
        raise SaveInProgressError("This reflection is being saved; try again when the save finishes")


async def _apply(request: Request, flow_id: str, action: Callable[[LessonFlow], object]) -> FlowView:
    """Load the flow, run one synchronous action, store the result."""
    sessions = _sessions(request)
    flow = await _load(request, flow_id)
    await _ensure_not_saving(sessions, flow_id)
    action(flow)
    await sessions.save(flow.state)
    return flow.view()


@router.post("", status_code=201)
async def start_flow(body: StartFlowRequest, request: Request) -> FlowView:
    """Open a lesson flow; an existing reflection opens it in edit mode."""
    flow = await LessonFlow.start(_backend(request), body.user_id, body.lesson_id)
    await _sessions(request).save(flow.state)
    return flow.view()


@router.get("/{flow_id}")
async def get_flow(flow_id: str, request: Request) -> FlowView:
    flow = await _load(request, flow_id)
    view = flow.view()
    view.saving = view.saving or await _sessions(request).save_lock_held(flow_id)
    return view


@router.delete("/{flow_id}")
async def leave_flow(flow_id: str, request: Request, force: bool = False):
    flow = await _load(request, flow_id)
    await _ensure_not_saving(_sessions(request), flow_id)
    flow.leave(force=force)
    await _sessions(request).discard(flow_id)
    return {"flow_id": flow_id, "discarded": True}


@router.post("/{flow_id}/begin")
async def begin(flow_id: str, request: Request) -> FlowView:
    return await _apply(request, flow_id, lambda f: f.begin())


@router.post("/{flow_id}/problems")
async def add_problem(flow_id: str, body: ProblemRequest, request: Request) -> FlowView:
    return await _apply(request, flow_id, lambda f: f.add_problem(body.kind, body.text))


@router.delete("/{flow_id}/problems/{kind}/{problem_id}")
async def delete_problem(flow_id: str, kind: ProblemKind, problem_id: str, request: Request) -> FlowView:
    return await _apply(request, flow_id, lambda f: f.delete_problem(kind, problem_id))


@router.post("/{flow_id}/problems/{kind}/{problem_id}/edit")
async def start_edit(flow_id: str, kind: ProblemKind, problem_id: str, body: EditRequest, request: Request) -> FlowView:
    return await _apply(request, flow_id, lambda f: f.start_edit(kind, problem_id, body.text))


@router.put("/{flow_id}/problems/{kind}/{problem_id}")
async def commit_edit(flow_id: str, kind: ProblemKind, problem_id: str, body: EditRequest, request: Request) -> FlowView:
    return await _apply(request, flow_id, lambda f: f.commit_edit(kind, problem_id, body.text))


@router.post("/{flow_id}/collection/finish")
async def finish_collection(flow_id: str, request: Request) -> FlowView:
    return await _apply(request, flow_id, lambda f: f.finish_collection())


@router.post("/{flow_id}/categorize")
async def categorize(flow_id: str, body: CategorizeRequest, request: Request) -> FlowView:
    return await _apply(request, flow_id, lambda f: f.categorize(body.category, body.subcategory))


@router.post("/{flow_id}/categorize/confirm")
async def confirm_category(flow_id: str, request: Request) -> FlowView:
    return await _apply(request, flow_id, lambda f: f.confirm_category())


@router.post("/{flow_id}/assessment/answer")
async def answer(flow_id: str, body: AnswerRequest, request: Request) -> FlowView:
    return await _apply(request, flow_id, lambda f: f.answer(body.text))


@router.post("/{flow_id}/assessment/ratings")
async def rate_external(flow_id: str, body: RatingsRequest, request: Request) -> FlowView:
    return await _apply(
        request, flow_id, lambda f: f.rate_external(body.control, body.impact, body.strategies)
    )


@router.get("/{flow_id}/assessment/suggestions")
async def suggestions(flow_id: str, request: Request):
    flow = await _load(request, flow_id)
    return {"flow_id": flow_id, "suggested_internal_ids": flow.suggestions()}


@router.post("/{flow_id}/assessment/link")
async def link(flow_id: str, body: LinkRequest, request: Request) -> FlowView:
    return await _apply(request, flow_id, lambda f: f.link(body.internal_ids))


@router.post("/{flow_id}/back")
async def back(flow_id: str, request: Request) -> FlowView:
    return await _apply(request, flow_id, lambda f: f.back())


@router.get("/{flow_id}/summary")
async def summary(flow_id: str, request: Request) -> ReflectionSummary:
    flow = await _load(request, flow_id)
    return flow.summary()


@router.put("/{flow_id}/feedback")
async def set_feedback(flow_id: str, body: FeedbackRequest, request: Request) -> FlowView:
    return await _apply(request, flow_id, lambda f: f.set_feedback(body.rating, body.text))


async def _save(request: Request, flow_id: str, complete: bool) -> SaveResponse:
    sessions = _sessions(request)
    if not await sessions.acquire_save_lock(flow_id):
        raise SaveInProgressError("A save for this reflection is already in progress")

    try:
        flow = await _load(request, flow_id)
        try:
            reflection = await (flow.complete() if complete else flow.save_changes())
        finally:
            # keeps last_error and the completion bookkeeping for a retry
            await sessions.save(flow.state)
    finally:
        await sessions.release_save_lock(flow_id)

    return SaveResponse(
        flow=flow.view(),
        reflection=reflection,
        dismiss_after_seconds=settings.celebration_delay_seconds if complete else 0.0,
    )


@router.post("/{flow_id}/complete")
async def complete(flow_id: str, request: Request) -> SaveResponse:
    return await _save(request, flow_id, complete=True)


@router.post("/{flow_id}/save")
async def save_changes(flow_id: str, request: Request) -> SaveResponse:
    return await _save(request, flow_id, complete=False)
