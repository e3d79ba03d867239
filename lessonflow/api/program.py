"""Read-only endpoints: lesson content, program progress and health."""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException, Request
from starlette.responses import Response

from lessonflow.config import settings
from lessonflow.content.catalog import load_content
from lessonflow.content.models import LessonContent
from lessonflow.progress import ProgramProgress, program_progress
from lessonflow.telemetry.metrics import get_metrics

router = APIRouter()

_start_time = datetime.now(timezone.utc)


@router.get("/content", tags=["content"])
async def content() -> LessonContent:
    return load_content()


@router.get("/users/{user_id}/progress", tags=["progress"])
async def user_progress(user_id: str, request: Request) -> ProgramProgress:
    backend = request.app.state.backend
    progress = await backend.get_progress(user_id)
    if progress is None:
        raise HTTPException(status_code=404, detail=f"No profile for user {user_id}")
    reflections = await backend.list_reflections(user_id)
    return program_progress(progress, reflections)


@router.get("/health")
async def health():
    uptime = (datetime.now(timezone.utc) - _start_time).total_seconds()
    return {
        "status": "healthy",
        "uptime_seconds": round(uptime, 2),
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": settings.service_version,
    }


@router.get("/metrics", include_in_schema=False)
async def metrics():
    body, content_type = get_metrics()
    return Response(content=body, media_type=content_type)
