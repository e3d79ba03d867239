"""Map flow errors onto HTTP responses."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from lessonflow.flow.errors import (
    FlowValidationError,
    LessonFlowError,
    PersistenceError,
    SaveInProgressError,
    SessionNotFoundError,
    StageError,
    UnsavedChangesError,
)

logger = logging.getLogger("lessonflow.api")

_STATUS_CODES: list[tuple[type[LessonFlowError], int]] = [
    (FlowValidationError, 422),
    (StageError, 409),
    (SaveInProgressError, 409),
    (UnsavedChangesError, 409),
    (SessionNotFoundError, 404),
    (PersistenceError, 502),
]


def status_for(exc: LessonFlowError) -> int:
    for exc_type, status in _STATUS_CODES:
        if isinstance(exc, exc_type):
            return status
    return 400


async def lesson_flow_error_handler(request: Request, exc: LessonFlowError) -> JSONResponse:
    status = status_for(exc)
    body = {"error": type(exc).__name__, "detail": str(exc)}
    if isinstance(exc, FlowValidationError) and exc.field:
        body["field"] = exc.field
    if isinstance(exc, PersistenceError):
        body["operation"] = exc.operation
        logger.warning("%s %s -> %d: %s", request.method, request.url.path, status, exc)
    return JSONResponse(status_code=status, content=body)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(LessonFlowError, lesson_flow_error_handler)
