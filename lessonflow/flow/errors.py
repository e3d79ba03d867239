"""Error taxonomy for the lesson flow and its collaborators."""

from __future__ import annotations


class LessonFlowError(Exception):
    """Base for every error the flow surfaces to its caller."""


class FlowValidationError(LessonFlowError, ValueError):
    """Input that blocks a stage from advancing. Recoverable in place."""

    def __init__(self, message: str, field: str = "") -> None:
        super().__init__(message)
        self.field = field


class StageError(LessonFlowError):
    """An action was invoked in a stage that does not accept it."""


class SaveInProgressError(LessonFlowError):
    pass


class UnsavedChangesError(LessonFlowError):
    pass


class SessionNotFoundError(LessonFlowError):
    pass


class PersistenceError(LessonFlowError):
    """The hosted backend failed or was unreachable."""

    def __init__(self, message: str, operation: str = "", status_code: int | None = None) -> None:
        super().__init__(message)
        self.operation = operation
        self.status_code = status_code
