"""Error taxonomy for the scheduling engine and its user-facing classification."""

from datetime import date
from enum import Enum

from pydantic import BaseModel


class ErrorSeverity(Enum):
    """Severity levels for errors."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCode:
    """Error codes for specific error conditions."""

    # Recurrence errors
    ERR_INVALID_RECURRENCE_CONFIG = "ERR_INVALID_RECURRENCE_CONFIG"

    # Completion errors
    ERR_COMPLETION_VALIDATION = "ERR_COMPLETION_VALIDATION"
    ERR_DEPENDENCY_UNMET = "ERR_DEPENDENCY_UNMET"
    ERR_DEPENDENCY_CYCLE = "ERR_DEPENDENCY_CYCLE"

    # Calendar errors
    ERR_NO_WORKING_DAY = "ERR_NO_WORKING_DAY"

    # Storage errors
    ERR_RECORD_NOT_FOUND = "ERR_RECORD_NOT_FOUND"
    ERR_STORAGE = "ERR_STORAGE"

    # Generic errors
    ERR_UNKNOWN = "ERR_UNKNOWN"


class TaskPulseError(Exception):
    """Base class for errors raised by the engine."""

    code: str = ErrorCode.ERR_UNKNOWN


class RecurrenceConfigurationError(TaskPulseError, ValueError):
    """A task's recurrence definition cannot be evaluated.

    Readers never see this: evaluation fails closed and logs it as a data-quality warning.
    """

    code = ErrorCode.ERR_INVALID_RECURRENCE_CONFIG


class CompletionValidationError(TaskPulseError, ValueError):
    """A completion write is missing a field its status requires."""

    code = ErrorCode.ERR_COMPLETION_VALIDATION

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class DependencyUnmetError(TaskPulseError):
    """A completion write is blocked by unfinished prerequisite tasks."""

    code = ErrorCode.ERR_DEPENDENCY_UNMET

    def __init__(self, blocking_task_names: list[str], *, scheduled_date: date) -> None:
        self.blocking_task_names = list(blocking_task_names)
        self.scheduled_date = scheduled_date
        names = ", ".join(self.blocking_task_names)
        super().__init__(f"Complete these tasks for {scheduled_date.isoformat()} first: {names}")


class DependencyCycleError(TaskPulseError, ValueError):
    """Adding a dependency edge would make the task graph cyclic."""

    code = ErrorCode.ERR_DEPENDENCY_CYCLE

    def __init__(self, task_id: str, depends_on_task_id: str) -> None:
        self.task_id = task_id
        self.depends_on_task_id = depends_on_task_id
        super().__init__(f"Task {task_id} cannot depend on {depends_on_task_id}: the dependency graph would cycle")


class NoWorkingDayFoundError(TaskPulseError):
    """The next-working-day search exhausted its bound, usually a calendar misconfiguration."""

    code = ErrorCode.ERR_NO_WORKING_DAY

    def __init__(self, *, start: date, searched_days: int, last_candidate: date) -> None:
        self.start = start
        self.searched_days = searched_days
        self.last_candidate = last_candidate
        super().__init__(
            f"No working day found within {searched_days} days after {start.isoformat()} "
            f"(last candidate {last_candidate.isoformat()})"
        )


class ErrorResponse(BaseModel):
    """Structured error response with user-friendly messaging."""

    code: str
    message: str
    suggestion: str
    severity: ErrorSeverity
    http_status: int = 500


def classify_error_with_response(exception: Exception) -> ErrorResponse:
    """Classify an error and return a structured response with recovery suggestions.

    Args:
        exception: The exception raised during execution

    Returns:
        ErrorResponse with code, message, suggestion, and severity
    """
    # Imported here to keep errors importable from db_client without a cycle
    from src.core.db_client import DatabaseError, RecordNotFoundError

    if isinstance(exception, DependencyUnmetError):
        return ErrorResponse(
            code=exception.code,
            message=str(exception),
            suggestion="Record the blocking tasks for the same date, then try again.",
            severity=ErrorSeverity.LOW,
            http_status=409,
        )

    if isinstance(exception, CompletionValidationError):
        return ErrorResponse(
            code=exception.code,
            message=str(exception),
            suggestion="Supply the missing value and submit again.",
            severity=ErrorSeverity.LOW,
            http_status=422,
        )

    if isinstance(exception, DependencyCycleError):
        return ErrorResponse(
            code=exception.code,
            message=str(exception),
            suggestion="Remove the reverse dependency before adding this one.",
            severity=ErrorSeverity.LOW,
            http_status=409,
        )

    if isinstance(exception, RecurrenceConfigurationError):
        return ErrorResponse(
            code=exception.code,
            message=str(exception),
            suggestion="Fix the task's recurrence settings; it will not be scheduled until then.",
            severity=ErrorSeverity.MEDIUM,
            http_status=422,
        )

    if isinstance(exception, NoWorkingDayFoundError):
        return ErrorResponse(
            code=exception.code,
            message=str(exception),
            suggestion="Check the weekly offs, holidays and leave configured for this user.",
            severity=ErrorSeverity.HIGH,
            http_status=500,
        )

    if isinstance(exception, RecordNotFoundError):
        return ErrorResponse(
            code=ErrorCode.ERR_RECORD_NOT_FOUND,
            message="The requested record does not exist.",
            suggestion="Check the identifier and try again.",
            severity=ErrorSeverity.LOW,
            http_status=404,
        )

    if isinstance(exception, DatabaseError):
        return ErrorResponse(
            code=ErrorCode.ERR_STORAGE,
            message="The record store failed to complete the request.",
            suggestion="Please try again later. If the problem persists, contact support.",
            severity=ErrorSeverity.HIGH,
            http_status=500,
        )

    return ErrorResponse(
        code=ErrorCode.ERR_UNKNOWN,
        message="An unexpected error occurred.",
        suggestion="Please try again later. If the problem persists, contact support.",
        severity=ErrorSeverity.MEDIUM,
        http_status=500,
    )
