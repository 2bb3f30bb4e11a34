"""JSON API over the scheduling engine."""

import logging
from datetime import UTC, date, datetime

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel, Field

from src.core.aggregation import completion_breakdown
from src.core.db_client import DatabaseError, RecordNotFoundError
from src.core.errors import TaskPulseError, classify_error_with_response
from src.domain.completion import CompletionInput, CompletionStatus, TaskCompletion
from src.domain.task import TaskAssignment, TaskDependency
from src.models.service_models import (
    AggregationDay,
    CompletionBreakdown,
    CompletionHistoryEntry,
    DailyTaskStatus,
    DailyView,
    MonthlySummary,
    MonthlyView,
    PendingObligation,
    TeamStats,
)
from src.services import (
    assignment_service,
    completion_service,
    dependency_service,
    status_service,
    team_service,
)


logger = logging.getLogger(__name__)

router = APIRouter(tags=["tasks"])

_HANDLED_ERRORS = (TaskPulseError, RecordNotFoundError, DatabaseError)


class CompletionRequest(BaseModel):
    """Body of a completion write."""

    entry: CompletionInput | None = None
    status: CompletionStatus | None = None
    quantity: float | None = None
    notes: str | None = None
    completion_date: date | None = None


class ReviewRequest(BaseModel):
    """Body of a manager review."""

    approve: bool
    comment: str | None = None


class AssignRequest(BaseModel):
    task_id: str
    assigned_to: str
    assigned_by: str


class DependencyRequest(BaseModel):
    depends_on_task_id: str


class PercentageRequest(BaseModel):
    days: list[AggregationDay] = Field(default_factory=list)


def today() -> date:
    """Current UTC date; the only place the API reads the clock."""
    return datetime.now(UTC).date()


def _http_error(exc: Exception) -> HTTPException:
    response = classify_error_with_response(exc)
    if response.http_status >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error("api_request_failed", extra={"code": response.code, "error": str(exc)})
    else:
        logger.info("api_request_rejected", extra={"code": response.code, "error": str(exc)})
    return HTTPException(
        status_code=response.http_status,
        detail=response.model_dump(mode="json", exclude={"http_status"}),
    )


@router.get("/assignments/{assignment_id}/status")
async def get_daily_status(
    assignment_id: str,
    day: date = Query(alias="date"),
    as_of: date | None = None,
) -> DailyTaskStatus:
    """Status of an assignment on one date."""
    try:
        return await status_service.daily_status(assignment_id=assignment_id, day=day, as_of=as_of or today())
    except _HANDLED_ERRORS as e:
        raise _http_error(e) from e


@router.get("/assignments/{assignment_id}/statuses")
async def get_range_statuses(
    assignment_id: str,
    start: date,
    end: date,
    as_of: date | None = None,
) -> list[DailyTaskStatus]:
    """Statuses of an assignment for each day in [start, end]."""
    if end < start:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="end must not precede start")
    try:
        return await status_service.range_statuses(
            assignment_id=assignment_id,
            start=start,
            end=end,
            as_of=as_of or today(),
        )
    except _HANDLED_ERRORS as e:
        raise _http_error(e) from e


@router.get("/users/{user_id}/pending")
async def get_pending(
    user_id: str,
    today_: date | None = Query(default=None, alias="today"),
) -> list[PendingObligation]:
    """Unresolved due dates carried forward from before today."""
    try:
        return await status_service.pending_obligations(user_id=user_id, today=today_ or today())
    except _HANDLED_ERRORS as e:
        raise _http_error(e) from e


@router.get("/users/{user_id}/daily")
async def get_daily_view(
    user_id: str,
    day: date | None = Query(default=None, alias="date"),
    as_of: date | None = None,
) -> DailyView:
    """Tasks for a date together with the pending list."""
    reference = as_of or today()
    try:
        return await status_service.daily_view(user_id=user_id, day=day or reference, as_of=reference)
    except _HANDLED_ERRORS as e:
        raise _http_error(e) from e


@router.get("/users/{user_id}/month")
async def get_monthly_view(
    user_id: str,
    year: int = Query(ge=1970, le=9999),
    month: int = Query(ge=1, le=12),
    as_of: date | None = None,
) -> MonthlyView:
    """Month grid of statuses for every assignment the user holds."""
    try:
        return await status_service.monthly_view(user_id=user_id, year=year, month=month, as_of=as_of or today())
    except _HANDLED_ERRORS as e:
        raise _http_error(e) from e


@router.get("/users/{user_id}/month/summary")
async def get_monthly_summary(
    user_id: str,
    year: int = Query(ge=1970, le=9999),
    month: int = Query(ge=1, le=12),
    as_of: date | None = None,
    approved_only: bool = False,
) -> MonthlySummary:
    """Day-wise and month-wide completion percentages, leave days excluded."""
    try:
        return await status_service.monthly_summary(
            user_id=user_id,
            year=year,
            month=month,
            as_of=as_of or today(),
            approved_only=approved_only,
        )
    except _HANDLED_ERRORS as e:
        raise _http_error(e) from e


@router.get("/users/{manager_id}/team")
async def get_team_stats(
    manager_id: str,
    year: int = Query(ge=1970, le=9999),
    month: int = Query(ge=1, le=12),
    as_of: date | None = None,
    approved_only: bool = True,
) -> TeamStats:
    """Month completion percentage of each active direct report."""
    try:
        return await team_service.team_completion_stats(
            manager_id=manager_id,
            year=year,
            month=month,
            as_of=as_of or today(),
            approved_only=approved_only,
        )
    except _HANDLED_ERRORS as e:
        raise _http_error(e) from e


@router.get("/assignments/{assignment_id}/history")
async def get_completion_history(
    assignment_id: str,
    year: int | None = Query(default=None, ge=1970, le=9999),
    month: int | None = Query(default=None, ge=1, le=12),
) -> list[CompletionHistoryEntry]:
    """Completion records of an assignment, latest first; a month hides work completed before it."""
    if (year is None) != (month is None):
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="year and month go together")
    since = date(year, month, 1) if year is not None and month is not None else None
    try:
        return await status_service.completion_history(assignment_id=assignment_id, since=since)
    except _HANDLED_ERRORS as e:
        raise _http_error(e) from e


@router.put("/assignments/{assignment_id}/completions/{scheduled_date}")
async def put_completion(assignment_id: str, scheduled_date: date, body: CompletionRequest) -> TaskCompletion:
    """Record the outcome for a due date, replacing any earlier record."""
    try:
        return await completion_service.set_completion(
            assignment_id=assignment_id,
            scheduled_date=scheduled_date,
            as_of=today(),
            entry=body.entry,
            status=body.status,
            quantity=body.quantity,
            notes=body.notes,
            completion_date=body.completion_date,
        )
    except _HANDLED_ERRORS as e:
        raise _http_error(e) from e


@router.post("/assignments/{assignment_id}/completions/{scheduled_date}/review")
async def post_review(assignment_id: str, scheduled_date: date, body: ReviewRequest) -> TaskCompletion:
    """Approve or reject a completion record."""
    try:
        return await completion_service.review_completion(
            assignment_id=assignment_id,
            scheduled_date=scheduled_date,
            approve=body.approve,
            comment=body.comment,
        )
    except _HANDLED_ERRORS as e:
        raise _http_error(e) from e


@router.post("/assignments", status_code=status.HTTP_201_CREATED)
async def post_assignment(body: AssignRequest) -> TaskAssignment:
    """Assign a task to a member."""
    try:
        return await assignment_service.assign_task(
            task_id=body.task_id,
            assigned_to=body.assigned_to,
            assigned_by=body.assigned_by,
        )
    except _HANDLED_ERRORS as e:
        raise _http_error(e) from e


@router.post("/tasks/{task_id}/dependencies", status_code=status.HTTP_201_CREATED)
async def post_dependency(task_id: str, body: DependencyRequest) -> TaskDependency:
    """Make a task depend on another one."""
    try:
        return await dependency_service.add_dependency(task_id=task_id, depends_on_task_id=body.depends_on_task_id)
    except _HANDLED_ERRORS as e:
        raise _http_error(e) from e


@router.post("/aggregation/percentage")
async def post_percentage(body: PercentageRequest) -> CompletionBreakdown:
    """Weighted completion percentage over the given days."""
    return completion_breakdown(body.days)
