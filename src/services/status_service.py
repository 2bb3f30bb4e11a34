"""Status derivation over the record store.

This module provides functions for:
- The status of one assignment on one date, or across a date range
- A user's month grid and its completion summary
- Pending carry-forward: unresolved due dates from before today
- The daily view combining today's tasks with the pending list
- The completion history of one assignment

Every function takes the reference date (`as_of` / `today`) explicitly; none
of them reads the clock.
"""

import calendar
import logging
from datetime import date, timedelta

from src.core.aggregation import aggregate_month
from src.core.config import settings
from src.core.logging import span
from src.core.recurrence import applies_on_date
from src.core.status_engine import derive_status, effective_completion_status, scan_pending_days
from src.core.working_days import WorkingDayCalendar
from src.domain.completion import CompletionKey, DayStatus, TaskCompletion
from src.domain.task import Task, TaskAssignment
from src.models.service_models import (
    CompletionHistoryEntry,
    DailyTaskStatus,
    DailyView,
    MonthlySummary,
    MonthlyTaskRow,
    MonthlyView,
    PendingObligation,
)
from src.services.stores import Stores, default_stores, load_calendar


logger = logging.getLogger(__name__)


def _date_range(start: date, end: date) -> list[date]:
    return [start + timedelta(days=offset) for offset in range((end - start).days + 1)]


def month_bounds(year: int, month: int) -> tuple[date, date]:
    """First and last day of a month."""
    return date(year, month, 1), date(year, month, calendar.monthrange(year, month)[1])


def build_daily_status(
    *,
    assignment: TaskAssignment,
    task: Task,
    work_calendar: WorkingDayCalendar,
    completion: TaskCompletion | None,
    day: date,
    as_of: date,
) -> DailyTaskStatus:
    """Combine calendar, recurrence and the stored record into one day's status."""
    working = work_calendar.is_working_day(day)
    status = derive_status(
        day=day,
        as_of=as_of,
        completion=completion,
        is_working_day=working.is_working_day,
        applies=applies_on_date(task, day),
    )
    return DailyTaskStatus(
        assignment_id=assignment.id,
        task_id=task.id,
        task_name=task.name,
        scheduled_date=day,
        status=status,
        non_working_reason=working.reason,
        benchmark=task.benchmark,
        quantity_completed=completion.quantity_completed if completion else None,
        notes=completion.notes if completion else None,
        completion_date=completion.completion_date if completion else None,
        approval_status=completion.approval_status if completion else None,
        manager_comment=completion.manager_comment if completion else None,
    )


async def daily_status(
    *,
    assignment_id: str,
    day: date,
    as_of: date,
    stores: Stores | None = None,
) -> DailyTaskStatus:
    """Status of one assignment on one date.

    Raises:
        db_client.RecordNotFoundError: If the assignment or its task does not exist
    """
    stores = stores or default_stores()
    with span("status_service.daily_status"):
        assignment = await stores.graph.get_assignment_by_id(assignment_id)
        task = await stores.graph.get_task(assignment.task_id)
        work_calendar = await load_calendar(assignment.assigned_to, stores.calendar)
        completion = await stores.completions.get(assignment_id, day)
        return build_daily_status(
            assignment=assignment,
            task=task,
            work_calendar=work_calendar,
            completion=completion,
            day=day,
            as_of=as_of,
        )


async def range_statuses(
    *,
    assignment_id: str,
    start: date,
    end: date,
    as_of: date,
    stores: Stores | None = None,
) -> list[DailyTaskStatus]:
    """One status per day in [start, end] for an assignment.

    Raises:
        ValueError: If end precedes start
    """
    if end < start:
        msg = f"Range end {end.isoformat()} precedes start {start.isoformat()}"
        raise ValueError(msg)

    stores = stores or default_stores()
    with span("status_service.range_statuses"):
        assignment = await stores.graph.get_assignment_by_id(assignment_id)
        task = await stores.graph.get_task(assignment.task_id)
        work_calendar = await load_calendar(assignment.assigned_to, stores.calendar)
        completions = await stores.completions.get_range([assignment_id], start, end)
        return [
            build_daily_status(
                assignment=assignment,
                task=task,
                work_calendar=work_calendar,
                completion=completions.get(CompletionKey(assignment_id, day)),
                day=day,
                as_of=as_of,
            )
            for day in _date_range(start, end)
        ]


async def _assignments_with_tasks(user_id: str, stores: Stores) -> list[tuple[TaskAssignment, Task]]:
    assignments = await stores.graph.list_assignments(user_id)
    tasks: dict[str, Task] = {}
    for assignment in assignments:
        if assignment.task_id not in tasks:
            tasks[assignment.task_id] = await stores.graph.get_task(assignment.task_id)
    return [(assignment, tasks[assignment.task_id]) for assignment in assignments]


async def _build_monthly_view(
    *,
    user_id: str,
    year: int,
    month: int,
    as_of: date,
    work_calendar: WorkingDayCalendar,
    stores: Stores,
) -> MonthlyView:
    first, last = month_bounds(year, month)
    days = _date_range(first, last)

    pairs = await _assignments_with_tasks(user_id, stores)
    completions = await stores.completions.get_range([a.id for a, _ in pairs], first, last)

    rows = [
        MonthlyTaskRow(
            assignment_id=assignment.id,
            task_id=task.id,
            task_name=task.name,
            category=task.category,
            benchmark=task.benchmark,
            days=[
                build_daily_status(
                    assignment=assignment,
                    task=task,
                    work_calendar=work_calendar,
                    completion=completions.get(CompletionKey(assignment.id, day)),
                    day=day,
                    as_of=as_of,
                )
                for day in days
            ],
        )
        for assignment, task in pairs
    ]

    logger.debug(
        "Built monthly view",
        extra={"user_id": user_id, "year": year, "month": month, "assignments": len(rows)},
    )
    return MonthlyView(user_id=user_id, year=year, month=month, as_of=as_of, rows=rows)


async def monthly_view(
    *,
    user_id: str,
    year: int,
    month: int,
    as_of: date,
    stores: Stores | None = None,
) -> MonthlyView:
    """Statuses for every day of a month, for every assignment the user holds."""
    stores = stores or default_stores()
    with span("status_service.monthly_view"):
        work_calendar = await load_calendar(user_id, stores.calendar)
        return await _build_monthly_view(
            user_id=user_id, year=year, month=month, as_of=as_of, work_calendar=work_calendar, stores=stores
        )


async def monthly_summary(
    *,
    user_id: str,
    year: int,
    month: int,
    as_of: date,
    approved_only: bool = False,
    stores: Stores | None = None,
) -> MonthlySummary:
    """Day-wise and month-wide completion percentages, leave days left out."""
    stores = stores or default_stores()
    with span("status_service.monthly_summary"):
        work_calendar = await load_calendar(user_id, stores.calendar)
        view = await _build_monthly_view(
            user_id=user_id, year=year, month=month, as_of=as_of, work_calendar=work_calendar, stores=stores
        )
        leave_dates = work_calendar.leave_dates_in_range(*month_bounds(year, month))
        return aggregate_month(view, leave_dates=leave_dates, approved_only=approved_only)


async def pending_obligations(
    *,
    user_id: str,
    today: date,
    stores: Stores | None = None,
) -> list[PendingObligation]:
    """Unresolved due dates before `today`, within the configured lookback window.

    Dates resolved late by a completed or partial record are not pending; they
    show as delayed in the status views instead.
    """
    stores = stores or default_stores()
    with span("status_service.pending_obligations"):
        lookback = settings.pending_lookback_days
        pairs = await _assignments_with_tasks(user_id, stores)
        if not pairs:
            return []

        work_calendar = await load_calendar(user_id, stores.calendar)
        completions = await stores.completions.get_range(
            [a.id for a, _ in pairs], today - timedelta(days=lookback), today - timedelta(days=1)
        )

        pending: list[PendingObligation] = []
        for assignment, task in pairs:
            days = scan_pending_days(
                assignment_id=assignment.id,
                today=today,
                lookback_days=lookback,
                completions=completions,
                is_working_day=lambda d: work_calendar.is_working_day(d).is_working_day,
                applies=lambda d, t=task: applies_on_date(t, d),
            )
            pending.extend(
                PendingObligation(
                    assignment_id=assignment.id,
                    task_id=task.id,
                    task_name=task.name,
                    scheduled_date=day,
                    benchmark=task.benchmark,
                )
                for day in days
            )

        logger.debug("Computed pending obligations", extra={"user_id": user_id, "count": len(pending)})
        return pending


async def daily_view(
    *,
    user_id: str,
    day: date,
    as_of: date,
    stores: Stores | None = None,
) -> DailyView:
    """Tasks for a date plus the pending list.

    A task is listed when it recurs on the date or already has a record for it.
    Nothing carries forward onto a non-working day.
    """
    stores = stores or default_stores()
    with span("status_service.daily_view"):
        pairs = await _assignments_with_tasks(user_id, stores)
        work_calendar = await load_calendar(user_id, stores.calendar)
        completions = await stores.completions.get_range([a.id for a, _ in pairs], day, day)

        tasks = []
        for assignment, task in pairs:
            completion = completions.get(CompletionKey(assignment.id, day))
            if completion is None and not applies_on_date(task, day):
                continue
            tasks.append(
                build_daily_status(
                    assignment=assignment,
                    task=task,
                    work_calendar=work_calendar,
                    completion=completion,
                    day=day,
                    as_of=as_of,
                )
            )

        pending: list[PendingObligation] = []
        if work_calendar.is_working_day(day).is_working_day:
            pending = await pending_obligations(user_id=user_id, today=day, stores=stores)

        return DailyView(user_id=user_id, day=day, tasks=tasks, pending=pending)


async def completion_history(
    *,
    assignment_id: str,
    since: date | None = None,
    stores: Stores | None = None,
) -> list[CompletionHistoryEntry]:
    """Stored records of an assignment, latest scheduled date first.

    With `since`, records completed before that date are left out; a month view
    passes its first day so work closed out in earlier months drops away.

    Raises:
        db_client.RecordNotFoundError: If the assignment does not exist
    """
    stores = stores or default_stores()
    with span("status_service.completion_history"):
        await stores.graph.get_assignment_by_id(assignment_id)
        records = await stores.completions.list_for_assignment(assignment_id)
        if since is not None:
            records = [r for r in records if r.completion_date >= since]
        records.sort(key=lambda r: (r.scheduled_date, r.completion_date), reverse=True)

        history = []
        for record in records:
            effective = effective_completion_status(record)
            history.append(
                CompletionHistoryEntry(
                    id=record.id,
                    scheduled_date=record.scheduled_date,
                    completion_date=record.completion_date,
                    status=record.status,
                    effective_status=effective,
                    is_delayed=effective == DayStatus.DELAYED,
                    quantity_completed=record.quantity_completed,
                    notes=record.notes,
                    approval_status=record.approval_status,
                    manager_comment=record.manager_comment,
                )
            )
        return history
