"""Pydantic models for service layer return types.

These models provide type safety at service boundaries, converting database
dictionaries into typed objects with validation.
"""

from datetime import date

from pydantic import BaseModel, Field

from src.domain.calendar import NonWorkingReason
from src.domain.completion import ApprovalStatus, CompletionStatus, DayStatus


class DailyTaskStatus(BaseModel):
    """Derived status of one assignment on one date, with the stored record's details."""

    assignment_id: str
    task_id: str
    task_name: str
    scheduled_date: date
    status: DayStatus
    non_working_reason: NonWorkingReason | None = None
    benchmark: float | None = None
    quantity_completed: float | None = None
    notes: str | None = None
    completion_date: date | None = None
    approval_status: ApprovalStatus | None = None
    manager_comment: str | None = None


class PendingObligation(BaseModel):
    """Unresolved due date carried forward from before today."""

    assignment_id: str
    task_id: str
    task_name: str
    scheduled_date: date
    benchmark: float | None = None
    status: DayStatus = DayStatus.PENDING


class DailyView(BaseModel):
    """Tasks due on a date plus everything still pending from earlier days."""

    user_id: str
    day: date
    tasks: list[DailyTaskStatus]
    pending: list[PendingObligation]


class MonthlyTaskRow(BaseModel):
    """One assignment's statuses for every day of a month."""

    assignment_id: str
    task_id: str
    task_name: str
    category: str | None = None
    benchmark: float | None = None
    days: list[DailyTaskStatus]


class MonthlyView(BaseModel):
    """A user's month grid."""

    user_id: str
    year: int
    month: int
    as_of: date
    rows: list[MonthlyTaskRow]


class AggregationDay(BaseModel):
    """Input to the completion percentage: a derived status and the figures behind it."""

    status: DayStatus
    quantity_completed: float | None = None
    benchmark: float | None = None


class CompletionBreakdown(BaseModel):
    """How a completion percentage was made up."""

    total_counted: int = 0
    total_credit: float = 0.0
    completed_count: int = 0
    partial_count: int = 0
    partial_total: float = Field(default=0.0, description="Sum of quantity/benchmark over partial days")
    delayed_count: int = 0
    not_done_count: int = 0
    pending_count: int = 0
    scheduled_count: int = 0
    percentage: int = 0


class DayPercentage(BaseModel):
    """Completion percentage across all assignments on one date."""

    day: date
    counted: int
    percentage: int


class MonthlySummary(BaseModel):
    """Day-wise and month-wide completion figures for a month view."""

    user_id: str
    year: int
    month: int
    days: list[DayPercentage]
    breakdown: CompletionBreakdown


class TeamMemberStats(BaseModel):
    """One direct report's completion figures for a month."""

    user_id: str
    full_name: str
    email: str | None = None
    percentage: int
    breakdown: CompletionBreakdown


class TeamStats(BaseModel):
    """Month completion figures for a manager's active direct reports."""

    manager_id: str
    year: int
    month: int
    approved_only: bool
    members: list[TeamMemberStats]


class CompletionHistoryEntry(BaseModel):
    """A stored completion record as the history lists it."""

    id: str
    scheduled_date: date
    completion_date: date
    status: CompletionStatus
    effective_status: DayStatus
    is_delayed: bool
    quantity_completed: float | None = None
    notes: str | None = None
    approval_status: ApprovalStatus
    manager_comment: str | None = None
