"""Task domain models: recurrence definitions, tasks, and assignments."""

from datetime import date
from enum import StrEnum
from typing import Annotated, Literal, Self

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


WEEKDAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]


def sunday_weekday(day: date) -> int:
    """Weekday index with 0=Sunday through 6=Saturday."""
    return (day.weekday() + 1) % 7


class RecurrenceType(StrEnum):
    """How often a task repeats."""

    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"
    CUSTOM = "custom"


class DelegationType(StrEnum):
    """Assignee position relative to the assigner in the management hierarchy."""

    SELF = "self"
    DOWNWARD = "downward"
    UPWARD = "upward"
    PEER = "peer"


class EndNever(BaseModel):
    """Recurrence never ends."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["never"] = "never"


class EndOnDate(BaseModel):
    """Recurrence ends on a date (inclusive)."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["on_date"] = "on_date"
    on_date: date


class EndAfterOccurrences(BaseModel):
    """Recurrence ends after a number of occurrences counted from the first one."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["after_occurrences"] = "after_occurrences"
    count: int = Field(..., ge=1)


RecurrenceEnd = Annotated[EndNever | EndOnDate | EndAfterOccurrences, Field(discriminator="kind")]

Ordinal = Literal[1, 2, 3, 4, -1, -2]


class _RecurrenceBase(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    interval: int = Field(default=1, ge=1, description="Repeat every N periods")
    end: RecurrenceEnd = Field(default_factory=EndNever)


def _check_weekday(value: int | None) -> int | None:
    if value is not None and not 0 <= value <= 6:
        msg = f"weekday must be between 0 (Sunday) and 6 (Saturday), got {value}"
        raise ValueError(msg)
    return value


class DailyRecurrence(_RecurrenceBase):
    """Every N days."""

    kind: Literal["daily"] = "daily"


class CustomRecurrence(_RecurrenceBase):
    """Interval-only repetition measured in days."""

    kind: Literal["custom"] = "custom"


class WeeklyRecurrence(_RecurrenceBase):
    """Every N weeks on the given weekdays (0=Sunday)."""

    kind: Literal["weekly"] = "weekly"
    days_of_week: frozenset[int] = Field(..., min_length=1)

    @field_validator("days_of_week")
    @classmethod
    def _validate_days(cls, value: frozenset[int]) -> frozenset[int]:
        for day in value:
            _check_weekday(day)
        return value


class MonthlyRecurrence(_RecurrenceBase):
    """Every N months on a fixed day, or on the Nth/last weekday of the month."""

    kind: Literal["monthly"] = "monthly"
    day_of_month: int | None = Field(default=None, ge=1, le=31)
    ordinal: Ordinal | None = None
    weekday: int | None = None

    @field_validator("weekday")
    @classmethod
    def _validate_weekday(cls, value: int | None) -> int | None:
        return _check_weekday(value)

    @model_validator(mode="after")
    def _exactly_one_pattern(self) -> Self:
        by_weekday = self.ordinal is not None or self.weekday is not None
        if by_weekday and (self.ordinal is None or self.weekday is None):
            msg = "ordinal and weekday must be set together"
            raise ValueError(msg)
        if (self.day_of_month is not None) == by_weekday:
            msg = "set exactly one of day_of_month or ordinal+weekday"
            raise ValueError(msg)
        return self


class YearlyRecurrence(_RecurrenceBase):
    """Every N years, optionally pinned to a month and a day pattern inside it."""

    kind: Literal["yearly"] = "yearly"
    month: int | None = Field(default=None, ge=1, le=12)
    day_of_month: int | None = Field(default=None, ge=1, le=31)
    ordinal: Ordinal | None = None
    weekday: int | None = None

    @field_validator("weekday")
    @classmethod
    def _validate_weekday(cls, value: int | None) -> int | None:
        return _check_weekday(value)

    @model_validator(mode="after")
    def _consistent_pattern(self) -> Self:
        by_weekday = self.ordinal is not None or self.weekday is not None
        if by_weekday and (self.ordinal is None or self.weekday is None):
            msg = "ordinal and weekday must be set together"
            raise ValueError(msg)
        if self.day_of_month is not None and by_weekday:
            msg = "set at most one of day_of_month or ordinal+weekday"
            raise ValueError(msg)
        if (self.day_of_month is not None or by_weekday) and self.month is None:
            msg = "a yearly day pattern needs a month"
            raise ValueError(msg)
        return self


RecurrenceConfig = Annotated[
    DailyRecurrence | WeeklyRecurrence | MonthlyRecurrence | YearlyRecurrence | CustomRecurrence,
    Field(discriminator="kind"),
]


class Task(BaseModel):
    """Task data transfer object.

    A task whose stored recurrence document could not be parsed carries the
    reason in `recurrence_error` and is never scheduled.
    """

    id: str = Field(..., description="Unique task ID from database")
    name: str = Field(..., description="Task name")
    description: str | None = Field(default=None, description="Detailed task description")
    category: str | None = Field(default=None, description="Free-form grouping label")
    benchmark: float | None = Field(default=None, gt=0, description="Target quantity per occurrence")
    anchor_date: date = Field(..., description="Creation date; occurrences are computed from it")
    recurrence_type: RecurrenceType = Field(default=RecurrenceType.NONE, description="Recurrence family")
    recurrence_config: RecurrenceConfig | None = Field(default=None, description="Variant matching recurrence_type")
    recurrence_error: str | None = Field(default=None, description="Why the stored recurrence could not be parsed")

    @property
    def has_benchmark(self) -> bool:
        return self.benchmark is not None


class TaskAssignment(BaseModel):
    """A task assigned to one person."""

    id: str = Field(..., description="Unique assignment ID from database")
    task_id: str = Field(..., description="Assigned task")
    assigned_to: str = Field(..., description="Member responsible for the task")
    assigned_by: str = Field(..., description="Member who made the assignment")
    delegation_type: DelegationType = Field(..., description="Computed once at assignment time")


class TaskDependency(BaseModel):
    """Edge meaning `task_id` cannot be completed before `depends_on_task_id` on the same date."""

    task_id: str
    depends_on_task_id: str


class Member(BaseModel):
    """Organization member with an optional manager."""

    id: str
    full_name: str
    email: str | None = None
    manager_id: str | None = None
    is_active: bool = True
