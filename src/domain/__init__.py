"""Domain models and DTOs."""

from src.domain.calendar import LeaveInterval, NonWorkingReason, WorkingDayResult
from src.domain.completion import (
    ApprovalStatus,
    BinaryCompletion,
    CompletionInput,
    CompletionKey,
    CompletionStatus,
    DayStatus,
    QuantityCompletion,
    TaskCompletion,
)
from src.domain.task import (
    CustomRecurrence,
    DailyRecurrence,
    DelegationType,
    EndAfterOccurrences,
    EndNever,
    EndOnDate,
    Member,
    MonthlyRecurrence,
    RecurrenceConfig,
    RecurrenceType,
    Task,
    TaskAssignment,
    TaskDependency,
    WeeklyRecurrence,
    YearlyRecurrence,
)


__all__ = [
    "ApprovalStatus",
    "BinaryCompletion",
    "CompletionInput",
    "CompletionKey",
    "CompletionStatus",
    "CustomRecurrence",
    "DailyRecurrence",
    "DayStatus",
    "DelegationType",
    "EndAfterOccurrences",
    "EndNever",
    "EndOnDate",
    "LeaveInterval",
    "Member",
    "MonthlyRecurrence",
    "NonWorkingReason",
    "QuantityCompletion",
    "RecurrenceConfig",
    "RecurrenceType",
    "Task",
    "TaskAssignment",
    "TaskCompletion",
    "TaskDependency",
    "WeeklyRecurrence",
    "WorkingDayResult",
    "YearlyRecurrence",
]
