"""Completion percentage aggregation.

Every counted day contributes a credit between 0 and 1 (partial work can
exceed 1): completed scores 1, partial scores quantity/benchmark, delayed
scores a flat half, anything else scores 0. Not-applicable days are not
counted at all.
"""

import math
from collections.abc import Iterable
from datetime import date

from src.core.config import constants
from src.domain.completion import ApprovalStatus, DayStatus
from src.models.service_models import (
    AggregationDay,
    CompletionBreakdown,
    DailyTaskStatus,
    DayPercentage,
    MonthlySummary,
    MonthlyView,
)


def round_half_up(value: float) -> int:
    """Round .5 upward, matching how percentages were shown historically."""
    return math.floor(value + 0.5)


def day_credit(day: AggregationDay) -> float:
    """Credit one counted day contributes to the numerator."""
    match day.status:
        case DayStatus.COMPLETED:
            return 1.0
        case DayStatus.PARTIAL:
            if day.benchmark and day.benchmark > 0 and day.quantity_completed is not None:
                return day.quantity_completed / day.benchmark
            return 0.0
        case DayStatus.DELAYED:
            return constants.DELAYED_CONTRIBUTION
        case _:
            return 0.0


def _percentage(credit: float, counted: int) -> int:
    if counted == 0:
        return 0
    return round_half_up(100 * credit / counted)


def completion_percentage(days: Iterable[AggregationDay]) -> int:
    """Weighted completion percentage, 0 when nothing is countable."""
    return completion_breakdown(days).percentage


def completion_breakdown(days: Iterable[AggregationDay]) -> CompletionBreakdown:
    """Count days per status alongside the weighted percentage."""
    breakdown = CompletionBreakdown()
    for day in days:
        if day.status == DayStatus.NOT_APPLICABLE:
            continue
        credit = day_credit(day)
        breakdown.total_counted += 1
        breakdown.total_credit += credit
        match day.status:
            case DayStatus.COMPLETED:
                breakdown.completed_count += 1
            case DayStatus.PARTIAL:
                breakdown.partial_count += 1
                breakdown.partial_total += credit
            case DayStatus.DELAYED:
                breakdown.delayed_count += 1
            case DayStatus.NOT_DONE:
                breakdown.not_done_count += 1
            case DayStatus.PENDING:
                breakdown.pending_count += 1
            case DayStatus.SCHEDULED:
                breakdown.scheduled_count += 1

    breakdown.percentage = _percentage(breakdown.total_credit, breakdown.total_counted)
    return breakdown


def to_aggregation_day(status: DailyTaskStatus) -> AggregationDay:
    return AggregationDay(
        status=status.status,
        quantity_completed=status.quantity_completed,
        benchmark=status.benchmark,
    )


def aggregate_month(
    view: MonthlyView,
    *,
    leave_dates: set[date] | frozenset[date] = frozenset(),
    approved_only: bool = False,
) -> MonthlySummary:
    """Day-wise and month-wide percentages for a month view.

    Leave days are left out entirely. With `approved_only`, a day only counts
    once a manager has approved its completion record.
    """
    by_day: dict[date, list[AggregationDay]] = {}
    for row in view.rows:
        for status in row.days:
            if status.scheduled_date in leave_dates:
                continue
            if approved_only and status.approval_status != ApprovalStatus.APPROVED:
                continue
            by_day.setdefault(status.scheduled_date, []).append(to_aggregation_day(status))

    day_percentages = []
    for day in sorted(by_day):
        breakdown = completion_breakdown(by_day[day])
        day_percentages.append(
            DayPercentage(day=day, counted=breakdown.total_counted, percentage=breakdown.percentage)
        )

    month_breakdown = completion_breakdown(entry for entries in by_day.values() for entry in entries)
    return MonthlySummary(
        user_id=view.user_id,
        year=view.year,
        month=view.month,
        days=day_percentages,
        breakdown=month_breakdown,
    )
