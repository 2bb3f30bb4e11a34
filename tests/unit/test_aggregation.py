"""Tests for completion percentage aggregation."""

from datetime import date

import pytest

from src.core.aggregation import (
    aggregate_month,
    completion_breakdown,
    completion_percentage,
    round_half_up,
)
from src.domain.completion import ApprovalStatus, DayStatus
from src.models.service_models import AggregationDay, DailyTaskStatus, MonthlyTaskRow, MonthlyView


def day(status: DayStatus, quantity: float | None = None, benchmark: float | None = None) -> AggregationDay:
    return AggregationDay(status=status, quantity_completed=quantity, benchmark=benchmark)


@pytest.mark.unit
class TestCompletionPercentage:
    """Tests for completion_percentage."""

    def test_empty_is_zero(self):
        assert completion_percentage([]) == 0

    def test_only_not_applicable_is_zero(self):
        assert completion_percentage([day(DayStatus.NOT_APPLICABLE)] * 3) == 0

    def test_all_completed(self):
        assert completion_percentage([day(DayStatus.COMPLETED)] * 4) == 100

    def test_not_applicable_is_excluded_from_denominator(self):
        days = [day(DayStatus.COMPLETED), day(DayStatus.NOT_APPLICABLE), day(DayStatus.NOT_DONE)]

        assert completion_percentage(days) == 50

    def test_partial_uses_quantity_over_benchmark(self):
        days = [day(DayStatus.PARTIAL, quantity=30, benchmark=40), day(DayStatus.COMPLETED)]

        # (0.75 + 1) / 2
        assert completion_percentage(days) == 88

    def test_partial_without_benchmark_scores_zero(self):
        assert completion_percentage([day(DayStatus.PARTIAL, quantity=5)]) == 0

    def test_partial_is_not_capped(self):
        assert completion_percentage([day(DayStatus.PARTIAL, quantity=15, benchmark=10)]) == 150

    def test_delayed_scores_half(self):
        assert completion_percentage([day(DayStatus.DELAYED)]) == 50

    def test_pending_scheduled_and_not_done_score_zero(self):
        days = [day(DayStatus.PENDING), day(DayStatus.SCHEDULED), day(DayStatus.NOT_DONE), day(DayStatus.COMPLETED)]

        assert completion_percentage(days) == 25

    def test_half_rounds_up(self):
        # 0.5 credit over 4 days is 12.5%
        days = [day(DayStatus.DELAYED)] + [day(DayStatus.NOT_DONE)] * 3

        assert completion_percentage(days) == 13

    def test_round_half_up(self):
        assert round_half_up(12.5) == 13
        assert round_half_up(0.5) == 1
        assert round_half_up(12.49) == 12


@pytest.mark.unit
class TestCompletionBreakdown:
    """Tests for completion_breakdown."""

    def test_counts_per_status(self):
        breakdown = completion_breakdown(
            [
                day(DayStatus.COMPLETED),
                day(DayStatus.PARTIAL, quantity=1, benchmark=4),
                day(DayStatus.DELAYED),
                day(DayStatus.NOT_DONE),
                day(DayStatus.PENDING),
                day(DayStatus.SCHEDULED),
                day(DayStatus.NOT_APPLICABLE),
            ]
        )

        assert breakdown.total_counted == 6
        assert breakdown.completed_count == 1
        assert breakdown.partial_count == 1
        assert breakdown.partial_total == 0.25
        assert breakdown.delayed_count == 1
        assert breakdown.not_done_count == 1
        assert breakdown.pending_count == 1
        assert breakdown.scheduled_count == 1
        assert breakdown.total_credit == 1.75
        # 175 / 6 = 29.17
        assert breakdown.percentage == 29


def status_row(assignment_id: str, statuses: dict[date, tuple[DayStatus, ApprovalStatus | None]]) -> MonthlyTaskRow:
    return MonthlyTaskRow(
        assignment_id=assignment_id,
        task_id="t" + assignment_id,
        task_name="Task " + assignment_id,
        days=[
            DailyTaskStatus(
                assignment_id=assignment_id,
                task_id="t" + assignment_id,
                task_name="Task " + assignment_id,
                scheduled_date=d,
                status=s,
                approval_status=approval,
            )
            for d, (s, approval) in statuses.items()
        ],
    )


@pytest.mark.unit
class TestAggregateMonth:
    """Tests for aggregate_month."""

    def view(self) -> MonthlyView:
        approved = ApprovalStatus.APPROVED
        return MonthlyView(
            user_id="u1",
            year=2025,
            month=6,
            as_of=date(2025, 6, 30),
            rows=[
                status_row(
                    "1",
                    {
                        date(2025, 6, 2): (DayStatus.COMPLETED, approved),
                        date(2025, 6, 3): (DayStatus.NOT_DONE, None),
                        date(2025, 6, 4): (DayStatus.DELAYED, ApprovalStatus.PENDING),
                    },
                ),
                status_row(
                    "2",
                    {
                        date(2025, 6, 2): (DayStatus.NOT_DONE, None),
                        date(2025, 6, 3): (DayStatus.COMPLETED, approved),
                        date(2025, 6, 4): (DayStatus.NOT_APPLICABLE, None),
                    },
                ),
            ],
        )

    def test_day_and_month_percentages(self):
        summary = aggregate_month(self.view())

        by_day = {d.day: d for d in summary.days}
        assert by_day[date(2025, 6, 2)].percentage == 50
        assert by_day[date(2025, 6, 4)].counted == 1
        assert by_day[date(2025, 6, 4)].percentage == 50
        # (1 + 0 + 0.5 + 0 + 1) / 5
        assert summary.breakdown.percentage == 50

    def test_leave_days_are_excluded(self):
        summary = aggregate_month(self.view(), leave_dates={date(2025, 6, 3)})

        assert date(2025, 6, 3) not in {d.day for d in summary.days}
        # (1 + 0 + 0.5) / 3
        assert summary.breakdown.percentage == 50

    def test_approved_only(self):
        summary = aggregate_month(self.view(), approved_only=True)

        assert summary.breakdown.total_counted == 2
        assert summary.breakdown.percentage == 100
