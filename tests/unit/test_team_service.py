"""Tests for team service."""

from datetime import date

import pytest

from src.core.config import constants
from src.core.db_client import RecordNotFoundError
from src.services import team_service


JUNE_2 = date(2025, 6, 2)


@pytest.fixture
def team(org):
    """A manager with two active reports, one inactive report, and a skip-level member."""
    org.weekly_off("saturday")
    org.weekly_off("sunday")
    manager = org.member("Mina Manager")
    ava = org.member("Ava", manager=manager)
    ben = org.member("Ben", manager=manager)
    org.member("Gone", manager=manager, active=False)
    org.member("Skip", manager=ava)
    return {"manager": manager, "ava": ava, "ben": ben}


@pytest.mark.unit
class TestDirectReports:
    """Tests for direct_reports."""

    async def test_active_direct_reports_only(self, team):
        reports = await team_service.direct_reports(team["manager"]["id"])

        assert [r.full_name for r in reports] == ["Ava", "Ben"]

    async def test_reports_beyond_first_page(self, org, monkeypatch):
        monkeypatch.setattr(constants, "DEFAULT_PER_PAGE_LIMIT", 2)
        manager = org.member("Mina Manager")
        for name in ("A", "B", "C", "D", "E"):
            org.member(name, manager=manager)

        reports = await team_service.direct_reports(manager["id"])

        assert len(reports) == 5


@pytest.mark.unit
class TestTeamCompletionStats:
    """Tests for team_completion_stats."""

    async def test_month_percentage_per_report(self, org, team):
        standup = org.task("Standup", anchor_date=JUNE_2, recurrence_type="daily")
        ava_standup = org.assign(standup, team["ava"], by=team["manager"])
        ben_standup = org.assign(standup, team["ben"], by=team["manager"])
        for day in (2, 3, 4, 5, 6):
            org.completion(ava_standup, date(2025, 6, day), approval_status="approved")
        org.completion(ben_standup, date(2025, 6, 2), approval_status="approved")
        org.completion(ben_standup, date(2025, 6, 3), completion_date=date(2025, 6, 4), approval_status="approved")
        for member in (team["ava"], team["ben"]):
            org.leave(member, date(2025, 6, 9), date(2025, 6, 30))

        stats = await team_service.team_completion_stats(
            manager_id=team["manager"]["id"], year=2025, month=6, as_of=date(2025, 7, 1), approved_only=False
        )

        by_name = {m.full_name: m for m in stats.members}
        assert list(by_name) == ["Ava", "Ben"]
        assert by_name["Ava"].percentage == 100
        # completed, delayed, then three working days not done: (1 + 0.5) / 5
        assert by_name["Ben"].percentage == 30
        assert by_name["Ben"].breakdown.delayed_count == 1
        assert by_name["Ben"].breakdown.not_done_count == 3

    async def test_approved_only_by_default(self, org, team):
        standup = org.task("Standup", anchor_date=JUNE_2)
        org.completion(org.assign(standup, team["ava"]), JUNE_2)

        stats = await team_service.team_completion_stats(
            manager_id=team["manager"]["id"], year=2025, month=6, as_of=date(2025, 6, 3)
        )

        ava = stats.members[0]
        assert stats.approved_only is True
        assert ava.breakdown.total_counted == 0
        assert ava.percentage == 0

    async def test_report_without_assignments(self, team):
        stats = await team_service.team_completion_stats(
            manager_id=team["manager"]["id"], year=2025, month=6, as_of=date(2025, 6, 3)
        )

        assert [(m.full_name, m.percentage) for m in stats.members] == [("Ava", 0), ("Ben", 0)]

    async def test_manager_without_reports(self, org):
        loner = org.member("Loner")

        stats = await team_service.team_completion_stats(
            manager_id=loner["id"], year=2025, month=6, as_of=date(2025, 6, 3)
        )

        assert stats.members == []

    async def test_unknown_manager(self, org):
        with pytest.raises(RecordNotFoundError):
            await team_service.team_completion_stats(manager_id="999", year=2025, month=6, as_of=date(2025, 6, 3))
