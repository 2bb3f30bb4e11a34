"""Pytest configuration and fixtures for unit tests."""

from datetime import date

import pytest

from tests.unit.mocks import InMemoryDBClient


@pytest.fixture
def in_memory_db():
    """Provides a fresh InMemoryDBClient for each test."""
    return InMemoryDBClient()


@pytest.fixture
def patched_db(monkeypatch, in_memory_db):
    """Patches src.core.db_client functions to use InMemoryDBClient."""
    monkeypatch.setattr("src.core.db_client.create_record", in_memory_db.create_record)
    monkeypatch.setattr("src.core.db_client.get_record", in_memory_db.get_record)
    monkeypatch.setattr("src.core.db_client.update_record", in_memory_db.update_record)
    monkeypatch.setattr("src.core.db_client.upsert_record", in_memory_db.upsert_record)
    monkeypatch.setattr("src.core.db_client.list_records", in_memory_db.list_records)
    monkeypatch.setattr("src.core.db_client.get_first_record", in_memory_db.get_first_record)
    monkeypatch.setattr("src.core.db_client.transaction", in_memory_db.transaction)

    return in_memory_db


class Org:
    """Test data builder over an InMemoryDBClient.

    Usage:
        alice = org.member("Alice")
        task = org.task("Standup", recurrence_type="daily", anchor_date=date(2025, 6, 2))
        assignment = org.assign(task, alice)
    """

    def __init__(self, db: InMemoryDBClient):
        self.db = db

    def member(self, full_name: str, *, manager: dict | None = None, active: bool = True) -> dict:
        return self.db.seed(
            "members",
            {
                "full_name": full_name,
                "email": None,
                "manager_id": manager["id"] if manager else None,
                "is_active": active,
            },
        )

    def task(
        self,
        name: str,
        *,
        anchor_date: date,
        recurrence_type: str = "none",
        recurrence_config: dict | str | None = None,
        benchmark: float | None = None,
    ) -> dict:
        return self.db.seed(
            "tasks",
            {
                "name": name,
                "description": None,
                "category": None,
                "benchmark": benchmark,
                "anchor_date": anchor_date,
                "recurrence_type": recurrence_type,
                "recurrence_config": recurrence_config,
            },
        )

    def assign(self, task: dict, member: dict, *, by: dict | None = None) -> dict:
        return self.db.seed(
            "task_assignments",
            {
                "task_id": task["id"],
                "assigned_to": member["id"],
                "assigned_by": (by or member)["id"],
                "delegation_type": "self" if by is None else "downward",
            },
        )

    def depend(self, task: dict, on: dict) -> dict:
        return self.db.seed("task_dependencies", {"task_id": task["id"], "depends_on_task_id": on["id"]})

    def completion(
        self,
        assignment: dict,
        scheduled_date: date,
        *,
        status: str = "completed",
        completion_date: date | None = None,
        quantity: float | None = None,
        notes: str | None = None,
        approval_status: str = "pending",
    ) -> dict:
        return self.db.seed(
            "task_completions",
            {
                "assignment_id": assignment["id"],
                "scheduled_date": scheduled_date,
                "completion_date": completion_date or scheduled_date,
                "status": status,
                "quantity_completed": quantity,
                "notes": notes,
                "approval_status": approval_status,
                "manager_comment": None,
            },
        )

    def weekly_off(self, day_of_week: str | int) -> dict:
        return self.db.seed("weekly_offs", {"day_of_week": str(day_of_week)})

    def user_weekly_offs(self, member: dict, days: list[str | int]) -> dict:
        return self.db.seed("user_weekly_off_overrides", {"user_id": member["id"], "days_of_week": days})

    def public_holiday(self, holiday_date: date, name: str = "Holiday") -> dict:
        return self.db.seed("public_holidays", {"holiday_date": holiday_date, "name": name})

    def leave(self, member: dict, start: date, end: date, *, approval_status: str = "approved") -> dict:
        return self.db.seed(
            "personal_holidays",
            {"user_id": member["id"], "start_date": start, "end_date": end, "approval_status": approval_status},
        )


@pytest.fixture
def org(patched_db):
    """Builder for members, tasks, assignments and calendar data in the patched database."""
    return Org(patched_db)
