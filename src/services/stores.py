"""Record store interfaces used by the scheduling engine, with SQLite-backed defaults.

The engine only ever talks to these three protocols. The default
implementations translate between `db_client` records and domain models.
"""

import json
import logging
from datetime import date
from typing import Any, NamedTuple, Protocol

from src.core import db_client
from src.core.config import constants
from src.core.errors import RecurrenceConfigurationError
from src.core.recurrence import parse_recurrence_config
from src.core.working_days import WorkingDayCalendar, normalize_weekday, resolve_weekly_offs
from src.domain.calendar import LeaveInterval
from src.domain.completion import CompletionKey, TaskCompletion
from src.domain.task import Task, TaskAssignment, TaskDependency


logger = logging.getLogger(__name__)


class CompletionStore(Protocol):
    """Completion records keyed by (assignment, scheduled date)."""

    async def get(self, assignment_id: str, scheduled_date: date) -> TaskCompletion | None: ...

    async def get_range(
        self, assignment_ids: list[str], start: date, end: date
    ) -> dict[CompletionKey, TaskCompletion]: ...

    async def upsert(self, assignment_id: str, scheduled_date: date, fields: dict[str, Any]) -> TaskCompletion:
        """Insert or replace the record for the key in one atomic write."""
        ...

    async def update(self, completion_id: str, fields: dict[str, Any]) -> TaskCompletion: ...

    async def list_for_assignment(self, assignment_id: str) -> list[TaskCompletion]:
        """Every record of an assignment, latest scheduled date first."""
        ...


class OrgCalendarStore(Protocol):
    """Organization and per-user working-day data."""

    async def get_user_weekly_off_override(self, user_id: str) -> set[int] | None:
        """Weekly offs the user overrides the organization's with, or None when there is no override."""
        ...

    async def get_org_weekly_off(self) -> set[int]: ...

    async def get_public_holidays(self) -> set[date]: ...

    async def get_approved_leave(self, user_id: str) -> list[LeaveInterval]: ...


class TaskGraphStore(Protocol):
    """Tasks, their assignments, and the dependency edges between tasks."""

    async def get_task(self, task_id: str) -> Task: ...

    async def get_dependencies(self, task_id: str) -> list[str]:
        """IDs of the tasks `task_id` directly depends on."""
        ...

    async def get_assignment(self, user_id: str, task_id: str) -> TaskAssignment | None: ...

    async def get_assignment_by_id(self, assignment_id: str) -> TaskAssignment: ...

    async def list_assignments(self, user_id: str) -> list[TaskAssignment]: ...

    async def list_all_dependencies(self) -> list[TaskDependency]: ...

    async def add_dependency(self, task_id: str, depends_on_task_id: str) -> TaskDependency: ...


async def list_all(*, collection: str, filter_query: str = "", sort: str = "") -> list[dict[str, Any]]:
    """Read every page of a listing."""
    per_page = constants.DEFAULT_PER_PAGE_LIMIT
    records: list[dict[str, Any]] = []
    page = 1
    while True:
        batch = await db_client.list_records(
            collection=collection,
            page=page,
            per_page=per_page,
            filter_query=filter_query,
            sort=sort,
        )
        records.extend(batch)
        if len(batch) < per_page:
            return records
        page += 1


def _decode_json(value: Any) -> Any:
    if isinstance(value, str):
        return json.loads(value) if value.strip() else None
    return value


def task_from_record(record: dict[str, Any]) -> Task:
    """Build a Task, marking rather than rejecting a recurrence that cannot be parsed."""
    anchor_date = date.fromisoformat(str(record["anchor_date"])[:10])
    recurrence_type = record.get("recurrence_type") or "none"
    config = None
    recurrence_error = None
    try:
        raw = _decode_json(record.get("recurrence_config"))
        config = parse_recurrence_config(recurrence_type, raw, anchor_date=anchor_date)
    except (RecurrenceConfigurationError, json.JSONDecodeError) as e:
        recurrence_error = str(e)
        logger.warning(
            "Task has an unusable recurrence configuration",
            extra={"task_id": record["id"], "recurrence_type": recurrence_type, "error": recurrence_error},
        )
        if recurrence_type not in {"none", "daily", "weekly", "monthly", "yearly", "custom"}:
            recurrence_type = "custom"

    return Task(
        id=record["id"],
        name=record["name"],
        description=record.get("description"),
        category=record.get("category"),
        benchmark=record.get("benchmark"),
        anchor_date=anchor_date,
        recurrence_type=recurrence_type,
        recurrence_config=config,
        recurrence_error=recurrence_error,
    )


class SqliteCompletionStore:
    """CompletionStore over the `task_completions` collection."""

    collection = "task_completions"

    async def get(self, assignment_id: str, scheduled_date: date) -> TaskCompletion | None:
        record = await db_client.get_first_record(
            collection=self.collection,
            filter_query=(
                f'assignment_id = "{db_client.sanitize_param(assignment_id)}" '
                f'&& scheduled_date = "{scheduled_date.isoformat()}"'
            ),
        )
        return TaskCompletion(**record) if record else None

    async def get_range(self, assignment_ids: list[str], start: date, end: date) -> dict[CompletionKey, TaskCompletion]:
        result: dict[CompletionKey, TaskCompletion] = {}
        chunk_size = constants.LOOKUP_CHUNK_SIZE
        for offset in range(0, len(assignment_ids), chunk_size):
            chunk = assignment_ids[offset : offset + chunk_size]
            ids_clause = " || ".join(f'assignment_id = "{db_client.sanitize_param(a_id)}"' for a_id in chunk)
            records = await list_all(
                collection=self.collection,
                filter_query=(
                    f'({ids_clause}) && scheduled_date >= "{start.isoformat()}" '
                    f'&& scheduled_date <= "{end.isoformat()}"'
                ),
            )
            for record in records:
                completion = TaskCompletion(**record)
                result[completion.key] = completion
        return result

    async def upsert(self, assignment_id: str, scheduled_date: date, fields: dict[str, Any]) -> TaskCompletion:
        record = await db_client.upsert_record(
            collection=self.collection,
            conflict_fields=("assignment_id", "scheduled_date"),
            data={**fields, "assignment_id": assignment_id, "scheduled_date": scheduled_date},
        )
        return TaskCompletion(**record)

    async def update(self, completion_id: str, fields: dict[str, Any]) -> TaskCompletion:
        record = await db_client.update_record(collection=self.collection, record_id=completion_id, data=fields)
        return TaskCompletion(**record)

    async def list_for_assignment(self, assignment_id: str) -> list[TaskCompletion]:
        records = await list_all(
            collection=self.collection,
            filter_query=f'assignment_id = "{db_client.sanitize_param(assignment_id)}"',
            sort="-scheduled_date",
        )
        return [TaskCompletion(**r) for r in records]


class SqliteOrgCalendarStore:
    """OrgCalendarStore over the weekly-off, holiday and leave collections."""

    def _weekdays(self, values: list[Any], *, source: str) -> set[int]:
        days: set[int] = set()
        for value in values:
            try:
                days.add(normalize_weekday(value))
            except ValueError:
                logger.warning("Ignoring unrecognized weekly off", extra={"value": value, "source": source})
        return days

    async def get_user_weekly_off_override(self, user_id: str) -> set[int] | None:
        record = await db_client.get_first_record(
            collection="user_weekly_off_overrides",
            filter_query=f'user_id = "{db_client.sanitize_param(user_id)}"',
        )
        if record is None:
            return None
        values = _decode_json(record.get("days_of_week")) or []
        return self._weekdays(values, source=f"user:{user_id}")

    async def get_org_weekly_off(self) -> set[int]:
        records = await list_all(collection="weekly_offs")
        return self._weekdays([r["day_of_week"] for r in records], source="organization")

    async def get_public_holidays(self) -> set[date]:
        records = await list_all(collection="public_holidays")
        return {date.fromisoformat(str(r["holiday_date"])[:10]) for r in records}

    async def get_approved_leave(self, user_id: str) -> list[LeaveInterval]:
        records = await list_all(
            collection="personal_holidays",
            filter_query=f'user_id = "{db_client.sanitize_param(user_id)}" && approval_status = "approved"',
            sort="start_date",
        )
        return [LeaveInterval(start=r["start_date"], end=r["end_date"]) for r in records]


class SqliteTaskGraphStore:
    """TaskGraphStore over the `tasks`, `task_assignments` and `task_dependencies` collections."""

    async def get_task(self, task_id: str) -> Task:
        record = await db_client.get_record(collection="tasks", record_id=task_id)
        return task_from_record(record)

    async def get_dependencies(self, task_id: str) -> list[str]:
        records = await list_all(
            collection="task_dependencies",
            filter_query=f'task_id = "{db_client.sanitize_param(task_id)}"',
        )
        return [r["depends_on_task_id"] for r in records]

    async def get_assignment(self, user_id: str, task_id: str) -> TaskAssignment | None:
        record = await db_client.get_first_record(
            collection="task_assignments",
            filter_query=(
                f'assigned_to = "{db_client.sanitize_param(user_id)}" '
                f'&& task_id = "{db_client.sanitize_param(task_id)}"'
            ),
        )
        return TaskAssignment(**record) if record else None

    async def get_assignment_by_id(self, assignment_id: str) -> TaskAssignment:
        record = await db_client.get_record(collection="task_assignments", record_id=assignment_id)
        return TaskAssignment(**record)

    async def list_assignments(self, user_id: str) -> list[TaskAssignment]:
        records = await list_all(
            collection="task_assignments",
            filter_query=f'assigned_to = "{db_client.sanitize_param(user_id)}"',
        )
        return [TaskAssignment(**r) for r in records]

    async def list_all_dependencies(self) -> list[TaskDependency]:
        records = await list_all(collection="task_dependencies")
        return [TaskDependency(**r) for r in records]

    async def add_dependency(self, task_id: str, depends_on_task_id: str) -> TaskDependency:
        record = await db_client.create_record(
            collection="task_dependencies",
            data={"task_id": task_id, "depends_on_task_id": depends_on_task_id},
        )
        return TaskDependency(**record)


class Stores(NamedTuple):
    """The three stores a service call reads and writes through."""

    completions: CompletionStore
    calendar: OrgCalendarStore
    graph: TaskGraphStore


def default_stores() -> Stores:
    return Stores(
        completions=SqliteCompletionStore(),
        calendar=SqliteOrgCalendarStore(),
        graph=SqliteTaskGraphStore(),
    )


async def load_calendar(user_id: str, calendar_store: OrgCalendarStore) -> WorkingDayCalendar:
    """Fetch a user's working-day data once and build their calendar from it."""
    override = await calendar_store.get_user_weekly_off_override(user_id)
    org_offs = await calendar_store.get_org_weekly_off()
    return WorkingDayCalendar(
        user_id=user_id,
        weekly_offs=resolve_weekly_offs(override, org_offs),
        public_holidays=frozenset(await calendar_store.get_public_holidays()),
        leave=tuple(await calendar_store.get_approved_leave(user_id)),
    )
