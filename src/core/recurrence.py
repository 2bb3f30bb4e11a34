"""Recurrence evaluation for task scheduling.

Occurrences are expanded with dateutil's rrule, anchored at the task's anchor
date at UTC midnight. Every comparison happens on calendar dates, so local time
zones and DST never change the outcome.

A task whose recurrence cannot be evaluated is never scheduled: the
evaluation functions log a data-quality warning and report no occurrence.
"""

import logging
from datetime import UTC, date, datetime, time
from typing import Any

from dateutil import parser as dateutil_parser
from dateutil.rrule import DAILY, MONTHLY, WEEKLY, YEARLY, rrule, weekdays
from pydantic import TypeAdapter, ValidationError

from src.core.errors import RecurrenceConfigurationError
from src.core.logging import log_with_context
from src.domain.task import (
    WEEKDAY_NAMES,
    CustomRecurrence,
    DailyRecurrence,
    EndAfterOccurrences,
    EndNever,
    EndOnDate,
    MonthlyRecurrence,
    RecurrenceConfig,
    RecurrenceType,
    Task,
    WeeklyRecurrence,
    YearlyRecurrence,
    sunday_weekday,
)


logger = logging.getLogger(__name__)

_config_adapter: TypeAdapter[RecurrenceConfig] = TypeAdapter(RecurrenceConfig)

_FREQUENCIES = {
    RecurrenceType.DAILY: DAILY,
    RecurrenceType.CUSTOM: DAILY,
    RecurrenceType.WEEKLY: WEEKLY,
    RecurrenceType.MONTHLY: MONTHLY,
    RecurrenceType.YEARLY: YEARLY,
}

_MONTH_NAMES = [
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
]

_ORDINAL_WORDS = {1: "first", 2: "second", 3: "third", 4: "fourth", -1: "last", -2: "second to last"}


def _rrule_weekday(day: int, n: int | None = None):
    """Map 0=Sunday weekday numbers onto dateutil's Monday-first weekday objects."""
    weekday = weekdays[(day - 1) % 7]
    return weekday(n) if n is not None else weekday


def _start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=UTC)


def _end_of_day(day: date) -> datetime:
    return datetime.combine(day, time(23, 59, 59), tzinfo=UTC)


def default_config(task: Task) -> RecurrenceConfig:
    """Config used by simple recurrence types stored without one: repeat on the anchor's own slot."""
    anchor = task.anchor_date
    match task.recurrence_type:
        case RecurrenceType.DAILY:
            return DailyRecurrence()
        case RecurrenceType.WEEKLY:
            return WeeklyRecurrence(days_of_week=frozenset({sunday_weekday(anchor)}))
        case RecurrenceType.MONTHLY:
            return MonthlyRecurrence(day_of_month=anchor.day)
        case RecurrenceType.YEARLY:
            return YearlyRecurrence(month=anchor.month, day_of_month=anchor.day)
        case _:
            msg = f"{task.recurrence_type} recurrence requires a configuration"
            raise RecurrenceConfigurationError(msg)


def _parse_legacy_date(value: Any) -> date:
    if isinstance(value, date):
        return value
    return dateutil_parser.isoparse(str(value)).date()


def _parse_legacy_end(raw: dict[str, Any]) -> EndNever | EndOnDate | EndAfterOccurrences:
    end_type = raw.get("endType")
    if end_type == "on" and raw.get("endDate"):
        return EndOnDate(on_date=_parse_legacy_date(raw["endDate"]))
    if end_type == "after" and raw.get("occurrences"):
        return EndAfterOccurrences(count=int(raw["occurrences"]))
    if raw.get("until"):
        return EndOnDate(on_date=_parse_legacy_date(raw["until"]))
    if raw.get("count"):
        return EndAfterOccurrences(count=int(raw["count"]))
    return EndNever()


def _single(values: list[int] | None, field: str) -> int | None:
    if not values:
        return None
    if len(values) > 1:
        msg = f"only one {field} value is supported, got {values}"
        raise RecurrenceConfigurationError(msg)
    return int(values[0])


def _parse_legacy(recurrence_type: RecurrenceType, raw: dict[str, Any], anchor_date: date) -> RecurrenceConfig:
    """Translate the free-form document older clients stored into a typed config."""
    common: dict[str, Any] = {"interval": int(raw.get("interval") or 1), "end": _parse_legacy_end(raw)}

    if recurrence_type == RecurrenceType.DAILY:
        return DailyRecurrence(**common)

    if recurrence_type == RecurrenceType.CUSTOM:
        return CustomRecurrence(**common)

    if recurrence_type == RecurrenceType.WEEKLY:
        days = raw.get("days") or raw.get("byweekday") or [sunday_weekday(anchor_date)]
        return WeeklyRecurrence(days_of_week=frozenset(int(d) for d in days), **common)

    if recurrence_type == RecurrenceType.MONTHLY:
        if raw.get("monthlyType") == "weekday" and raw.get("bysetpos") and raw.get("byweekday"):
            return MonthlyRecurrence(
                ordinal=_single(raw["bysetpos"], "bysetpos"),
                weekday=_single(raw["byweekday"], "byweekday"),
                **common,
            )
        day_of_month = raw.get("dayOfMonth") if raw.get("monthlyType") == "date" else None
        day_of_month = day_of_month or _single(raw.get("bymonthday"), "bymonthday") or anchor_date.day
        return MonthlyRecurrence(day_of_month=int(day_of_month), **common)

    # Legacy yearly months are 0-based
    month_index = _single(raw.get("bymonth"), "bymonth")
    month = month_index + 1 if month_index is not None else anchor_date.month
    if raw.get("yearlyType") == "weekday" and raw.get("bysetpos") and raw.get("byweekday"):
        return YearlyRecurrence(
            month=month,
            ordinal=_single(raw["bysetpos"], "bysetpos"),
            weekday=_single(raw["byweekday"], "byweekday"),
            **common,
        )
    day_of_month = raw.get("dayOfMonth") if raw.get("yearlyType") == "date" else None
    day_of_month = day_of_month or _single(raw.get("bymonthday"), "bymonthday") or anchor_date.day
    return YearlyRecurrence(month=month, day_of_month=int(day_of_month), **common)


def parse_recurrence_config(
    recurrence_type: RecurrenceType | str,
    raw: dict[str, Any] | None,
    *,
    anchor_date: date,
) -> RecurrenceConfig | None:
    """Parse a stored recurrence document into its typed variant.

    Accepts the typed shape (with a `kind` discriminator) and the legacy
    free-form shape (`days`, `monthlyType`, `bysetpos`, `endType`, ...).

    Args:
        recurrence_type: The task's recurrence family
        raw: Stored document, or None
        anchor_date: Task anchor date, used to fill slots a legacy document leaves out

    Returns:
        The typed config, or None for one-time tasks and simple types stored without one

    Raises:
        RecurrenceConfigurationError: If the document cannot describe a valid rule
    """
    try:
        recurrence_type = RecurrenceType(recurrence_type)
    except ValueError as e:
        msg = f"Unknown recurrence type: {recurrence_type!r}"
        raise RecurrenceConfigurationError(msg) from e

    if recurrence_type == RecurrenceType.NONE:
        return None

    if not raw:
        if recurrence_type == RecurrenceType.CUSTOM:
            msg = "custom recurrence requires a configuration"
            raise RecurrenceConfigurationError(msg)
        return None

    if not isinstance(raw, dict):
        msg = f"Recurrence configuration must be an object, got {type(raw).__name__}"
        raise RecurrenceConfigurationError(msg)

    try:
        if "kind" in raw:
            config = _config_adapter.validate_python(raw)
        else:
            config = _parse_legacy(recurrence_type, raw, anchor_date)
    except (ValidationError, ValueError, TypeError, OverflowError) as e:
        if isinstance(e, RecurrenceConfigurationError):
            raise
        msg = f"Invalid {recurrence_type} recurrence configuration: {e}"
        raise RecurrenceConfigurationError(msg) from e

    if config.kind != recurrence_type.value:
        msg = f"Recurrence configuration of kind {config.kind!r} does not match type {recurrence_type.value!r}"
        raise RecurrenceConfigurationError(msg)
    return config


def build_rule(task: Task) -> rrule:
    """Build the occurrence rule for a recurring task.

    Raises:
        RecurrenceConfigurationError: If the task cannot be expanded
    """
    if task.recurrence_error:
        raise RecurrenceConfigurationError(task.recurrence_error)
    if task.recurrence_type == RecurrenceType.NONE:
        msg = "one-time tasks have no recurrence rule"
        raise RecurrenceConfigurationError(msg)

    config = task.recurrence_config or default_config(task)
    if config.kind != task.recurrence_type.value:
        msg = f"Recurrence configuration of kind {config.kind!r} does not match type {task.recurrence_type.value!r}"
        raise RecurrenceConfigurationError(msg)

    options: dict[str, Any] = {
        "freq": _FREQUENCIES[task.recurrence_type],
        "dtstart": _start_of_day(task.anchor_date),
        "interval": config.interval,
    }

    match config.end:
        case EndOnDate(on_date=on_date):
            options["until"] = _end_of_day(on_date)
        case EndAfterOccurrences(count=count):
            options["count"] = count

    match config:
        case WeeklyRecurrence(days_of_week=days):
            options["byweekday"] = [_rrule_weekday(day) for day in sorted(days)]
        case MonthlyRecurrence(day_of_month=day_of_month, ordinal=ordinal, weekday=weekday):
            if day_of_month is not None:
                options["bymonthday"] = day_of_month
            else:
                options["byweekday"] = _rrule_weekday(weekday, ordinal)
        case YearlyRecurrence(month=month, day_of_month=day_of_month, ordinal=ordinal, weekday=weekday):
            options["bymonth"] = month or task.anchor_date.month
            if ordinal is not None and weekday is not None:
                options["byweekday"] = _rrule_weekday(weekday, ordinal)
            else:
                options["bymonthday"] = day_of_month or task.anchor_date.day

    try:
        return rrule(**options)
    except (ValueError, TypeError) as e:
        msg = f"Could not build recurrence rule: {e}"
        raise RecurrenceConfigurationError(msg) from e


def _report_broken(task: Task, error: RecurrenceConfigurationError) -> None:
    log_with_context(
        logger,
        "warning",
        "Recurrence configuration rejected; task will not be scheduled",
        task_id=task.id,
        recurrence_type=str(task.recurrence_type),
        error=str(error),
    )


def applies_on_date(task: Task, day: date) -> bool:
    """Return True if the task has an occurrence on the given calendar date.

    Never raises for a broken recurrence definition; such tasks report False.
    """
    if task.recurrence_type == RecurrenceType.NONE:
        return day == task.anchor_date
    if day < task.anchor_date:
        return False

    try:
        rule = build_rule(task)
    except RecurrenceConfigurationError as e:
        _report_broken(task, e)
        return False

    return bool(rule.between(_start_of_day(day), _end_of_day(day), inc=True))


def occurrences_between(task: Task, start: date, end: date) -> list[date]:
    """List the task's occurrence dates within [start, end], inclusive."""
    if end < start:
        return []
    if task.recurrence_type == RecurrenceType.NONE:
        return [task.anchor_date] if start <= task.anchor_date <= end else []

    try:
        rule = build_rule(task)
    except RecurrenceConfigurationError as e:
        _report_broken(task, e)
        return []

    return [occurrence.date() for occurrence in rule.between(_start_of_day(start), _end_of_day(end), inc=True)]


def _ordinal_suffix(n: int) -> str:
    if n in (1, 21, 31):
        return f"{n}st"
    if n in (2, 22):
        return f"{n}nd"
    if n in (3, 23):
        return f"{n}rd"
    return f"{n}th"


def _join_names(names: list[str]) -> str:
    if len(names) == 1:
        return names[0]
    return f"{', '.join(names[:-1])} and {names[-1]}"


def _every(interval: int, unit: str, plain: str) -> str:
    if interval == 1:
        return plain
    return f"every {interval} {unit}s"


def describe_recurrence(task: Task) -> str:
    """Render a task's recurrence as human-readable text.

    Examples: "once on 2025-06-10", "every 3 days", "every Monday, Wednesday and Friday",
    "monthly on the last Friday", "yearly on March 3, 5 times".
    """
    if task.recurrence_type == RecurrenceType.NONE:
        return f"once on {task.anchor_date.isoformat()}"

    try:
        config = task.recurrence_config or default_config(task)
        build_rule(task)
    except RecurrenceConfigurationError:
        return "not scheduled (invalid recurrence)"

    match config:
        case DailyRecurrence(interval=interval) | CustomRecurrence(interval=interval):
            text = _every(interval, "day", "daily")
        case WeeklyRecurrence(interval=interval, days_of_week=days):
            day_names = _join_names([WEEKDAY_NAMES[d] for d in sorted(days)])
            text = f"every {day_names}" if interval == 1 else f"every {interval} weeks on {day_names}"
        case MonthlyRecurrence(interval=interval, day_of_month=day_of_month, ordinal=ordinal, weekday=weekday):
            if day_of_month is not None:
                pattern = f"the {_ordinal_suffix(day_of_month)}"
            else:
                pattern = f"the {_ORDINAL_WORDS[ordinal]} {WEEKDAY_NAMES[weekday]}"
            text = f"{_every(interval, 'month', 'monthly')} on {pattern}"
        case YearlyRecurrence(interval=interval, month=month, day_of_month=day_of_month, ordinal=ordinal, weekday=weekday):
            month_name = _MONTH_NAMES[(month or task.anchor_date.month) - 1]
            if ordinal is not None and weekday is not None:
                pattern = f"the {_ORDINAL_WORDS[ordinal]} {WEEKDAY_NAMES[weekday]} of {month_name}"
            else:
                pattern = f"{month_name} {day_of_month or task.anchor_date.day}"
            text = f"{_every(interval, 'year', 'yearly')} on {pattern}"

    match config.end:
        case EndOnDate(on_date=on_date):
            text += f" until {on_date.isoformat()}"
        case EndAfterOccurrences(count=count):
            text += f", {count} time" + ("" if count == 1 else "s")

    return text
