"""Per-user working-day calendar.

A working day is not (1) a weekly off, (2) a public holiday, or (3) a day of
approved personal leave. Checks run in that order and the first match wins.
"""

import logging
from datetime import date, timedelta

from pydantic import BaseModel, ConfigDict, Field

from src.core.config import settings
from src.core.errors import NoWorkingDayFoundError
from src.domain.calendar import LeaveInterval, NonWorkingReason, WorkingDayResult
from src.domain.task import WEEKDAY_NAMES, sunday_weekday


logger = logging.getLogger(__name__)

_WEEKDAY_LOOKUP = {name.lower(): index for index, name in enumerate(WEEKDAY_NAMES)}


def normalize_weekday(value: int | str) -> int:
    """Accept 0=Sunday numbers or weekday names ("monday", "Friday") and return the number."""
    if isinstance(value, int):
        if not 0 <= value <= 6:
            msg = f"Weekday out of range: {value}"
            raise ValueError(msg)
        return value
    text = value.strip().lower()
    if text.isdigit():
        return normalize_weekday(int(text))
    if text not in _WEEKDAY_LOOKUP:
        msg = f"Unknown weekday: {value!r}"
        raise ValueError(msg)
    return _WEEKDAY_LOOKUP[text]


def resolve_weekly_offs(
    user_override: set[int] | frozenset[int] | None,
    org_weekly_offs: set[int] | frozenset[int],
) -> frozenset[int]:
    """A user override, even an empty one, replaces the organization's weekly offs."""
    if user_override is not None:
        return frozenset(user_override)
    return frozenset(org_weekly_offs)


class WorkingDayCalendar(BaseModel):
    """Working-day rules for one user, built from already-fetched calendar data."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    weekly_offs: frozenset[int] = Field(default_factory=frozenset, description="0=Sunday weekday numbers")
    public_holidays: frozenset[date] = Field(default_factory=frozenset)
    leave: tuple[LeaveInterval, ...] = ()

    def is_working_day(self, day: date) -> WorkingDayResult:
        """Check a date, reporting why it is not a working day when it isn't."""
        if sunday_weekday(day) in self.weekly_offs:
            return WorkingDayResult(is_working_day=False, reason=NonWorkingReason.WEEKLY_OFF)
        if day in self.public_holidays:
            return WorkingDayResult(is_working_day=False, reason=NonWorkingReason.PUBLIC_HOLIDAY)
        if any(interval.contains(day) for interval in self.leave):
            return WorkingDayResult(is_working_day=False, reason=NonWorkingReason.PERSONAL_HOLIDAY)
        return WorkingDayResult(is_working_day=True)

    def next_working_day(self, day: date, *, search_limit: int | None = None) -> date:
        """First working day strictly after the given date.

        Raises:
            NoWorkingDayFoundError: If none is found within the search limit
        """
        limit = settings.next_working_day_search_limit if search_limit is None else search_limit
        candidate = day
        for _ in range(limit):
            candidate += timedelta(days=1)
            if self.is_working_day(candidate).is_working_day:
                return candidate

        logger.error(
            "No working day found",
            extra={"user_id": self.user_id, "start": day.isoformat(), "searched_days": limit},
        )
        raise NoWorkingDayFoundError(start=day, searched_days=limit, last_candidate=candidate)

    def leave_dates_in_range(self, start: date, end: date) -> set[date]:
        """Dates of approved personal leave that fall within [start, end]."""
        result: set[date] = set()
        for interval in self.leave:
            overlap_start = max(start, interval.start)
            overlap_end = min(end, interval.end)
            current = overlap_start
            while current <= overlap_end:
                result.add(current)
                current += timedelta(days=1)
        return result
