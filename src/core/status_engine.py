"""Pure status derivation for one assignment on one date.

Nothing in this module reads a clock or the record store: callers pass in the
completion record, the calendar verdict, the recurrence verdict, and `as_of`.
"""

from collections.abc import Callable, Iterable
from datetime import date, timedelta

from src.domain.completion import CompletionKey, CompletionStatus, DayStatus, TaskCompletion


def effective_completion_status(completion: TaskCompletion) -> DayStatus:
    """Status a stored record shows: completed/partial recorded late read as delayed."""
    if completion.resolves_obligation and completion.is_late:
        return DayStatus.DELAYED
    return DayStatus(completion.status.value)


def derive_status(
    *,
    day: date,
    as_of: date,
    completion: TaskCompletion | None,
    is_working_day: bool,
    applies: bool,
) -> DayStatus:
    """Derive the status of an assignment on a date.

    A completion record always wins over calendar state, so work closed out on
    a day off still shows. Without one, non-working days and days the task does
    not recur on are not applicable; today and later are scheduled; earlier
    days are not done.
    """
    if completion is not None:
        return effective_completion_status(completion)

    if not is_working_day or not applies:
        return DayStatus.NOT_APPLICABLE
    if day >= as_of:
        return DayStatus.SCHEDULED
    return DayStatus.NOT_DONE


def is_unresolved(completion: TaskCompletion | None) -> bool:
    """An obligation carries forward while it has no record or only a not_done one."""
    return completion is None or completion.status == CompletionStatus.NOT_DONE


def scan_pending_days(
    *,
    assignment_id: str,
    today: date,
    lookback_days: int,
    completions: dict[CompletionKey, TaskCompletion],
    is_working_day: Callable[[date], bool],
    applies: Callable[[date], bool],
) -> list[date]:
    """Walk back from the day before `today` and collect unresolved due dates.

    Returns the dates newest first, each at most once.
    """
    pending: list[date] = []
    seen: set[date] = set()
    for offset in range(1, lookback_days + 1):
        day = today - timedelta(days=offset)
        if day in seen or not is_working_day(day) or not applies(day):
            continue
        if is_unresolved(completions.get(CompletionKey(assignment_id, day))):
            pending.append(day)
            seen.add(day)
    return pending


def index_completions(completions: Iterable[TaskCompletion]) -> dict[CompletionKey, TaskCompletion]:
    """Map completion records by (assignment, scheduled date)."""
    return {completion.key: completion for completion in completions}
