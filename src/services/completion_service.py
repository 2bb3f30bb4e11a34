"""Completion writes: recording progress against a due date and reviewing it."""

import logging
from datetime import date

from src.core import db_client
from src.core.errors import CompletionValidationError, DependencyUnmetError
from src.core.logging import log_with_user_context, span
from src.domain.completion import (
    RESOLVING_STATUSES,
    ApprovalStatus,
    BinaryCompletion,
    CompletionInput,
    CompletionStatus,
    QuantityCompletion,
    TaskCompletion,
)
from src.domain.task import Task
from src.services.dependency_service import check_dependencies
from src.services.stores import Stores, default_stores


logger = logging.getLogger(__name__)


def resolve_status(task: Task, entry: CompletionInput) -> tuple[CompletionStatus, float | None]:
    """Turn a reported entry into the stored status and quantity.

    Quantities meet the benchmark for completed, fall short for partial, and
    are zero for not done. Without a benchmark any positive quantity counts as
    completed.
    """
    match entry:
        case QuantityCompletion(quantity=quantity):
            if quantity == 0:
                return CompletionStatus.NOT_DONE, quantity
            if task.benchmark is None or quantity >= task.benchmark:
                return CompletionStatus.COMPLETED, quantity
            return CompletionStatus.PARTIAL, quantity
        case BinaryCompletion(done=done):
            return (CompletionStatus.COMPLETED if done else CompletionStatus.NOT_DONE), None
    msg = f"Unsupported completion entry: {entry!r}"
    raise CompletionValidationError(msg)


def validate_completion(
    *,
    task: Task,
    status: CompletionStatus,
    quantity: float | None,
    notes: str | None,
    scheduled_date: date,
    completion_date: date,
) -> None:
    """Reject writes missing what their status requires.

    Raises:
        CompletionValidationError: Naming the offending field
    """
    if task.has_benchmark and quantity is None:
        msg = f"Task '{task.name}' has a benchmark of {task.benchmark:g}; a quantity is required"
        raise CompletionValidationError(msg, field="quantity_completed")

    if quantity is not None and quantity < 0:
        msg = "Quantity cannot be negative"
        raise CompletionValidationError(msg, field="quantity_completed")

    if status in (CompletionStatus.PARTIAL, CompletionStatus.NOT_DONE) and not (notes and notes.strip()):
        msg = f"Notes are required when marking a task {status.value.replace('_', ' ')}"
        raise CompletionValidationError(msg, field="notes")

    if completion_date < scheduled_date:
        msg = (
            f"Completion date {completion_date.isoformat()} cannot be before "
            f"the scheduled date {scheduled_date.isoformat()}"
        )
        raise CompletionValidationError(msg, field="completion_date")


async def set_completion(
    *,
    assignment_id: str,
    scheduled_date: date,
    as_of: date,
    entry: CompletionInput | None = None,
    status: CompletionStatus | None = None,
    quantity: float | None = None,
    notes: str | None = None,
    completion_date: date | None = None,
    stores: Stores | None = None,
) -> TaskCompletion:
    """Record the outcome for an assignment's due date, replacing any earlier record.

    Pass either an `entry` (quantity or done/not done) or an explicit `status`.
    Completed and partial outcomes are refused while a prerequisite task the
    same person holds is unfinished for that date. Every write sends the
    record back for manager review.

    Args:
        assignment_id: Assignment being recorded
        scheduled_date: Due date the record answers for
        as_of: Today; the completion date when none is given
        entry: Reported quantity or done flag
        status: Explicit status, used when no entry is given
        quantity: Quantity accompanying an explicit status
        notes: Free text, required for partial and not done
        completion_date: Date the work was done, defaults to `as_of`
        stores: Store overrides

    Returns:
        The stored completion record

    Raises:
        CompletionValidationError: If a required field is missing or inconsistent
        DependencyUnmetError: If prerequisite tasks are unfinished for the date
        db_client.RecordNotFoundError: If the assignment or task does not exist
    """
    stores = stores or default_stores()
    with span("completion_service.set_completion"):
        assignment = await stores.graph.get_assignment_by_id(assignment_id)
        task = await stores.graph.get_task(assignment.task_id)

        if entry is not None:
            status, quantity = resolve_status(task, entry)
        elif status is None:
            msg = "Either a completion entry or a status is required"
            raise CompletionValidationError(msg, field="status")

        recorded_on = completion_date or as_of
        validate_completion(
            task=task,
            status=status,
            quantity=quantity,
            notes=notes,
            scheduled_date=scheduled_date,
            completion_date=recorded_on,
        )

        async with db_client.transaction():
            if status in RESOLVING_STATUSES:
                blocking = await check_dependencies(
                    assignment=assignment,
                    scheduled_date=scheduled_date,
                    graph=stores.graph,
                    completions=stores.completions,
                )
                if blocking:
                    raise DependencyUnmetError(blocking, scheduled_date=scheduled_date)

            completion = await stores.completions.upsert(
                assignment_id,
                scheduled_date,
                {
                    "completion_date": recorded_on,
                    "status": status.value,
                    "quantity_completed": quantity,
                    "notes": notes,
                    "approval_status": ApprovalStatus.PENDING.value,
                    "manager_comment": None,
                },
            )

        log_with_user_context(
            logger,
            "info",
            "Recorded task completion",
            user_id=assignment.assigned_to,
            assignment_id=assignment_id,
            scheduled_date=scheduled_date.isoformat(),
            status=status.value,
            late=completion.is_late,
        )
        return completion


async def review_completion(
    *,
    assignment_id: str,
    scheduled_date: date,
    approve: bool,
    comment: str | None = None,
    stores: Stores | None = None,
) -> TaskCompletion:
    """Approve or reject a completion record. Rejections need a comment.

    Raises:
        CompletionValidationError: If rejecting without a comment
        db_client.RecordNotFoundError: If no record exists for the date
    """
    stores = stores or default_stores()
    with span("completion_service.review_completion"):
        if not approve and not (comment and comment.strip()):
            msg = "A comment is required when rejecting a completion"
            raise CompletionValidationError(msg, field="manager_comment")

        completion = await stores.completions.get(assignment_id, scheduled_date)
        if completion is None:
            msg = f"No completion recorded for assignment {assignment_id} on {scheduled_date.isoformat()}"
            raise db_client.RecordNotFoundError(msg)

        approval = ApprovalStatus.APPROVED if approve else ApprovalStatus.REJECTED
        reviewed = await stores.completions.update(
            completion.id,
            {"approval_status": approval.value, "manager_comment": comment},
        )
        logger.info(
            "Reviewed completion %s: %s",
            completion.id,
            approval.value,
            extra={"assignment_id": assignment_id, "scheduled_date": scheduled_date.isoformat()},
        )
        return reviewed
