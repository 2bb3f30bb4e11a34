"""Completion domain models and derived day statuses."""

from datetime import date
from enum import StrEnum
from typing import Annotated, Literal, NamedTuple, Self

from pydantic import BaseModel, Field, model_validator


class CompletionStatus(StrEnum):
    """Stored status of a completion record."""

    COMPLETED = "completed"
    PARTIAL = "partial"
    NOT_DONE = "not_done"


class ApprovalStatus(StrEnum):
    """Manager review state of a completion record."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class DayStatus(StrEnum):
    """Derived status of one assignment on one date."""

    NOT_APPLICABLE = "not_applicable"
    SCHEDULED = "scheduled"
    PENDING = "pending"
    COMPLETED = "completed"
    PARTIAL = "partial"
    NOT_DONE = "not_done"
    DELAYED = "delayed"


RESOLVING_STATUSES = frozenset({CompletionStatus.COMPLETED, CompletionStatus.PARTIAL})


class CompletionKey(NamedTuple):
    """Composite key for completion lookups."""

    assignment_id: str
    day: date


class TaskCompletion(BaseModel):
    """Completion record for one scheduled date of an assignment."""

    id: str = Field(..., description="Unique completion ID from database")
    assignment_id: str = Field(..., description="Assignment this record answers for")
    scheduled_date: date = Field(..., description="Due date the record answers for")
    completion_date: date = Field(..., description="Date the action was recorded")
    status: CompletionStatus
    quantity_completed: float | None = None
    notes: str | None = None
    approval_status: ApprovalStatus = ApprovalStatus.PENDING
    manager_comment: str | None = None

    @model_validator(mode="after")
    def _not_before_due_date(self) -> Self:
        if self.completion_date < self.scheduled_date:
            msg = "completion_date cannot precede scheduled_date"
            raise ValueError(msg)
        return self

    @property
    def key(self) -> CompletionKey:
        return CompletionKey(self.assignment_id, self.scheduled_date)

    @property
    def is_late(self) -> bool:
        return self.completion_date > self.scheduled_date

    @property
    def resolves_obligation(self) -> bool:
        return self.status in RESOLVING_STATUSES


class QuantityCompletion(BaseModel):
    """Progress reported against a task benchmark."""

    kind: Literal["quantity"] = "quantity"
    quantity: float = Field(..., ge=0)


class BinaryCompletion(BaseModel):
    """Done / not done for a task without a benchmark."""

    kind: Literal["binary"] = "binary"
    done: bool


CompletionInput = Annotated[QuantityCompletion | BinaryCompletion, Field(discriminator="kind")]
