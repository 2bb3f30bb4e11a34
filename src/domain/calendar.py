"""Working-day calendar domain models."""

from datetime import date
from enum import StrEnum
from typing import Self

from pydantic import BaseModel, model_validator


class NonWorkingReason(StrEnum):
    """Why a date is not a working day."""

    WEEKLY_OFF = "Weekly Off"
    PUBLIC_HOLIDAY = "Public Holiday"
    PERSONAL_HOLIDAY = "Personal Holiday"


class LeaveInterval(BaseModel):
    """Approved personal leave, inclusive at both ends."""

    start: date
    end: date

    @model_validator(mode="after")
    def _ordered(self) -> Self:
        if self.end < self.start:
            msg = f"leave ends ({self.end}) before it starts ({self.start})"
            raise ValueError(msg)
        return self

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end


class WorkingDayResult(BaseModel):
    """Outcome of a working-day check."""

    is_working_day: bool
    reason: NonWorkingReason | None = None
