from __future__ import annotations

from datetime import date, datetime
from typing import Annotated

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from app.utils.time import MINUTES_PER_DAY, time_to_minutes
from app.utils.tz import ensure_aware_utc


def _check_time(value: str) -> str:
    time_to_minutes(value)  # FormatError (ValueError) when malformed
    return value


TimeStr = Annotated[str, AfterValidator(_check_time)]  # "HH:MM"

DEFAULT_WORKING_DAYS = [1, 2, 3, 4, 5, 6]  # Monday to Saturday


class LunchBreak(BaseModel):
    start: TimeStr = "13:00"
    end: TimeStr = "14:00"

    @model_validator(mode="after")
    def _check_order(self):
        if time_to_minutes(self.end) < time_to_minutes(self.start):
            raise ValueError("lunch_break.end must not be before lunch_break.start")
        return self


class BaseSchedule(BaseModel):
    """Recurring weekly template from which daily slots are generated."""

    model_config = ConfigDict(extra="forbid")

    start: TimeStr = "09:00"
    end: TimeStr = "18:00"
    lunch_break: LunchBreak | None = Field(default_factory=LunchBreak)
    granularity_minutes: int = Field(60, ge=5, le=MINUTES_PER_DAY)
    working_days: list[int] = Field(
        default_factory=lambda: list(DEFAULT_WORKING_DAYS),
        description="0=Sunday ... 6=Saturday",
    )

    @field_validator("working_days")
    @classmethod
    def _check_days(cls, days: list[int]) -> list[int]:
        for d in days:
            if not 0 <= d <= 6:
                raise ValueError(f"working day {d} outside 0..6")
        return sorted(set(days))

    @model_validator(mode="after")
    def _check_order(self):
        if time_to_minutes(self.end) < time_to_minutes(self.start):
            raise ValueError("end must not be before start")
        return self


class Slot(BaseModel):
    start: TimeStr
    end: TimeStr
    available: bool = True
    locked: bool = False
    locked_until: datetime | None = None
    booking_id: str | None = None
    hold_id: str | None = None

    @field_validator("locked_until")
    @classmethod
    def _aware(cls, value: datetime | None) -> datetime | None:
        return ensure_aware_utc(value) if value is not None else None

    @model_validator(mode="after")
    def _check_lock_state(self):
        if self.locked != (self.locked_until is not None):
            raise ValueError("locked and locked_until must be set together")
        if self.locked != (self.hold_id is not None):
            raise ValueError("a locked slot needs a hold_id")
        return self

    @property
    def start_minutes(self) -> int:
        return time_to_minutes(self.start)

    @property
    def end_minutes(self) -> int:
        return time_to_minutes(self.end)

    def is_lock_active(self, now: datetime) -> bool:
        # never trust `locked` alone: locks expire lazily
        return (
            self.locked
            and self.locked_until is not None
            and self.locked_until > now
        )

    def is_offerable(self, now: datetime) -> bool:
        return (
            self.available
            and self.booking_id is None
            and not self.is_lock_active(now)
        )

    def held_by(self, hold_id: str) -> bool:
        return self.locked and self.hold_id == hold_id

    def with_lock(self, hold_id: str, until: datetime) -> Slot:
        return self.model_copy(
            update={"locked": True, "locked_until": until, "hold_id": hold_id}
        )

    def without_lock(self) -> Slot:
        return self.model_copy(
            update={"locked": False, "locked_until": None, "hold_id": None}
        )


class ScheduleException(BaseModel):
    """Per-date override: vacation/holiday (all_day) or a partial block."""

    model_config = ConfigDict(extra="forbid")

    all_day: bool = False
    reason: str = Field("", max_length=200)
    start: TimeStr | None = None
    end: TimeStr | None = None

    @model_validator(mode="after")
    def _check_window(self):
        if self.all_day:
            self.start = None
            self.end = None
            return self
        if self.start is None or self.end is None:
            raise ValueError("a partial exception needs start and end")
        if time_to_minutes(self.end) <= time_to_minutes(self.start):
            raise ValueError("exception end must be after start")
        return self


# ---------- API payloads ----------


class AvailabilityRecordOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    professional_id: str
    date: date
    day_of_week: int
    base_schedule: BaseSchedule
    is_working_day: bool
    time_slots: list[Slot]
    exceptions: list[ScheduleException]
    created_at: datetime
    updated_at: datetime


class GenerateAvailabilityIn(BaseModel):
    professional_id: str = Field(..., min_length=1, max_length=128)
    dates: list[date] | None = None
    start_date: date | None = None
    days: int | None = Field(None, ge=1, le=366)
    base_schedule: BaseSchedule = Field(default_factory=BaseSchedule)

    @model_validator(mode="after")
    def _check_range(self):
        by_list = self.dates is not None
        by_span = self.start_date is not None or self.days is not None
        if by_list == by_span:
            raise ValueError("send either dates or start_date+days")
        if by_span and (self.start_date is None or self.days is None):
            raise ValueError("start_date and days go together")
        return self


class GenerateAvailabilityOut(BaseModel):
    generated_count: int
    records: list[AvailabilityRecordOut]


class ScheduleUpdateOut(BaseModel):
    updated_count: int
    skipped_dates: list[date]


class AvailableSlotOut(BaseModel):
    start: str
    end: str
    duration: int


class AvailableSlotsOut(BaseModel):
    professional_id: str
    date: date
    duration: int
    slots: list[AvailableSlotOut]
