from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.availability import TimeStr


class SlotRef(BaseModel):
    start: str
    end: str


class LockIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    professional_id: str = Field(..., min_length=1, max_length=128)
    date: date
    duration: int = Field(..., gt=0, description="Service duration in minutes")
    start: TimeStr | None = Field(None, description="Exact start time; first fit if omitted")


class SlotHold(BaseModel):
    """A temporary hold on a run of slots, returned to the customer at checkout."""

    hold_id: str
    professional_id: str
    date: date
    start: str
    end: str
    duration_minutes: int
    locked_until: datetime
    slots: list[SlotRef]


class ConfirmIn(BaseModel):
    professional_id: str = Field(..., min_length=1, max_length=128)
    date: date
    hold_id: str = Field(..., min_length=1)
    start: TimeStr = Field(..., description="Start of the held run, as returned by /lock")
    duration: int = Field(..., gt=0, description="Service duration in minutes")
    booking_id: str = Field(..., min_length=1, max_length=128)


class ConfirmedBooking(BaseModel):
    booking_id: str
    professional_id: str
    date: date
    start: str
    end: str
    slots: list[SlotRef]


class ReleaseIn(BaseModel):
    professional_id: str = Field(..., min_length=1, max_length=128)
    date: date
    hold_id: str = Field(..., min_length=1)


class CancelIn(BaseModel):
    professional_id: str = Field(..., min_length=1, max_length=128)
    date: date
    booking_id: str = Field(..., min_length=1, max_length=128)


class ReleasedOut(BaseModel):
    released: int


class ReapOut(BaseModel):
    reaped_count: int
    records_touched: int
