from __future__ import annotations

import datetime as dt

from sqlalchemy import Boolean, Date, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base_class import Base
from app.db.types import PortableJSON, UTCDateTime
from app.schemas.availability import BaseSchedule, ScheduleException, Slot


def _now() -> dt.datetime:
    return dt.datetime.now(tz=dt.UTC)


class AvailabilityRecord(Base):
    """
    Concrete availability of one professional on one calendar date.
    Slots and exceptions live embedded as JSON; `version` guards every write
    (UPDATE ... WHERE version = n), so concurrent writers cannot both win.
    """

    __tablename__ = "availability_records"
    __table_args__ = (
        UniqueConstraint("professional_id", "date", name="uq_availability_prof_date"),
        Index("ix_availability_next_lock_expiry", "next_lock_expiry"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    professional_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)  # 0=Sunday
    base_schedule: Mapped[dict] = mapped_column(PortableJSON, nullable=False)
    is_working_day: Mapped[bool] = mapped_column(Boolean, nullable=False)
    time_slots: Mapped[list] = mapped_column(PortableJSON, nullable=False, default=list)
    exceptions: Mapped[list] = mapped_column(PortableJSON, nullable=False, default=list)

    # earliest locked_until among locked slots; the reaper's index
    next_lock_expiry: Mapped[dt.datetime | None] = mapped_column(UTCDateTime())

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[dt.datetime] = mapped_column(
        UTCDateTime(), default=_now, nullable=False
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        UTCDateTime(), default=_now, onupdate=_now, nullable=False
    )

    __mapper_args__ = {"version_id_col": version}

    # JSON columns are only persisted when reassigned, so every mutation
    # goes through these accessors and builds fresh lists.

    @property
    def schedule(self) -> BaseSchedule:
        return BaseSchedule.model_validate(self.base_schedule)

    @schedule.setter
    def schedule(self, value: BaseSchedule) -> None:
        self.base_schedule = value.model_dump(mode="json")

    @property
    def slots(self) -> list[Slot]:
        return [Slot.model_validate(s) for s in self.time_slots or []]

    @slots.setter
    def slots(self, value: list[Slot]) -> None:
        self.time_slots = [s.model_dump(mode="json") for s in value]
        expiries = [s.locked_until for s in value if s.locked and s.locked_until]
        self.next_lock_expiry = min(expiries) if expiries else None

    @property
    def exception_list(self) -> list[ScheduleException]:
        return [ScheduleException.model_validate(e) for e in self.exceptions or []]

    @exception_list.setter
    def exception_list(self, value: list[ScheduleException]) -> None:
        self.exceptions = [e.model_dump(mode="json") for e in value]

    def __repr__(self) -> str:
        return (
            f"<AvailabilityRecord {self.professional_id} {self.date} "
            f"working={self.is_working_day} v{self.version}>"
        )
