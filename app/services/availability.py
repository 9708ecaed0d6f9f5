"""
Availability record manager: one record per (professional, date).

Creation is idempotent, base-schedule changes are propagated to future dates,
and exceptions toggle the working day or block part of it. Every rewrite of a
record's slots merges the lock/booking state it already had, so schedule
edits never silently drop confirmed bookings.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import and_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.core.logging import get_logger
from app.core.settings import settings
from app.models.availability import AvailabilityRecord
from app.schemas.availability import BaseSchedule, ScheduleException
from app.services.schedule import MergeResult, build_day_slots
from app.utils.tz import today_local
from app.utils.week import date_range, day_of_week, parse_date, parse_dates

log = get_logger(__name__)


@dataclass
class GenerationResult:
    generated_count: int
    records: list[AvailabilityRecord] = field(default_factory=list)


@dataclass
class ScheduleUpdateResult:
    updated_count: int
    skipped_dates: list[date] = field(default_factory=list)


def _first_error(exc: PydanticValidationError) -> str:
    err = exc.errors()[0]
    loc = ".".join(str(p) for p in err.get("loc", ()))
    return f"{loc}: {err.get('msg')}" if loc else str(err.get("msg"))


def coerce_schedule(value: BaseSchedule | dict[str, Any] | None) -> BaseSchedule:
    if isinstance(value, BaseSchedule):
        return value
    try:
        return BaseSchedule.model_validate(value or {})
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid base schedule ({_first_error(e)})") from e


def coerce_exception(value: ScheduleException | dict[str, Any]) -> ScheduleException:
    if isinstance(value, ScheduleException):
        return value
    try:
        return ScheduleException.model_validate(value)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid exception ({_first_error(e)})") from e


class AvailabilityManager:
    def __init__(self, db: Session, *, horizon_days: int | None = None):
        self.db = db
        self.horizon_days = (
            horizon_days if horizon_days is not None else settings.SCHEDULE_HORIZON_DAYS
        )

    # ---------- reads ----------

    def get_by_date(
        self, professional_id: str, day: date | str, *, fresh: bool = False
    ) -> AvailabilityRecord | None:
        q = self.db.query(AvailabilityRecord).filter(
            and_(
                AvailabilityRecord.professional_id == professional_id,
                AvailabilityRecord.date == parse_date(day),
            )
        )
        if fresh:
            # re-read from the database even if the instance is already in the session
            q = q.populate_existing()
        return q.first()

    def get_range(
        self, professional_id: str, start: date | str, end: date | str
    ) -> list[AvailabilityRecord]:
        first, last = parse_date(start), parse_date(end)
        if first > last:
            raise ValidationError("start date is after end date")
        return (
            self.db.query(AvailabilityRecord)
            .filter(
                and_(
                    AvailabilityRecord.professional_id == professional_id,
                    AvailabilityRecord.date >= first,
                    AvailabilityRecord.date <= last,
                )
            )
            .order_by(AvailabilityRecord.date.asc())
            .all()
        )

    def require(self, professional_id: str, day: date | str) -> AvailabilityRecord:
        record = self.get_by_date(professional_id, day, fresh=True)
        if record is None:
            raise NotFoundError(f"No availability for {professional_id} on {parse_date(day)}")
        return record

    # ---------- generation ----------

    def generate_availability(
        self,
        professional_id: str,
        dates: Iterable[date | str],
        base_schedule: BaseSchedule | dict[str, Any] | None = None,
    ) -> GenerationResult:
        schedule = coerce_schedule(base_schedule)
        days = parse_dates(dates)

        created: list[AvailabilityRecord] = []
        for d in days:
            if self.get_by_date(professional_id, d) is not None:
                log.debug("availability.exists", professional_id=professional_id, date=d.isoformat())
                continue

            self.db.add(self._new_record(professional_id, d, schedule))
            try:
                self.db.commit()
            except IntegrityError:
                # another process created the same date concurrently
                self.db.rollback()
                log.info("availability.exists", professional_id=professional_id, date=d.isoformat(), race=True)
                continue
            created.append(self.get_by_date(professional_id, d))

        log.info(
            "availability.generated",
            professional_id=professional_id,
            requested=len(days),
            generated=len(created),
        )
        return GenerationResult(generated_count=len(created), records=created)

    def generate_for_days(
        self,
        professional_id: str,
        start: date | str,
        days: int,
        base_schedule: BaseSchedule | dict[str, Any] | None = None,
    ) -> GenerationResult:
        return self.generate_availability(professional_id, date_range(start, days), base_schedule)

    def _new_record(self, professional_id: str, d: date, schedule: BaseSchedule) -> AvailabilityRecord:
        dow = day_of_week(d)
        working, merged = build_day_slots(schedule, dow, [])
        record = AvailabilityRecord(
            professional_id=professional_id,
            date=d,
            day_of_week=dow,
            is_working_day=working,
            exceptions=[],
        )
        record.schedule = schedule
        record.slots = merged.slots
        return record

    # ---------- regeneration ----------

    def _rebuild(
        self,
        record: AvailabilityRecord,
        schedule: BaseSchedule,
        exceptions: list[ScheduleException],
    ) -> tuple[bool, MergeResult]:
        return build_day_slots(schedule, day_of_week(record.date), exceptions, record.slots)

    @staticmethod
    def _apply(
        record: AvailabilityRecord,
        schedule: BaseSchedule,
        exceptions: list[ScheduleException],
        working: bool,
        merged: MergeResult,
    ) -> None:
        record.day_of_week = day_of_week(record.date)
        record.schedule = schedule
        record.exception_list = exceptions
        record.is_working_day = working
        record.slots = merged.slots

    def _commit(self, record: AvailabilityRecord) -> None:
        try:
            self.db.commit()
        except StaleDataError as e:
            self.db.rollback()
            log.warning(
                "availability.write_conflict",
                professional_id=record.professional_id,
                date=record.date.isoformat(),
            )
            raise ConflictError("Availability changed concurrently, please retry") from e

    def update_base_schedule(
        self,
        professional_id: str,
        new_schedule: BaseSchedule | dict[str, Any],
        today: date | None = None,
    ) -> ScheduleUpdateResult:
        """
        Regenerate every record from today through the horizon.

        Not atomic across dates: each date commits alone and re-running is
        safe. Dates whose confirmed bookings would not survive the new
        schedule are left untouched and reported in `skipped_dates`.
        """
        schedule = coerce_schedule(new_schedule)
        first = today or today_local()
        last = first + timedelta(days=self.horizon_days)

        result = ScheduleUpdateResult(updated_count=0)
        for record in self.get_range(professional_id, first, last):
            d = record.date
            working, merged = self._rebuild(record, schedule, record.exception_list)
            if merged.orphaned_bookings:
                log.warning(
                    "availability.schedule_change_skipped",
                    professional_id=professional_id,
                    date=d.isoformat(),
                    booking_ids=[s.booking_id for s in merged.orphaned_bookings],
                )
                result.skipped_dates.append(d)
                continue

            self._apply(record, schedule, record.exception_list, working, merged)
            try:
                self.db.commit()
            except StaleDataError:
                self.db.rollback()
                log.warning("availability.write_conflict", professional_id=professional_id, date=d.isoformat())
                result.skipped_dates.append(d)
                continue
            result.updated_count += 1

        log.info(
            "availability.schedule_updated",
            professional_id=professional_id,
            updated=result.updated_count,
            skipped=len(result.skipped_dates),
        )
        return result

    # ---------- exceptions ----------

    def add_exception(
        self,
        professional_id: str,
        day: date | str,
        exception: ScheduleException | dict[str, Any],
        *,
        force: bool = False,
    ) -> AvailabilityRecord:
        exc = coerce_exception(exception)
        record = self.require(professional_id, day)

        exceptions = [*record.exception_list, exc]
        working, merged = self._rebuild(record, record.schedule, exceptions)
        if merged.orphaned_bookings:
            booking_ids = [s.booking_id for s in merged.orphaned_bookings]
            if not force:
                raise ConflictError(
                    f"Exception would cancel confirmed bookings: {', '.join(booking_ids)}"
                )
            log.warning(
                "availability.bookings_discarded",
                professional_id=professional_id,
                date=record.date.isoformat(),
                booking_ids=booking_ids,
            )
        if merged.dropped_holds:
            log.info(
                "availability.holds_dropped",
                professional_id=professional_id,
                date=record.date.isoformat(),
                count=len(merged.dropped_holds),
            )

        self._apply(record, record.schedule, exceptions, working, merged)
        self._commit(record)
        log.info(
            "availability.exception_added",
            professional_id=professional_id,
            date=record.date.isoformat(),
            all_day=exc.all_day,
            reason=exc.reason,
        )
        return record

    def remove_exception(
        self, professional_id: str, day: date | str, index: int
    ) -> AvailabilityRecord:
        record = self.require(professional_id, day)
        exceptions = record.exception_list
        if not 0 <= index < len(exceptions):
            raise ValidationError(f"No exception at position {index}")
        removed = exceptions.pop(index)

        working, merged = self._rebuild(record, record.schedule, exceptions)
        self._apply(record, record.schedule, exceptions, working, merged)
        self._commit(record)
        log.info(
            "availability.exception_removed",
            professional_id=professional_id,
            date=record.date.isoformat(),
            all_day=removed.all_day,
            is_working_day=working,
        )
        return record
