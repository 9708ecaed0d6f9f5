"""
Slot reservation engine.

Checkout is two-phase: `find_and_lock` puts a short hold on a run of slots,
`confirm` turns the hold into a booking. Holds expire lazily (an expired hold
is simply ignored by every reader) and the reaper job clears them for good.

Every write is a compare-and-swap on the record's `version` column. Two
customers racing for the same slot both read version n; only the first
UPDATE ... WHERE version = n matches a row, the other gets StaleDataError.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.core.errors import (
    ConflictError,
    ExpiredLockError,
    NotFoundError,
    RangeError,
    SlotUnavailableError,
)
from app.core.logging import get_logger
from app.core.settings import settings
from app.models.availability import AvailabilityRecord
from app.schemas.availability import Slot
from app.schemas.reservations import ConfirmedBooking, SlotHold, SlotRef
from app.services import slot_query
from app.services.availability import AvailabilityManager
from app.utils.time import add_duration, time_to_minutes
from app.utils.tz import ensure_aware_utc, utcnow

log = get_logger(__name__)


@dataclass
class ReapResult:
    reaped_count: int = 0
    records_touched: int = 0


def _now(now: datetime | None) -> datetime:
    return ensure_aware_utc(now) if now is not None else utcnow()


def _covers_service(held: list[Slot], start: str, duration: int) -> bool:
    """`held` (ordered) is the contiguous run for [start, start + duration), nothing more."""
    if not held or held[0].start_minutes != time_to_minutes(start):
        return False
    if any(a.end != b.start for a, b in zip(held, held[1:])):
        return False
    service_end = held[0].start_minutes + duration
    return held[-1].start_minutes < service_end <= held[-1].end_minutes


class SlotReservationEngine:
    def __init__(
        self,
        db: Session,
        manager: AvailabilityManager | None = None,
        *,
        lock_ttl: timedelta | None = None,
        max_attempts: int | None = None,
    ):
        self.db = db
        self.manager = manager or AvailabilityManager(db)
        self.lock_ttl = lock_ttl or timedelta(seconds=settings.LOCK_TTL_SECONDS)
        self.max_attempts = max_attempts or settings.LOCK_MAX_ATTEMPTS

    def find_and_lock(
        self,
        professional_id: str,
        day: date | str,
        duration: int,
        *,
        start: str | None = None,
        now: datetime | None = None,
    ) -> SlotHold:
        """
        Hold the first run of slots covering `duration` minutes (or the run
        starting at `start`). Raises SlotUnavailableError when nothing fits and
        ConflictError when every attempt lost the race to another writer.
        """
        if duration <= 0:
            raise RangeError("Service duration must be positive")

        for attempt in range(1, self.max_attempts + 1):
            current = _now(now)
            record = self.manager.get_by_date(professional_id, day, fresh=True)
            if record is None or not record.is_working_day:
                raise SlotUnavailableError()

            slots = record.slots
            run = slot_query.find_run(slots, duration, current, start)
            if run is None:
                raise SlotUnavailableError()

            hold_id = uuid.uuid4().hex
            until = current + self.lock_ttl
            keys = {(s.start, s.end) for s in run}
            record.slots = [
                s.with_lock(hold_id, until) if (s.start, s.end) in keys else s
                for s in slots
            ]
            try:
                self.db.commit()
            except (StaleDataError, OperationalError):
                self.db.rollback()
                log.info(
                    "reservation.lock_retry",
                    professional_id=professional_id,
                    date=str(day),
                    attempt=attempt,
                )
                continue

            log.info(
                "reservation.locked",
                professional_id=professional_id,
                date=record.date.isoformat(),
                start=run[0].start,
                duration=duration,
                hold_id=hold_id,
            )
            return SlotHold(
                hold_id=hold_id,
                professional_id=professional_id,
                date=record.date,
                start=run[0].start,
                end=add_duration(run[0].start, duration),
                duration_minutes=duration,
                locked_until=until,
                slots=[SlotRef(start=s.start, end=s.end) for s in run],
            )

        log.warning(
            "reservation.conflict",
            professional_id=professional_id,
            date=str(day),
            attempts=self.max_attempts,
        )
        raise ConflictError()

    def confirm(
        self,
        professional_id: str,
        day: date | str,
        hold_id: str,
        booking_id: str,
        *,
        start: str,
        duration: int,
        now: datetime | None = None,
    ) -> ConfirmedBooking:
        """
        Book the run held by `hold_id`. `start` and `duration` come from the
        hold; the slots still carrying it must cover exactly that service,
        otherwise the hold is treated as expired.
        """
        if duration <= 0:
            raise RangeError("Service duration must be positive")
        current = _now(now)
        record = self.manager.require(professional_id, day)

        slots = record.slots
        held = sorted((s for s in slots if s.held_by(hold_id)), key=lambda s: s.start_minutes)
        if not _covers_service(held, start, duration) or any(
            not s.is_lock_active(current) for s in held
        ):
            log.info(
                "reservation.confirm_expired",
                professional_id=professional_id,
                date=record.date.isoformat(),
                hold_id=hold_id,
                slots=len(held),
            )
            raise ExpiredLockError()

        record.slots = [
            s.without_lock().model_copy(update={"booking_id": booking_id})
            if s.held_by(hold_id)
            else s
            for s in slots
        ]
        try:
            self.db.commit()
        except StaleDataError as e:
            self.db.rollback()
            raise ConflictError() from e

        log.info(
            "reservation.confirmed",
            professional_id=professional_id,
            date=record.date.isoformat(),
            booking_id=booking_id,
            slots=len(held),
        )
        return ConfirmedBooking(
            booking_id=booking_id,
            professional_id=professional_id,
            date=record.date,
            start=held[0].start,
            end=add_duration(held[0].start, duration),
            slots=[SlotRef(start=s.start, end=s.end) for s in held],
        )

    def release(self, professional_id: str, day: date | str, hold_id: str) -> int:
        """Drop a hold early (checkout abandoned). Unknown holds release nothing."""
        for _ in range(self.max_attempts):
            record = self.manager.get_by_date(professional_id, day, fresh=True)
            if record is None:
                return 0
            slots = record.slots
            count = sum(1 for s in slots if s.held_by(hold_id))
            if count == 0:
                return 0
            record.slots = [s.without_lock() if s.held_by(hold_id) else s for s in slots]
            try:
                self.db.commit()
            except StaleDataError:
                self.db.rollback()
                continue
            log.info(
                "reservation.released",
                professional_id=professional_id,
                date=record.date.isoformat(),
                hold_id=hold_id,
                slots=count,
            )
            return count
        raise ConflictError()

    def cancel_booking(self, professional_id: str, day: date | str, booking_id: str) -> int:
        """Give a booked run back to the offer."""
        record = self.manager.require(professional_id, day)
        slots = record.slots
        count = sum(1 for s in slots if s.booking_id == booking_id)
        if count == 0:
            raise NotFoundError(f"Booking {booking_id} not found on {record.date}")

        record.slots = [
            s.model_copy(update={"booking_id": None}) if s.booking_id == booking_id else s
            for s in slots
        ]
        try:
            self.db.commit()
        except StaleDataError as e:
            self.db.rollback()
            raise ConflictError() from e

        log.info(
            "reservation.cancelled",
            professional_id=professional_id,
            date=record.date.isoformat(),
            booking_id=booking_id,
            slots=count,
        )
        return count

    def reap_expired_locks(
        self, now: datetime | None = None, batch_size: int | None = None
    ) -> ReapResult:
        """
        Clear expired holds across all records. Only records whose
        `next_lock_expiry` has passed are loaded; a record that changes under
        us is left for the next run.
        """
        current = _now(now)
        limit = batch_size or settings.REAPER_BATCH_SIZE
        records = (
            self.db.query(AvailabilityRecord)
            .filter(
                AvailabilityRecord.next_lock_expiry.is_not(None),
                AvailabilityRecord.next_lock_expiry <= current,
            )
            .order_by(AvailabilityRecord.next_lock_expiry.asc())
            .limit(limit)
            .all()
        )

        result = ReapResult()
        for record in records:
            slots = record.slots
            expired = [s for s in slots if s.locked and not s.is_lock_active(current)]
            if not expired:
                continue
            record.slots = [
                s.without_lock() if s.locked and not s.is_lock_active(current) else s
                for s in slots
            ]
            try:
                self.db.commit()
            except StaleDataError:
                self.db.rollback()
                log.info("reaper.record_skipped", record_id=record.id)
                continue
            result.reaped_count += len(expired)
            result.records_touched += 1

        log.info(
            "reaper.swept",
            scanned=len(records),
            reaped=result.reaped_count,
            records=result.records_touched,
        )
        return result
