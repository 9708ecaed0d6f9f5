from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, datetime

from sqlalchemy.orm import Session

from app.core.errors import RangeError
from app.core.logging import get_logger
from app.schemas.availability import Slot
from app.services.availability import AvailabilityManager
from app.utils.time import add_duration, time_to_minutes
from app.utils.tz import ensure_aware_utc, utcnow

log = get_logger(__name__)


@dataclass(frozen=True)
class AvailableSlot:
    start: str
    end: str
    duration: int


def _check_duration(duration: int) -> None:
    if duration <= 0:
        raise RangeError("Service duration must be positive")


def covering_run(slots: Sequence[Slot], index: int, duration: int) -> list[Slot] | None:
    """
    Contiguous slots starting at `slots[index]` that together cover
    `duration` minutes, or None if a gap or the end of the day gets in the way.
    """
    first = slots[index]
    needed_end = first.start_minutes + duration
    run = [first]
    covered = first.end_minutes
    i = index
    while covered < needed_end:
        i += 1
        if i >= len(slots):
            return None
        nxt = slots[i]
        if nxt.start_minutes != covered:
            return None  # gap (lunch, removed slot...)
        run.append(nxt)
        covered = nxt.end_minutes
    return run


def candidate_runs(
    slots: Sequence[Slot], duration: int, now: datetime
) -> list[list[Slot]]:
    """Every offerable run, one per starting slot, chronological."""
    _check_duration(duration)
    runs: list[list[Slot]] = []
    for i in range(len(slots)):
        run = covering_run(slots, i, duration)
        if run and all(s.is_offerable(now) for s in run):
            runs.append(run)
    return runs


def find_run(
    slots: Sequence[Slot],
    duration: int,
    now: datetime,
    start: str | None = None,
) -> list[Slot] | None:
    """First offerable run, or the run beginning exactly at `start`."""
    if start is not None:
        time_to_minutes(start)
    for run in candidate_runs(slots, duration, now):
        if start is None or run[0].start == start:
            return run
    return None


class AvailabilityQuery:
    """Which slots on a date can host a service of a given duration."""

    def __init__(self, db: Session, manager: AvailabilityManager | None = None):
        self.db = db
        self.manager = manager or AvailabilityManager(db)

    def get_available_slots(
        self,
        professional_id: str,
        day: date | str,
        duration: int,
        now: datetime | None = None,
    ) -> list[AvailableSlot]:
        _check_duration(duration)
        now = ensure_aware_utc(now) if now else utcnow()
        record = self.manager.get_by_date(professional_id, day)
        if record is None or not record.is_working_day:
            return []

        out = [
            AvailableSlot(
                start=run[0].start,
                end=add_duration(run[0].start, duration),
                duration=duration,
            )
            for run in candidate_runs(record.slots, duration, now)
        ]
        log.debug(
            "slots.query",
            professional_id=professional_id,
            date=record.date.isoformat(),
            duration=duration,
            found=len(out),
        )
        return out
