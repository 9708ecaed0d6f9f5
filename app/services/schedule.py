"""
Schedule generator: base schedule -> concrete slots for one date.

Pure functions, no database access. The manager and the reservation engine
build on these.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from app.schemas.availability import BaseSchedule, ScheduleException, Slot
from app.utils.time import intervals_overlap, minutes_to_time, time_to_minutes


def default_schedule() -> BaseSchedule:
    """09:00-18:00, lunch 13:00-14:00, one-hour slots, Monday to Saturday."""
    return BaseSchedule()


def is_working_day(day_of_week: int, working_days: Iterable[int]) -> bool:
    return day_of_week in set(working_days)


def generate_slots(schedule: BaseSchedule) -> list[Slot]:
    """
    Fixed-length slots from `start` stepping by `granularity_minutes`.

    A slot is only emitted if it ends by `end`, and a slot whose interval
    touches the lunch break at all is dropped whole (never truncated). With a
    granularity that does not divide the morning evenly this loses the slot
    straddling lunch.
    """
    start = time_to_minutes(schedule.start)
    end = time_to_minutes(schedule.end)
    step = schedule.granularity_minutes

    lunch: tuple[int, int] | None = None
    if schedule.lunch_break is not None:
        l0 = time_to_minutes(schedule.lunch_break.start)
        l1 = time_to_minutes(schedule.lunch_break.end)
        if l0 < l1:
            lunch = (l0, l1)

    slots: list[Slot] = []
    t = start
    while t + step <= end:
        if lunch is None or not intervals_overlap(t, t + step, *lunch):
            slots.append(Slot(start=minutes_to_time(t), end=minutes_to_time(t + step)))
        t += step
    return slots


def _blocks(exceptions: Iterable[ScheduleException]) -> list[tuple[int, int]]:
    return [
        (time_to_minutes(e.start), time_to_minutes(e.end))
        for e in exceptions
        if not e.all_day and e.start and e.end
    ]


def apply_blocks(slots: Sequence[Slot], exceptions: Iterable[ScheduleException]) -> list[Slot]:
    """Partial exceptions take intersecting slots out of the offer (available=False)."""
    blocks = _blocks(exceptions)
    if not blocks:
        return list(slots)
    out: list[Slot] = []
    for s in slots:
        s0, s1 = s.start_minutes, s.end_minutes
        if any(intervals_overlap(s0, s1, b0, b1) for b0, b1 in blocks):
            s = s.model_copy(update={"available": False})
        out.append(s)
    return out


@dataclass
class MergeResult:
    slots: list[Slot]
    orphaned_bookings: list[Slot] = field(default_factory=list)
    dropped_holds: list[Slot] = field(default_factory=list)


def merge_slot_state(new_slots: Sequence[Slot], old_slots: Sequence[Slot]) -> MergeResult:
    """
    Carry booking and hold state from `old_slots` onto freshly generated ones,
    matching by (start, end).

    An old booking whose slot disappears, or is now blocked, is reported as
    orphaned; the caller decides whether that is acceptable. A hold that loses
    any of its slots is dropped whole, so the holder's confirm fails and the
    rest of its run goes back on offer.
    """
    old_by_key = {(s.start, s.end): s for s in old_slots}
    result = MergeResult(slots=[])
    matched: set[tuple[str, str]] = set()

    for s in new_slots:
        old = old_by_key.get((s.start, s.end))
        if old is None:
            result.slots.append(s)
            continue
        matched.add((s.start, s.end))
        if old.booking_id is not None and not s.available:
            result.orphaned_bookings.append(old)
        if old.locked and not s.available:
            result.dropped_holds.append(old)
            old = old.without_lock()
        result.slots.append(
            s.model_copy(
                update={
                    "booking_id": old.booking_id,
                    "locked": old.locked,
                    "locked_until": old.locked_until,
                    "hold_id": old.hold_id,
                }
            )
        )

    for key, old in old_by_key.items():
        if key in matched:
            continue
        if old.booking_id is not None:
            result.orphaned_bookings.append(old)
        elif old.locked:
            result.dropped_holds.append(old)

    # a hold is all or nothing: losing one slot releases the rest of its run
    lost = {s.hold_id for s in result.dropped_holds if s.hold_id is not None}
    if lost:
        kept: list[Slot] = []
        for s in result.slots:
            if s.locked and s.hold_id in lost:
                result.dropped_holds.append(s)
                s = s.without_lock()
            kept.append(s)
        result.slots = kept

    return result


def build_day_slots(
    schedule: BaseSchedule,
    day_of_week: int,
    exceptions: Sequence[ScheduleException],
    previous: Sequence[Slot] = (),
) -> tuple[bool, MergeResult]:
    """Working-day flag and merged slots for one date."""
    working = is_working_day(day_of_week, schedule.working_days) and not any(
        e.all_day for e in exceptions
    )
    fresh = apply_blocks(generate_slots(schedule), exceptions) if working else []
    return working, merge_slot_state(fresh, previous)
