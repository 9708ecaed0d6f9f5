from __future__ import annotations

import re

from app.core.errors import FormatError, RangeError

MINUTES_PER_DAY = 24 * 60
_TIME_RE = re.compile(r"^\d{1,2}:\d{2}$")


def time_to_minutes(value: str) -> int:
    """'HH:MM' -> minutes since midnight (0..1439)."""
    if not isinstance(value, str) or not _TIME_RE.match(value):
        raise FormatError(f"Malformed time {value!r} (expected HH:MM)")
    hours, minutes = map(int, value.split(":"))
    if minutes > 59:
        raise FormatError(f"Malformed time {value!r} (minutes must be < 60)")
    total = hours * 60 + minutes
    if total >= MINUTES_PER_DAY:
        raise FormatError(f"Time {value!r} is past 23:59")
    return total


def minutes_to_time(minutes: int) -> str:
    if not 0 <= minutes < MINUTES_PER_DAY:
        raise RangeError(f"{minutes} minutes is outside a single day")
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def add_duration(start: str, minutes: int) -> str:
    """End time of a `minutes` long interval starting at `start`. No day rollover."""
    if minutes < 0:
        raise RangeError("Duration must not be negative")
    end = time_to_minutes(start) + minutes
    if end >= MINUTES_PER_DAY:
        raise RangeError(f"{start} + {minutes}min runs past 23:59")
    return minutes_to_time(end)


def intervals_overlap(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    # [start, end) intervals, exclusive end
    return not (a_end <= b_start or a_start >= b_end)
