from __future__ import annotations

from collections.abc import Iterable
from datetime import date, timedelta

from app.core.errors import ValidationError


def day_of_week(d: date) -> int:
    """Weekday with the marketplace convention: 0=Sunday ... 6=Saturday."""
    # date.weekday(): 0=Monday ... 6=Sunday
    return (d.weekday() + 1) % 7


def parse_date(value: date | str) -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid date {value!r} (expected YYYY-MM-DD)") from None


def parse_dates(values: Iterable[date | str]) -> list[date]:
    return [parse_date(v) for v in values]


def date_range(start: date | str, days: int) -> list[date]:
    """`days` consecutive dates beginning at `start`."""
    first = parse_date(start)
    if days < 0:
        raise ValidationError("days must not be negative")
    return [first + timedelta(days=i) for i in range(days)]
