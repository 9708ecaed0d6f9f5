from __future__ import annotations

from datetime import UTC, date, datetime
from zoneinfo import ZoneInfo

from app.core.settings import settings



def utcnow() -> datetime:
    return datetime.now(UTC)


def ensure_aware_utc(dt: datetime) -> datetime:
    """
    Return `dt` as an aware UTC datetime.
    Aware values are converted; naive values are rejected so nothing is stored
    in an unknown zone.
    """
    if dt.tzinfo is None:
        raise ValueError("Naive datetime received. Always use timezone-aware datetimes.")
    return dt.astimezone(UTC)


def local_tz() -> ZoneInfo:
    return ZoneInfo(settings.LOCAL_TZ)


def today_local(now: datetime | None = None, tz: ZoneInfo | None = None) -> date:
    """Calendar date 'today' for the marketplace timezone."""
    now = ensure_aware_utc(now) if now is not None else utcnow()
    return now.astimezone(tz or local_tz()).date()


def iso_utc(dt: datetime) -> str:
    """
    Serialise as ISO 8601 in UTC with a 'Z' suffix.
    """
    return ensure_aware_utc(dt).isoformat().replace("+00:00", "Z")
