"""Local-time formatting for picked locations."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(when: datetime) -> datetime:
    if when.tzinfo is None:
        return when.replace(tzinfo=timezone.utc)
    return when.astimezone(timezone.utc)


def format_time_at_longitude(lon: float, when: datetime) -> str:
    """Approximate local time from longitude alone (15 degrees per hour)."""
    local = _as_utc(when) + timedelta(hours=lon / 15.0)
    return local.strftime("%H:%M")


def format_time_at_zone(zone: str, when: datetime) -> str | None:
    """Wall-clock time in an IANA zone, or None if the zone is unknown."""
    try:
        tz = ZoneInfo(zone)
    except (ZoneInfoNotFoundError, ValueError):
        return None
    return _as_utc(when).astimezone(tz).strftime("%H:%M")
