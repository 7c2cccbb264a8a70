"""Datetime helpers for the scheduling engine."""

from __future__ import annotations

from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


def to_utc(value: datetime) -> datetime:
    """Ensure a datetime is timezone-aware and normalized to UTC (naive = UTC)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def resolve_timezone(name: str | None) -> ZoneInfo | None:
    """Return the ZoneInfo for an IANA name, or None when unknown."""
    if not name:
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return None


def parse_wall_time(value: str | time) -> time:
    """Parse an HH:MM wall-clock time."""
    if isinstance(value, time):
        return value
    return time.fromisoformat(value.strip())


def weekday_index(day: date) -> int:
    """Weekday with Sunday=0 ... Saturday=6."""
    return day.isoweekday() % 7
