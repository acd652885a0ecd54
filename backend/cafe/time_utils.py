# Overview: UTC-naive clock helpers and the business-day calendar used by settlement.

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    """Parse 'YYYY-MM-DD'. None / "" -> None; anything else invalid raises ValueError."""
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None
    return date.fromisoformat(s)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")


def to_iso_date(d: Optional[date]) -> Optional[str]:
    return d.isoformat() if d is not None else None


def local_date(dt: datetime, tz_name: str = "UTC") -> date:
    """Calendar date of a UTC-naive instant as seen in the business timezone."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(ZoneInfo(tz_name)).date()


def is_business_day(d: date) -> bool:
    """Monday-Friday. No public-holiday calendar."""
    return d.weekday() < 5


def add_business_days(start: date, days: int) -> date:
    """
    Walk forward one calendar day at a time, counting only weekdays.

    The start day itself never counts, so Friday + 2 and Saturday + 2
    both land on Tuesday.
    """
    if days < 0:
        raise ValueError("days must be non-negative")
    current = start
    counted = 0
    while counted < days:
        current += timedelta(days=1)
        if is_business_day(current):
            counted += 1
    return current


def week_start(d: date) -> date:
    """Monday of the ISO week containing d."""
    return d - timedelta(days=d.weekday())
