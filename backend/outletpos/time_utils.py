"""
Time handling for OutletPOS.

Every datetime stored in the database is UTC-naive. Outlets run on a fixed
local offset (BUSINESS_UTC_OFFSET_HOURS) only when a calendar day matters:
transaction numbering and the per-day sequence.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    """Current instant, UTC-naive."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _as_utc_naive(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    "2026-03-10T12:00:00+07:00" -> datetime(2026, 3, 10, 5, 0)

    A trailing Z means UTC and a value without an offset is taken as UTC.
    Blank input gives None; malformed input raises ValueError.
    """
    text = (value or "").strip()
    if not text:
        return None
    if text[-1] in "zZ":
        text = f"{text[:-1]}+00:00"
    return _as_utc_naive(datetime.fromisoformat(text))


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """ISO-8601 in UTC with a Z suffix, whole seconds. Naive input is UTC."""
    if dt is None:
        return None
    return _as_utc_naive(dt).replace(microsecond=0).isoformat() + "Z"


def business_date(dt: datetime, utc_offset_hours: int) -> date:
    """Calendar date of a UTC-naive instant as seen on the outlet's wall clock."""
    return (dt + timedelta(hours=utc_offset_hours)).date()


def business_day_bounds(day: date, utc_offset_hours: int) -> tuple[datetime, datetime]:
    """UTC-naive [start, end) window covering one local business day."""
    start = datetime.combine(day, time.min) - timedelta(hours=utc_offset_hours)
    return start, start + timedelta(days=1)
