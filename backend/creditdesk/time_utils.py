from __future__ import annotations

from datetime import date, datetime, time, timezone
from functools import lru_cache
from typing import Optional
from zoneinfo import ZoneInfo

DEFAULT_BUSINESS_TIMEZONE = "Africa/Nairobi"


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


@lru_cache(maxsize=8)
def business_zone(tz_name: str = DEFAULT_BUSINESS_TIMEZONE) -> ZoneInfo:
    return ZoneInfo(tz_name)


def to_business(dt: datetime, tz_name: str = DEFAULT_BUSINESS_TIMEZONE) -> datetime:
    """
    Convert a datetime into the business timezone.

    Naive datetimes are treated as UTC, matching how timestamps are stored.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(business_zone(tz_name))


def business_now(tz_name: str = DEFAULT_BUSINESS_TIMEZONE, now: Optional[datetime] = None) -> datetime:
    """Aware 'now' in the business timezone. `now` (UTC) may be injected for tests."""
    return to_business(now if now is not None else utcnow(), tz_name)


def business_today(tz_name: str = DEFAULT_BUSINESS_TIMEZONE, now: Optional[datetime] = None) -> date:
    return business_now(tz_name, now).date()


def split_issue_stamp(local_dt: datetime) -> tuple[date, time]:
    """Split a business-timezone datetime into (issue_date, issue_time), second precision."""
    return local_dt.date(), local_dt.time().replace(microsecond=0, tzinfo=None)


def month_key(d: date) -> str:
    """Calendar month bucket label, e.g. '2025-10'."""
    return f"{d.year:04d}-{d.month:02d}"


def previous_month_key(d: date) -> str:
    if d.month == 1:
        return f"{d.year - 1:04d}-12"
    return f"{d.year:04d}-{d.month - 1:02d}"


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    """
    Parse 'YYYY-MM-DD' (a full ISO datetime is accepted and truncated).

    - None / "" -> None
    - malformed -> ValueError
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None
    if len(s) > 10:
        return parse_iso_datetime(s).date()
    return date.fromisoformat(s)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 datetime string and normalize to UTC-naive datetime.

    - None / "" -> None
    - "YYYY-MM-DDTHH:MM" (naive) is interpreted as UTC
    - "...Z" or "...+/-HH:MM" is converted to UTC and tzinfo is stripped
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    # Accept trailing Z
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    dt = datetime.fromisoformat(s)

    # Normalize to UTC-naive
    if dt.tzinfo is None:
        # interpret naive as UTC
        return dt.replace(tzinfo=None)

    return dt.astimezone(timezone.utc).replace(tzinfo=None)


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
