from __future__ import annotations

import math
from datetime import date, datetime, time, timedelta, timezone

from dateutil.relativedelta import relativedelta

ONE_DAY = timedelta(days=1)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive values (SQLite drops tzinfo) and convert aware ones."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_expiration(value: str | date | datetime) -> datetime:
    """Accept ISO-8601 datetimes or plain dates; a plain date means midnight UTC."""
    if isinstance(value, datetime):
        return as_utc(value)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    s = str(value or "").strip()
    if not s:
        raise ValueError("empty date")
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    if len(s) == 10:
        return datetime.combine(date.fromisoformat(s), time.min, tzinfo=timezone.utc)
    return as_utc(datetime.fromisoformat(s))


def add_months(value: datetime, months: int) -> datetime:
    """Calendar-month addition; the day is clamped to the end of the target month (Jan 31 + 1 -> Feb 28/29)."""
    return value + relativedelta(months=int(months))


def days_left(expiration: datetime, now: datetime | None = None) -> int:
    now = now or utcnow()
    return math.ceil((as_utc(expiration) - now) / ONE_DAY)


def days_expired(expiration: datetime, now: datetime | None = None) -> int:
    now = now or utcnow()
    return math.floor((now - as_utc(expiration)) / ONE_DAY)


def days_since(value: datetime | None, now: datetime | None = None) -> int | None:
    if value is None:
        return None
    now = now or utcnow()
    return math.ceil(abs(now - as_utc(value)) / ONE_DAY)


def parse_upstream_datetime(value) -> datetime | None:
    """Emby returns ISO strings with 7 fractional digits and a trailing Z."""
    if not value or not isinstance(value, str):
        return None
    s = value.strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    # trim fractional seconds to microseconds
    if "." in s:
        head, _, rest = s.partition(".")
        digits = ""
        tail = ""
        for i, ch in enumerate(rest):
            if ch.isdigit():
                digits += ch
            else:
                tail = rest[i:]
                break
        s = f"{head}.{digits[:6].ljust(6, '0')}{tail}" if digits else f"{head}{tail}"
    try:
        return as_utc(datetime.fromisoformat(s))
    except ValueError:
        return None
