"""
Datetime and payroll-month helpers.
- Store and compute in UTC in DB.
- Payroll months are addressed by a "YYYY-MM" month key; keys compare correctly as strings.
"""
import calendar
import re
from datetime import date, datetime, timezone
from typing import Optional, Tuple

UTC = timezone.utc

MONTH_KEY_RE = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


def now_utc() -> datetime:
    """Current time in UTC (timezone-aware)."""
    return datetime.now(UTC)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """If dt is naive, treat as UTC and return timezone-aware UTC. If already aware, convert to UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    else:
        dt = dt.astimezone(UTC)
    return dt


def iso_8601_utc(dt: Optional[datetime]) -> Optional[str]:
    """ISO-8601 with Z for UTC."""
    if dt is None:
        return None
    s = ensure_utc(dt).isoformat()
    if s.endswith("+00:00"):
        s = s[:-6] + "Z"
    return s


def is_valid_month_key(value: Optional[str]) -> bool:
    return bool(value) and bool(MONTH_KEY_RE.match(value))


def validate_month_key(value: str) -> str:
    """Return value unchanged or raise ValueError if it is not YYYY-MM."""
    if not is_valid_month_key(value):
        raise ValueError(f"Month must be in YYYY-MM format, got {value!r}")
    return value


def month_key_of(d: date) -> str:
    return f"{d.year:04d}-{d.month:02d}"


def month_bounds(month_key: str) -> Tuple[date, date]:
    """First and last calendar day of a YYYY-MM month."""
    validate_month_key(month_key)
    year, month = (int(p) for p in month_key.split("-"))
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def add_months(month_key: str, months: int) -> str:
    """Shift a month key by a number of months (may be negative)."""
    validate_month_key(month_key)
    year, month = (int(p) for p in month_key.split("-"))
    index = year * 12 + (month - 1) + months
    return f"{index // 12:04d}-{index % 12 + 1:02d}"
