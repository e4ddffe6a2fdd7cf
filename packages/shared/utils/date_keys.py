"""
Berlin calendar-day keys ('YYYY-MM-DD', Europe/Berlin).

UTC instants are converted with pytz. Day arithmetic uses proleptic Gregorian
ordinals (days since 1970-01-01), so results never depend on the host timezone
or on DST clock shifts.
"""
from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Iterator

import pytz

BERLIN_TZ_NAME = "Europe/Berlin"
BERLIN = pytz.timezone(BERLIN_TZ_NAME)

_DATE_KEY_RE = re.compile(r"([0-9]{4})-([0-9]{2})-([0-9]{2})")
_DAYS_IN_MONTH = (0, 31, 28, 31, 30, 31, 30, 31, 31, 30, 31, 30, 31)


class DateKeyError(ValueError):
    """Malformed or impossible calendar-day key or timestamp."""


def is_leap_year(year: int) -> bool:
    return (year % 4 == 0 and year % 100 != 0) or year % 400 == 0


def days_in_month(year: int, month: int) -> int:
    if month == 2 and is_leap_year(year):
        return 29
    return _DAYS_IN_MONTH[month]


def parse_date_key(date_key: str) -> tuple[int, int, int]:
    """Split a key into (year, month, day), rejecting impossible dates."""
    match = _DATE_KEY_RE.fullmatch(date_key or "")
    if not match:
        raise DateKeyError(f"Invalid date key format: {date_key!r}")
    y, m, d = (int(g) for g in match.groups())
    if m < 1 or m > 12:
        raise DateKeyError(f"Invalid month in date key: {date_key!r}")
    if d < 1 or d > days_in_month(y, m):
        raise DateKeyError(f"Invalid day in date key: {date_key!r}")
    return y, m, d


def _civil_to_days(y: int, m: int, d: int) -> int:
    y = y - 1 if m <= 2 else y
    era = y // 400
    yoe = y - era * 400
    doy = (153 * (m + (-3 if m > 2 else 9)) + 2) // 5 + d - 1
    doe = yoe * 365 + yoe // 4 - yoe // 100 + doy
    return era * 146097 + doe - 719468


def _days_to_civil(z: int) -> tuple[int, int, int]:
    z += 719468
    era = z // 146097
    doe = z - era * 146097
    yoe = (doe - doe // 1460 + doe // 36524 - doe // 146096) // 365
    doy = doe - (365 * yoe + yoe // 4 - yoe // 100)
    mp = (5 * doy + 2) // 153
    d = doy - (153 * mp + 2) // 5 + 1
    m = mp + (3 if mp < 10 else -9)
    y = yoe + era * 400 + (1 if m <= 2 else 0)
    return y, m, d


def date_key_to_ordinal(date_key: str) -> int:
    return _civil_to_days(*parse_date_key(date_key))


def ordinal_to_date_key(ordinal: int) -> str:
    y, m, d = _days_to_civil(ordinal)
    return f"{y:04d}-{m:02d}-{d:02d}"


def parse_utc_timestamp(value: str | datetime) -> datetime:
    """Parse an ISO-8601 instant; naive values are taken as UTC."""
    if isinstance(value, datetime):
        parsed = value
    else:
        raw = (value or "").strip()
        if raw.endswith("Z") or raw.endswith("z"):
            raw = raw[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(raw)
        except ValueError as exc:
            raise DateKeyError(f"Invalid timestamp: {value!r}") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def berlin_date_key_from_utc(value: str | datetime) -> str:
    """Berlin calendar day of a UTC instant."""
    local = parse_utc_timestamp(value).astimezone(BERLIN)
    return f"{local.year:04d}-{local.month:02d}-{local.day:02d}"


def berlin_time_label_from_utc(value: str | datetime) -> str:
    """Berlin wall-clock 'HH:MM' of a UTC instant."""
    local = parse_utc_timestamp(value).astimezone(BERLIN)
    return f"{local.hour:02d}:{local.minute:02d}"


def add_berlin_days(date_key: str, n: int) -> str:
    return ordinal_to_date_key(date_key_to_ordinal(date_key) + n)


def diff_berlin_days(a: str, b: str) -> int:
    """Calendar days from a to b (positive when b is later)."""
    return date_key_to_ordinal(b) - date_key_to_ordinal(a)


def is_in_range(date_key: str, start: str, end: str) -> bool:
    ordinal = date_key_to_ordinal(date_key)
    return date_key_to_ordinal(start) <= ordinal <= date_key_to_ordinal(end)


def iter_date_keys(start: str, end: str) -> Iterator[str]:
    """Every key from start to end inclusive (empty when end < start)."""
    first = date_key_to_ordinal(start)
    last = date_key_to_ordinal(end)
    for ordinal in range(first, last + 1):
        yield ordinal_to_date_key(ordinal)
