"""Date and URL helpers shared across the package."""

from __future__ import annotations

import posixpath
from datetime import date, datetime, timedelta
from urllib.parse import urlparse

_DAYS_IN_MONTH = (0, 31, 29, 31, 30, 31, 30, 31, 31, 30, 31, 30, 31)


def _to_int(text: str) -> int | None:
    if not text or text != text.strip():
        return None
    try:
        return int(text)
    except ValueError:
        return None


def _as_date(value: date | datetime | None) -> date:
    if value is None:
        return date.today()
    if isinstance(value, datetime):
        return value.date()
    return value


def is_date(date: str) -> bool:
    """Return True if ``date`` looks like a valid YYYY-MM-DD date."""
    if len(date) != len("2021-04-26") or date.count("-") != 2:
        return False
    year = _to_int(date[0:4])
    month = _to_int(date[5:7])
    day = _to_int(date[8:10])
    if year is None or month is None or day is None:
        return False
    if not 1970 <= year <= 2200:
        return False
    if not 1 <= month <= 12:
        return False
    return 1 <= day <= _DAYS_IN_MONTH[month]


def is_url(text: str) -> bool:
    """Return True if ``text`` is a URL with both scheme and host."""
    try:
        parsed = urlparse(text)
    except ValueError:
        return False
    return bool(parsed.scheme) and bool(parsed.netloc)


def join_url(base: str, *args: str) -> str:
    """Join ``base`` with the path segments in ``args``."""
    parts = [part for part in args if part]
    joined = posixpath.normpath("/".join(parts)) if parts else ""
    return f"{base.rstrip('/')}/{joined.lstrip('/')}"


def months_from_today(n: int, today: date | datetime | None = None) -> list[str]:
    """Return ``n`` months (1..100) as YYYY-MM, starting with the current one."""
    n = max(1, min(n, 100))
    current = _as_date(today)
    year, month = current.year, current.month
    months = []
    for _ in range(n):
        months.append(f"{year:04d}-{month:02d}")
        month -= 1
        if month == 0:
            month = 12
            year -= 1
    return months


def _previous_weekday(day: date) -> date:
    if day.weekday() == 5:  # Saturday
        day -= timedelta(days=1)
    if day.weekday() == 6:  # Sunday
        day -= timedelta(days=2)
    return day


def last_business_day_of_year(year: int, today: date | datetime | None = None) -> str:
    """Return the business day on or before Dec 29 of ``year`` as YYYY-MM-DD.

    For the current year, the last business day before today is returned.
    """
    current = _as_date(today)
    if year == current.year:
        return last_business_day(1, current)
    return _previous_weekday(date(year, 12, 29)).isoformat()


def last_business_day(n: int, today: date | datetime | None = None) -> str:
    """Return the most recent business day ``n`` days before today as YYYY-MM-DD."""
    day = _as_date(today)
    if n > 0:
        day -= timedelta(days=n)
    return _previous_weekday(day).isoformat()