"""Shared utilities for the sync pipeline.

This module provides the small helpers used across the clients, the
orchestrators and the query layer:

- Date parsing and date-list construction for sync runs
- Conversion between ISO dates and POS business dates (yyyyMMdd)
- Timezone helpers for business-day windows and hour bucketing
- ``round_money``: the single rounding rule applied at persistence

Examples:
    >>> from pos_metrics.utils import round_money, to_business_date
    >>> round_money(10.125)
    10.13
    >>> to_business_date("2024-03-01")
    '20240301'

"""

from __future__ import annotations

import math
import re
from collections.abc import Iterable
from datetime import date, datetime, timedelta, timezone

import pandas as pd

ISO_DATE_RE = re.compile(r"^(\d{4}-\d{2}-\d{2})")


def parse_date(s: str) -> date:
    """Parse a date string in YYYY-MM-DD format.

    Args:
        s: Date string in ISO format (YYYY-MM-DD).

    Returns:
        Parsed date object.

    Raises:
        ValueError: If the date string is not in YYYY-MM-DD format.

    Examples:
        >>> parse_date("2023-01-15")
        datetime.date(2023, 1, 15)

    """
    return datetime.strptime(s, "%Y-%m-%d").date()


def format_duration(seconds: float) -> str:
    """Format a duration in seconds as a human-readable string.

    Examples:
        >>> format_duration(90.5)
        '1m 30.5s'
        >>> format_duration(45.2)
        '45.2s'

    """
    mins, secs = divmod(seconds, 60.0)
    if mins >= 1:
        return f"{int(mins)}m {secs:04.1f}s"
    return f"{secs:.1f}s"


def dates_back(end: date, days: int) -> list[str]:
    """Return ``days`` ISO dates counting back from ``end`` (inclusive), newest first.

    Examples:
        >>> dates_back(date(2024, 3, 2), 2)
        ['2024-03-02', '2024-03-01']

    """
    return [(end - timedelta(days=i)).isoformat() for i in range(max(days, 0))]


def utc_now() -> str:
    """Current UTC time as an ISO-8601 string (sync log timestamps)."""
    return datetime.now(timezone.utc).isoformat()


def yesterday(today: date | None = None) -> date:
    """Return the day before ``today`` (defaults to the local current date)."""
    return (today or date.today()) - timedelta(days=1)


def to_business_date(iso_date: str) -> str:
    """Convert yyyy-MM-dd to the POS business date format yyyyMMdd."""
    return iso_date.replace("-", "")


def business_date_to_iso(business_date: str | int) -> str:
    """Convert a yyyyMMdd business date to yyyy-MM-dd."""
    s = str(business_date)
    return f"{s[0:4]}-{s[4:6]}-{s[6:8]}"


def round_money(value: float | None) -> float:
    """Round to two decimals, half-up on the scaled value.

    This is ``floor(value * 100 + 0.5) / 100``; it is the only rounding rule
    used when rollups are persisted so that identical inputs always store
    identical outputs.

    Examples:
        >>> round_money(2.125)
        2.13
        >>> round_money(-1.005)
        -1.0
        >>> round_money(None)
        0.0

    """
    if value is None:
        return 0.0
    return math.floor(float(value) * 100 + 0.5) / 100


def to_cents(value: float | None) -> int:
    """Convert a money amount to integer cents with the ``round_money`` rule."""
    if value is None:
        return 0
    return int(math.floor(float(value) * 100 + 0.5))


def utc_offset(iso_date: str, timezone: str) -> str:
    """Return the UTC offset (``+HHMM``/``-HHMM``) of ``timezone`` on ``iso_date``.

    The offset is read at noon local time so DST transitions at 2am do not
    shift the business-day window.

    Examples:
        >>> utc_offset("2024-01-15", "America/New_York")
        '-0500'
        >>> utc_offset("2024-07-15", "America/New_York")
        '-0400'

    """
    return pd.Timestamp(f"{iso_date}T12:00:00", tz=timezone).strftime("%z")


def business_day_window(iso_date: str, timezone: str) -> tuple[str, str]:
    """Build the start/end instants of a business date for the time-entries endpoint.

    Examples:
        >>> business_day_window("2024-01-15", "America/New_York")
        ('2024-01-15T00:00:00.000-0500', '2024-01-15T23:59:59.999-0500')

    """
    offset = utc_offset(iso_date, timezone)
    return f"{iso_date}T00:00:00.000{offset}", f"{iso_date}T23:59:59.999{offset}"


def local_hours(timestamps: pd.Series, timezone: str) -> pd.Series:
    """Convert ISO timestamps to the hour of day in ``timezone``.

    Naive timestamps are read as UTC. Unparseable values become ``NaN``.
    """
    parsed = pd.to_datetime(timestamps, utc=True, errors="coerce", format="ISO8601")
    return parsed.dt.tz_convert(timezone).dt.hour


def normalize_date(value: str | None, fallback: str = "") -> str:
    """Reduce a date or timestamp string to yyyy-MM-dd.

    A leading ``YYYY-MM-DD`` is taken verbatim; other strings are parsed as
    timestamps and converted to their UTC date; anything else returns
    ``fallback``.

    Examples:
        >>> normalize_date("2024-01-05T10:00:00Z")
        '2024-01-05'
        >>> normalize_date("", "2024-01-01")
        '2024-01-01'

    """
    if value:
        match = ISO_DATE_RE.match(value)
        if match:
            return match.group(1)
        parsed = pd.to_datetime(value, utc=True, errors="coerce")
        if not pd.isna(parsed):
            return parsed.date().isoformat()
    return fallback


def unique(values: Iterable[str]) -> list[str]:
    """Return non-empty values once each, preserving first-seen order."""
    seen: dict[str, None] = {}
    for v in values:
        if v:
            seen.setdefault(v, None)
    return list(seen)


def resolve_date(value: str | None = None, today: date | None = None) -> str:
    """Resolve a query date argument to yyyy-MM-dd.

    Accepts ``"today"``, ``"yesterday"``, ``yyyy-MM-dd`` and ``yyyyMMdd``.
    ``None`` or an empty string means yesterday.

    Raises:
        ValueError: If the value is none of the above.

    Examples:
        >>> resolve_date("20240301")
        '2024-03-01'
        >>> resolve_date(None, today=date(2024, 3, 2))
        '2024-03-01'

    """
    today = today or date.today()
    text = (value or "").strip().lower()
    if not text or text == "yesterday":
        return yesterday(today).isoformat()
    if text == "today":
        return today.isoformat()
    if re.fullmatch(r"\d{8}", text):
        return business_date_to_iso(text)
    return parse_date(text).isoformat()


def resolve_range(
    start: str | None = None, end: str | None = None, today: date | None = None
) -> tuple[str, str]:
    """Resolve a date range; the end defaults to yesterday, the start to six days before the end.

    Examples:
        >>> resolve_range(end="2024-03-07")
        ('2024-03-01', '2024-03-07')

    """
    end_iso = resolve_date(end, today)
    if start:
        return resolve_date(start, today), end_iso
    return (parse_date(end_iso) - timedelta(days=6)).isoformat(), end_iso
