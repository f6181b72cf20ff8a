# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""DateTime utilities for the intervention service.

All timestamps are stored in UTC and every Python datetime handled by the
services is timezone-aware. Calendar dates (event dates, monitoring
windows, re-entry dates) are plain ``date`` objects.

Computations that depend on "today" never call the clock more than once:
callers resolve a single reference instant (``utc_now()`` or
``utc_today()``) and pass it down explicitly.

Usage:
------
    from src.utils.datetime import utc_now, utc_today

    now = utc_now()
    today = utc_today()

    # For SQLAlchemy model defaults
    created_at = mapped_column(DateTime(timezone=True), default=utc_now)
"""

from datetime import date, datetime, time, timedelta, timezone


def utc_now() -> datetime:
    """Get current UTC time as timezone-aware datetime.

    Returns:
        Timezone-aware datetime representing current UTC time.
    """
    return datetime.now(timezone.utc)


def utc_today() -> date:
    """Get the current UTC calendar date."""
    return utc_now().date()


def ensure_utc(dt: datetime | None) -> datetime | None:
    """Ensure a datetime is timezone-aware UTC.

    Args:
        dt: A datetime object (naive or aware) or None.

    Returns:
        Timezone-aware UTC datetime or None.

    Note:
        - If dt is None, returns None
        - If dt is naive, assumes UTC and adds tzinfo
        - If dt is aware, converts to UTC
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        # Naive datetime - assume UTC
        return dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(timezone.utc)


def day_start(day: date) -> datetime:
    """Get midnight UTC for a calendar date."""
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def day_end(day: date) -> datetime:
    """Get 23:59:59.999999 UTC for a calendar date."""
    return datetime.combine(day, time.max, tzinfo=timezone.utc)


def truncate_to_day(dt: datetime) -> datetime:
    """Truncate a datetime to midnight UTC of its UTC day."""
    dt_utc = ensure_utc(dt)
    return dt_utc.replace(hour=0, minute=0, second=0, microsecond=0)


def add_days(day: date, days: int) -> date:
    """Shift a calendar date by a number of days (negative goes back)."""
    return day + timedelta(days=days)


def start_of_week(day: date, week_start: int = 0) -> date:
    """Get the first day of the week containing ``day``.

    Args:
        day: Any date inside the week.
        week_start: Weekday the week starts on (0 = Monday, 6 = Sunday).

    Returns:
        The date of the week start on or before ``day``.
    """
    offset = (day.weekday() - week_start) % 7
    return day - timedelta(days=offset)


def format_iso(dt: datetime | None) -> str | None:
    """Format a datetime as ISO 8601 string.

    Args:
        dt: Datetime to format.

    Returns:
        ISO 8601 formatted string or None.
    """
    if dt is None:
        return None

    return ensure_utc(dt).isoformat()


def parse_iso(iso_string: str | None) -> datetime | None:
    """Parse an ISO 8601 datetime string.

    Args:
        iso_string: ISO 8601 formatted string.

    Returns:
        Timezone-aware UTC datetime or None.
    """
    if iso_string is None:
        return None

    dt = datetime.fromisoformat(iso_string.replace("Z", "+00:00"))
    return ensure_utc(dt)


def days_between(start: date, end: date) -> int:
    """Number of whole days from ``start`` to ``end``."""
    return (end - start).days
