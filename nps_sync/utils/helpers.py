"""
Helper utilities for NPS Sync.

This module provides date arithmetic and identity helpers shared by the
models and services.
"""

import calendar
import hashlib
import uuid
from datetime import date, datetime, time, timezone
from typing import Optional, Union


def generate_id() -> str:
    """
    Generate a random unique ID.

    Returns:
        Unique ID string.
    """
    return str(uuid.uuid4())


def derive_uid(*parts: object) -> str:
    """
    Derive a stable identity key from natural key parts.

    The same parts always produce the same key, so a record fetched twice
    dedupes against itself.

    Args:
        parts: Natural key components, e.g. user id and creation timestamp.

    Returns:
        Hex digest string.
    """
    joined = "|".join("" if part is None else str(part) for part in parts)
    return hashlib.sha1(joined.encode("utf-8")).hexdigest()


def ensure_utc(dt: datetime) -> datetime:
    """Attach UTC to naive datetimes and convert aware ones to UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_date(value: Union[str, datetime, date, None]) -> Optional[datetime]:
    """
    Parse an upstream date value into an aware UTC datetime.

    Args:
        value: ISO-8601 string, datetime or date.

    Returns:
        Parsed datetime or None if parsing failed.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)

    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"

    try:
        return ensure_utc(datetime.fromisoformat(text))
    except ValueError:
        pass

    formats = [
        "%Y-%m-%d %H:%M:%S",  # Simple format
        "%Y-%m-%d",  # Date only
        "%d/%m/%Y %H:%M:%S",  # Brazilian format
        "%d/%m/%Y",
    ]

    for fmt in formats:
        try:
            return ensure_utc(datetime.strptime(text, fmt))
        except ValueError:
            continue

    return None


def format_date(dt: Union[datetime, date], fmt: str = "%Y-%m-%d") -> str:
    """
    Format a date the way the remote API expects it in query strings.

    Args:
        dt: Datetime or date to format.
        fmt: Format string.

    Returns:
        Formatted date string.
    """
    return dt.strftime(fmt)


def subtract_months(dt: datetime, months: int) -> datetime:
    """
    Move a datetime back by whole calendar months.

    The day is clamped to the last day of the target month, so
    31 May minus 3 months is 28/29 February.
    """
    month_index = dt.year * 12 + (dt.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)


def start_of_day(value: Union[datetime, date]) -> datetime:
    """First instant of the value's day, in the value's timezone (UTC if naive)."""
    if isinstance(value, datetime):
        value = ensure_utc(value) if value.tzinfo is None else value
        return value.replace(hour=0, minute=0, second=0, microsecond=0)
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


def end_of_day(value: Union[datetime, date]) -> datetime:
    """Last instant of the value's day, in the value's timezone (UTC if naive)."""
    if isinstance(value, datetime):
        value = ensure_utc(value) if value.tzinfo is None else value
        return value.replace(hour=23, minute=59, second=59, microsecond=999999)
    return datetime.combine(value, time.max, tzinfo=timezone.utc)
