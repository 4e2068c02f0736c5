"""Date parsing utilities."""

import re
from datetime import date, datetime, timedelta
from typing import Optional, Union

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

DateInput = Union[date, datetime, str, None]

_AGO_RE = re.compile(r"^(\d+)\s+(day|week|month|year)s?\s+ago$")


def parse_date(date_str: str) -> date:
    """Parse a date string into a date object.

    Supports absolute dates ("2024-01-15", "January 15, 2024") and a few
    relative forms: "today", "yesterday", "tomorrow" and "N days/weeks/
    months/years ago".

    Args:
        date_str: Date string in various formats

    Returns:
        Date object

    Raises:
        ValueError: If date string cannot be parsed
    """
    date_str = date_str.strip().lower()
    today = date.today()

    relative_dates = {
        "today": today,
        "yesterday": today - timedelta(days=1),
        "tomorrow": today + timedelta(days=1),
    }
    if date_str in relative_dates:
        return relative_dates[date_str]

    match = _AGO_RE.match(date_str)
    if match:
        count = int(match.group(1))
        unit = match.group(2)
        if unit == "day":
            return today - timedelta(days=count)
        if unit == "week":
            return today - timedelta(weeks=count)
        if unit == "month":
            return today - relativedelta(months=count)
        return today - relativedelta(years=count)

    try:
        return date_parser.parse(date_str).date()
    except (ValueError, OverflowError) as e:
        raise ValueError(f"Could not parse date '{date_str}': {e}")


def coerce_date(value: DateInput) -> Optional[date]:
    """Coerce a raw date value into a date, or None when missing or unparseable."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value.strip():
        return None
    try:
        return parse_date(value)
    except ValueError:
        return None


def date_window(center: date, days: int) -> tuple[date, date]:
    """Return the inclusive (start, end) range of ``center ± days``."""
    return center - timedelta(days=days), center + timedelta(days=days)
