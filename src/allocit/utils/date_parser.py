"""Date parsing utilities."""

from datetime import date, timedelta
from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta


def _relative_date(date_str: str, today: date) -> date | None:
    """Resolve "today", "yesterday" and "last/this month|week|year"."""
    if date_str == "today":
        return today
    if date_str == "yesterday":
        return today - timedelta(days=1)

    which, _, period = date_str.partition(" ")
    if which not in ("last", "this") or period not in ("week", "month", "year"):
        return None

    if period == "week":
        start = today - timedelta(days=today.weekday())
        return start - timedelta(days=7) if which == "last" else start
    if period == "month":
        start = today.replace(day=1)
        return start - relativedelta(months=1) if which == "last" else start
    start = today.replace(month=1, day=1)
    return start - relativedelta(years=1) if which == "last" else start


def parse_date(date_str: str) -> date:
    """Parse a date string into a date object.

    Bank exports write dates day first ("15.01.2024"); ISO dates
    ("2024-01-15") and relative dates ("today", "yesterday", "last month",
    "this year", ...) are accepted as well.

    Args:
        date_str: Date string in various formats

    Returns:
        Date object

    Raises:
        ValueError: If date string cannot be parsed
    """
    date_str = date_str.strip().lower()

    relative = _relative_date(date_str, date.today())
    if relative is not None:
        return relative

    # ISO dates are year first; everything else is read day first
    dayfirst = not (len(date_str) >= 4 and date_str[:4].isdigit())
    try:
        return date_parser.parse(date_str, dayfirst=dayfirst).date()
    except (ValueError, OverflowError) as e:
        raise ValueError(f"Could not parse date '{date_str}': {e}")
