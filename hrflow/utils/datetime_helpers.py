"""
Datetime formatting and calendar utilities
"""
import calendar
from datetime import date, datetime
from typing import Optional, Tuple

WEEKDAY_NAMES_KO = ["월", "화", "수", "목", "금", "토", "일"]


def format_datetime_to_iso(dt: Optional[datetime]) -> Optional[str]:
    """
    Convert datetime to ISO format with UTC timezone indicator

    Args:
        dt: datetime object or None

    Returns:
        ISO string with 'Z' suffix (e.g., "2025-01-09T10:30:00Z") or None
    """
    if dt is None:
        return None
    return dt.strftime('%Y-%m-%dT%H:%M:%SZ')


def parse_year_month(value: str) -> Tuple[int, int]:
    """
    Parse a "YYYY-MM" schedule month.

    Raises:
        ValueError: when the string is not a valid year and month
    """
    try:
        year_str, month_str = value.split("-")
        year, month = int(year_str), int(month_str)
    except (AttributeError, ValueError):
        raise ValueError(f"Invalid year-month '{value}', expected YYYY-MM")
    if not 1 <= month <= 12 or year < 1900:
        raise ValueError(f"Invalid year-month '{value}', expected YYYY-MM")
    return year, month


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def month_dates(year: int, month: int):
    """Yield every date of the given month"""
    for day in range(1, days_in_month(year, month) + 1):
        yield date(year, month, day)
