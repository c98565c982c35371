"""Calendar helpers shared by the ledger and the aggregators"""
import calendar
from datetime import date, datetime, timedelta
from typing import Any, Optional

from .exceptions import ValidationError

WEEKDAYS = ['Sunday', 'Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday']


def parse_day(value: Any, field: str = 'date') -> date:
    """Parse a date, datetime, or ISO string (YYYY-MM-DD or full timestamp) into a date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        text = value.strip()
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            pass
    raise ValidationError(f"{field} must be a date (YYYY-MM-DD), got {value!r}")


def parse_timestamp(value: Any, field: str = 'timestamp') -> datetime:
    """Parse a datetime, date, or ISO string into a datetime (dates become midnight)."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, datetime.min.time())
    if isinstance(value, str) and value.strip():
        try:
            return datetime.fromisoformat(value.strip())
        except ValueError:
            pass
    raise ValidationError(f"{field} must be an ISO timestamp, got {value!r}")


def optional_timestamp(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def week_start(day: date) -> date:
    """Sunday on or before the given day."""
    return day - timedelta(days=(day.weekday() + 1) % 7)


def month_end(day: date) -> date:
    return day.replace(day=calendar.monthrange(day.year, day.month)[1])


def weekday_index(name: str) -> int:
    """Index of a weekday name with Sunday as 0."""
    return WEEKDAYS.index(name.strip().capitalize())


def next_weekday_on_or_after(day: date, weekday_name: str) -> date:
    current = (day.weekday() + 1) % 7
    offset = (weekday_index(weekday_name) - current) % 7
    return day + timedelta(days=offset)
