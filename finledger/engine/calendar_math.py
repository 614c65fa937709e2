"""
Calendar arithmetic over plain dates.

All functions take and return datetime.date. There is no time of day
and no timezone anywhere in the ledger; callers strip both before
calling (normalize_date does it for them).

Clamp rule: when the target month has no such day (Jan 31 + 1 month,
Feb 29 + 1 year) the result is the last day of the target month.
"""

import calendar
from datetime import date, datetime, timedelta
from typing import Optional, Union

from finledger.engine.errors import InvalidConfiguration
from finledger.models.records import Frequency


def normalize_date(value: Union[date, datetime, str]) -> date:
    """
    Return the calendar date of value.

    Accepts a date, a datetime (time and timezone dropped) or an ISO
    string ("YYYY-MM-DD", or a full ISO datetime).
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if len(text) > 10:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
        return date.fromisoformat(text)
    raise TypeError(f"Cannot interpret {value!r} as a date")


def clamp_day(year: int, month: int, day: int) -> date:
    """Build a date, pulling day back to the month's last day if needed."""
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day, last_day))


def add_months(start: date, months: int) -> date:
    """Add whole months keeping the day of month (clamped)."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    return clamp_day(year, month, start.day)


def add_years(start: date, years: int) -> date:
    """Same month and day, N years later. Feb 29 becomes Feb 28."""
    return clamp_day(start.year + years, start.month, start.day)


def advance(
    current: date,
    frequency: Union[Frequency, str],
    custom_interval_days: Optional[int] = None,
) -> date:
    """
    Next occurrence after current for the given frequency.

    Raises:
        InvalidConfiguration: custom_days with an interval below 1, or
            an unknown frequency
    """
    try:
        frequency = Frequency(frequency)
    except ValueError:
        raise InvalidConfiguration(f"Unknown frequency: {frequency!r}") from None

    if frequency == Frequency.DAILY:
        return current + timedelta(days=1)
    if frequency == Frequency.WEEKLY:
        return current + timedelta(days=7)
    if frequency == Frequency.MONTHLY:
        return add_months(current, 1)
    if frequency == Frequency.YEARLY:
        return add_years(current, 1)

    if custom_interval_days is None or custom_interval_days < 1:
        raise InvalidConfiguration(
            f"custom_days interval must be at least 1 (got {custom_interval_days})"
        )
    return current + timedelta(days=custom_interval_days)


def first_due_date(
    start_date: date,
    frequency: Union[Frequency, str],
    last_posted_date: Optional[date] = None,
    custom_interval_days: Optional[int] = None,
) -> date:
    """
    Due date a template should carry when it is (re)configured.

    The start date when nothing was posted yet, otherwise one period
    after the last posting.
    """
    if last_posted_date is None:
        return start_date
    return advance(last_posted_date, frequency, custom_interval_days)
