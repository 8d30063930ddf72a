"""
Date utilities for budget periods and ledger ordering.
"""
import math
from datetime import date, datetime, timezone
from typing import Optional, Tuple


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def current_budget_period(now: Optional[datetime] = None) -> Tuple[int, int]:
    """
    Get the (year, month) of the current budget using UTC calendar fields.

    Args:
        now: Reference instant, defaults to the current time

    Returns:
        tuple: (year, month)
    """
    now = now or utc_now()
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    return now.year, now.month


def is_future_budget(year: int, month: int, current_year: int, current_month: int) -> bool:
    """A budget is "future" when it is the current month or any later one."""
    return year > current_year or (year == current_year and month >= current_month)


def previous_period(month: int, year: int) -> Tuple[int, int]:
    """
    Get the (month, year) preceding the given period, wrapping over January.
    """
    if month == 1:
        return 12, year - 1
    return month - 1, year


def period_key(year: int, month: int) -> int:
    """Sortable integer for a (year, month) pair."""
    return year * 12 + (month - 1)


def safe_timestamp(value) -> float:
    """
    Convert a date-like value into a POSIX timestamp for sorting.

    Missing or unparsable values map to +inf so they sort last, which keeps
    ordering deterministic instead of depending on the current time.

    Args:
        value: datetime, date, ISO 8601 string or None

    Returns:
        float: timestamp in seconds, or math.inf
    """
    if value is None:
        return math.inf

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return math.inf
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return math.inf
    else:
        return math.inf

    # Naive values are read as UTC
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    try:
        return parsed.timestamp()
    except (OverflowError, OSError, ValueError):
        return math.inf
