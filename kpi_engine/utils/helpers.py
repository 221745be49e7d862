"""
Helper Utilities Module
Common time, rounding and string helpers used across the engine.
"""

import math
from datetime import date, datetime, timezone
from typing import Any, List, Optional, Union

from dateutil import parser as date_parser


SECONDS_PER_DAY = 86400


def utcnow() -> datetime:
    """Current UTC time as a naive datetime (the stores keep naive UTC)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_datetime(value: Union[datetime, date, str, None]) -> Optional[datetime]:
    """
    Coerce a date, datetime or ISO string to a naive UTC datetime.

    Args:
        value: Value read from a source row

    Returns:
        datetime or None if the value is empty or unparseable
    """
    if value is None or value == '':
        return None

    if isinstance(value, str):
        try:
            value = date_parser.parse(value)
        except (ValueError, TypeError, OverflowError):
            return None

    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value

    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)

    return None


def days_between(start: datetime, end: datetime) -> float:
    """Fractional days from start to end (negative if end precedes start)."""
    return (end - start).total_seconds() / SECONDS_PER_DAY


def round_half_up(value: float, digits: int = 0) -> float:
    """
    Round half away from zero for non-negative values.

    Python's round() uses banker's rounding, which would turn a 72.5 health
    score into 72.
    """
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def clamp(value: float, lower: float = 0, upper: float = 100) -> float:
    """Clamp a value into [lower, upper]."""
    return max(lower, min(upper, value))


def chunk_list(lst: List[Any], chunk_size: int) -> List[List[Any]]:
    """
    Split a list into chunks of specified size.

    Args:
        lst: List to chunk
        chunk_size: Size of each chunk

    Returns:
        List of chunks
    """
    return [lst[i:i + chunk_size] for i in range(0, len(lst), chunk_size)]


def sanitize_string(text: Optional[str], max_length: int = None) -> Optional[str]:
    """
    Sanitize string for database storage.

    Args:
        text: Text to sanitize
        max_length: Maximum length (truncate if exceeded)

    Returns:
        Sanitized string
    """
    if text is None:
        return None

    text = text.replace('\x00', '')

    if max_length and len(text) > max_length:
        text = text[:max_length - 3] + '...'

    return text


def format_duration_ms(duration_ms: Optional[int]) -> str:
    """
    Format a run duration in milliseconds to a human-readable string.

    Returns:
        Formatted string (e.g., "1m 05.2s", "830ms")
    """
    if not duration_ms:
        return "0ms"

    if duration_ms < 1000:
        return f"{duration_ms}ms"

    seconds = duration_ms / 1000
    minutes = int(seconds // 60)
    if minutes:
        return f"{minutes}m {seconds - minutes * 60:04.1f}s"
    return f"{seconds:.1f}s"
