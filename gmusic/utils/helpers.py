"""
Utility functions and helpers for gmusic
Common functions for timestamp conversion, identifier checks and batching
"""

import random
import re
import string
from datetime import datetime, timezone
from typing import Any, Iterable, Iterator, List, Optional, Union


EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

_GUID_PATTERN = re.compile(
    r'^[A-Fa-f0-9]{32}$'
    r'|^[A-Fa-f0-9]{8}-([A-Fa-f0-9]{4}-){3}[A-Fa-f0-9]{12}$'
    r'|^\{[A-Fa-f0-9]{8}-([A-Fa-f0-9]{4}-){3}[A-Fa-f0-9]{12}\}$'
    r'|^\([A-Fa-f0-9]{8}-([A-Fa-f0-9]{4}-){3}[A-Fa-f0-9]{12}\)$'
)


def utcnow() -> datetime:
    """Get the current time as a timezone-aware UTC datetime"""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """
    Normalize a datetime to UTC

    Naive datetimes are interpreted as UTC, not local time, so that a
    watermark written by one process compares correctly in another.

    Args:
        value: Datetime with or without tzinfo

    Returns:
        Timezone-aware UTC datetime
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def datetime_to_micros(value: Optional[datetime]) -> int:
    """
    Convert a datetime to microseconds since the Unix epoch

    Args:
        value: Datetime to convert, None means "the beginning of time"

    Returns:
        Microsecond epoch value, never negative
    """
    if value is None:
        return 0
    delta = as_utc(value) - EPOCH
    micros = (delta.days * 86400 + delta.seconds) * 1_000_000 + delta.microseconds
    return max(micros, 0)


def micros_to_datetime(value: Any) -> Optional[datetime]:
    """
    Convert a wire timestamp in microseconds to a UTC datetime

    The service sends these values either as numbers or as numeric strings.

    Args:
        value: Microsecond epoch as int, float or numeric string

    Returns:
        UTC datetime, or None for missing, zero or unparseable values
    """
    micros = to_int(value)
    if not micros:
        return None
    return datetime.fromtimestamp(micros / 1_000_000, tz=timezone.utc)


def millis_to_datetime(value: Any) -> Optional[datetime]:
    """Convert a millisecond epoch value to a UTC datetime"""
    millis = to_int(value)
    if not millis:
        return None
    return datetime.fromtimestamp(millis / 1000, tz=timezone.utc)


def seconds_to_datetime(value: Any) -> Optional[datetime]:
    """Convert a second epoch value to a UTC datetime"""
    seconds = to_int(value)
    if not seconds:
        return None
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


def to_int(value: Any, default: int = 0) -> int:
    """
    Lenient integer conversion for wire values

    Args:
        value: Number, numeric string, bool or None
        default: Value returned when conversion is impossible

    Returns:
        Integer value
    """
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        try:
            return int(float(value))
        except (TypeError, ValueError):
            return default


def to_bool(value: Any) -> bool:
    """Interpret wire booleans which may arrive as bool, number or string"""
    if isinstance(value, str):
        return value.strip().lower() in ('true', '1', 'yes')
    return bool(value)


def is_guid(value: Optional[str]) -> bool:
    """
    Check whether a string is a GUID in one of its common notations

    Uploaded tracks carry GUID ids while store tracks carry opaque ids.

    Args:
        value: Candidate identifier

    Returns:
        True if the value looks like a GUID
    """
    if value is None:
        return False
    return bool(_GUID_PATTERN.match(value.strip()))


def random_alnum(length: int = 12) -> str:
    """
    Generate a random alphanumeric string

    Args:
        length: Number of characters

    Returns:
        Random string of digits and ASCII letters
    """
    chars = string.digits + string.ascii_uppercase + string.ascii_lowercase
    return ''.join(random.choice(chars) for _ in range(length))


def ensure_http_scheme(url: Optional[str]) -> Optional[str]:
    """Prefix protocol-relative art URLs with an explicit scheme"""
    if url is None:
        return None
    if url.startswith('http:') or url.startswith('https:'):
        return url
    return 'http:' + url


def chunks(items: Iterable[Any], size: int) -> Iterator[List[Any]]:
    """
    Split an iterable into lists of at most `size` elements

    Args:
        items: Items to split
        size: Maximum chunk length

    Yields:
        Consecutive chunks in input order
    """
    chunk: List[Any] = []
    for item in items:
        chunk.append(item)
        if len(chunk) >= size:
            yield chunk
            chunk = []
    if chunk:
        yield chunk


def format_timestamp(timestamp: Union[str, datetime, None]) -> str:
    """
    Format timestamp for display

    Args:
        timestamp: Timestamp string or datetime object

    Returns:
        Formatted timestamp string, "never" for missing values
    """
    if timestamp is None:
        return "never"
    if isinstance(timestamp, str):
        try:
            dt = datetime.fromisoformat(timestamp.replace('Z', '+00:00'))
        except ValueError:
            return timestamp
    else:
        dt = timestamp

    return dt.strftime('%Y-%m-%d %H:%M:%S')
