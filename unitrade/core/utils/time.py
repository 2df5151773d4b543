"""
Time Utilities

Exchanges exchange timestamps as milliseconds since epoch (e.g. 1704110400000),
sometimes as seconds, and occasionally as numeric strings. The canonical model
uses timezone-aware UTC datetimes. The helpers here convert between the two.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Union


def to_utc_datetime(timestamp: Union[int, str, Decimal]) -> datetime:
    """
    Convert a timestamp (seconds or milliseconds) to UTC datetime.

    Detection Logic:
        - If timestamp > 1e12: assumed to be milliseconds
        - Otherwise: assumed to be seconds

    Args:
        timestamp: Unix timestamp in seconds or milliseconds, as int,
                   numeric string, or Decimal

    Returns:
        datetime: Timezone-aware datetime object in UTC

    Raises:
        ValueError: If timestamp is negative or not numeric

    Examples:
        >>> to_utc_datetime(1704110400000)
        datetime.datetime(2024, 1, 1, 12, 0, tzinfo=datetime.timezone.utc)

        >>> to_utc_datetime("1704110400")
        datetime.datetime(2024, 1, 1, 12, 0, tzinfo=datetime.timezone.utc)
    """
    if isinstance(timestamp, bool):
        raise ValueError(f"Invalid timestamp: {timestamp!r}")

    try:
        value = Decimal(str(timestamp).strip())
    except ArithmeticError:
        raise ValueError(f"Invalid timestamp: {timestamp!r}")

    if not value.is_finite():
        raise ValueError(f"Invalid timestamp: {timestamp!r}")

    if value < 0:
        raise ValueError(f"Timestamp cannot be negative: {timestamp}")

    # ~1.7e9 seconds vs ~1.7e12 milliseconds for current dates
    if value > Decimal("1e12"):
        value = value / 1000

    try:
        return datetime.fromtimestamp(float(value), tz=timezone.utc)
    except (OSError, OverflowError, ValueError) as e:
        raise ValueError(f"Invalid timestamp: {timestamp}. Error: {e}")


def datetime_to_timestamp(dt: datetime, milliseconds: bool = False) -> int:
    """
    Convert a datetime object to Unix timestamp.

    Args:
        dt: Datetime object (naive datetimes are treated as UTC)
        milliseconds: If True, return milliseconds; if False, return seconds

    Returns:
        int: Unix timestamp in seconds or milliseconds

    Examples:
        >>> dt = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
        >>> datetime_to_timestamp(dt)
        1704110400

        >>> datetime_to_timestamp(dt, milliseconds=True)
        1704110400000
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)

    if milliseconds:
        delta = dt - datetime(1970, 1, 1, tzinfo=timezone.utc)
        return (delta.days * 86_400 + delta.seconds) * 1000 + delta.microseconds // 1000

    return int(dt.timestamp())


def current_utc_timestamp(milliseconds: bool = False) -> int:
    """Current Unix timestamp in seconds (or milliseconds)."""
    return datetime_to_timestamp(datetime.now(timezone.utc), milliseconds)
