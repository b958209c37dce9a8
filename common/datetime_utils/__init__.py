"""
Timezone-aware datetime helpers.

All timestamps produced by the gateway are UTC and serialized as
ISO 8601 instants with millisecond precision and a ``Z`` suffix.
"""

from datetime import datetime, timezone
from typing import Optional


def utcnow_aware() -> datetime:
    """
    Returns the current UTC datetime (timezone-aware).

    Returns:
        datetime: Current datetime in UTC
    """
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """
    Converts a datetime to UTC.

    Naive datetimes are assumed to already be in UTC.

    Example:
        >>> ensure_utc(datetime(2026, 2, 28, 20, 24))
        datetime.datetime(2026, 2, 28, 20, 24, tzinfo=datetime.timezone.utc)
    """
    if dt.tzinfo is None or dt.tzinfo.utcoffset(dt) is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def iso_timestamp(dt: Optional[datetime] = None) -> str:
    """
    Formats a datetime as an ISO 8601 UTC instant.

    Args:
        dt: Datetime to format (``utcnow_aware()`` when None)

    Returns:
        str: e.g. ``2026-02-28T23:24:00.123Z``

    Example:
        >>> iso_timestamp(datetime(2026, 2, 28, 23, 24, tzinfo=timezone.utc))
        '2026-02-28T23:24:00.000Z'
    """
    if dt is None:
        dt = utcnow_aware()
    dt = ensure_utc(dt)
    return dt.isoformat(timespec='milliseconds').replace('+00:00', 'Z')


__all__ = [
    'utcnow_aware',
    'ensure_utc',
    'iso_timestamp',
]
