"""ISO 8601 timestamp helpers shared by the library hosts and the sync engine.

All datetimes handled by bibsync are timezone-aware UTC. Naive values read from
files are assumed to be UTC.
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_utc(value: datetime) -> datetime:
    """Normalize a datetime to aware UTC (naive values are taken as UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Format a datetime as ISO 8601 UTC with a trailing Z.

    Example:
        >>> format_timestamp(datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc))
        '2024-01-15T10:30:00Z'
    """
    return to_utc(value).replace(microsecond=0).isoformat().replace('+00:00', 'Z')


def parse_timestamp(timestamp_str: str) -> datetime:
    """Parse ISO 8601 timestamp string to an aware UTC datetime.

    Handles various ISO 8601 formats including:
    - 2024-01-15T10:30:00Z
    - 2024-01-15T10:30:00+01:00
    - 2024-01-15T10:30:00.123Z
    - 2024-01-15 10:30:00 (naive, treated as UTC)

    Args:
        timestamp_str: ISO 8601 timestamp string

    Returns:
        Parsed datetime in UTC

    Raises:
        ValueError: If timestamp cannot be parsed
    """
    if not timestamp_str or not str(timestamp_str).strip():
        raise ValueError("Cannot parse empty timestamp")

    timestamp_str = str(timestamp_str).strip()
    if timestamp_str.endswith('Z'):
        timestamp_str = timestamp_str[:-1] + '+00:00'

    try:
        return to_utc(datetime.fromisoformat(timestamp_str))
    except ValueError:
        for fmt in [
            "%Y-%m-%dT%H:%M:%S.%f%z",
            "%Y-%m-%dT%H:%M:%S%z",
            "%Y-%m-%dT%H:%M:%S",
        ]:
            try:
                return to_utc(datetime.strptime(timestamp_str, fmt))
            except ValueError:
                continue

        raise ValueError(f"Cannot parse timestamp: {timestamp_str}")
