"""Timezone helpers.

All safety arithmetic happens on timezone-aware UTC datetimes so naive and
aware timestamps from different stores can be compared safely.
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Get the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_utc(dt: datetime) -> datetime:
    """Convert datetime to UTC.

    Args:
        dt: Datetime (timezone-aware or naive)

    Returns:
        Datetime in UTC timezone
    """
    if dt.tzinfo is None:
        # Assume UTC if naive
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)
