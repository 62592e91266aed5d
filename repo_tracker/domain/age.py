from datetime import datetime, timedelta, timezone
from typing import Optional, Union

Timestamp = Union[datetime, str, None]

YEAR = timedelta(days=365)
DAY = timedelta(days=1)


def parse_timestamp(value: Timestamp) -> Optional[datetime]:
    """
    Returns ``value`` as an aware UTC datetime, or None if it is missing or unparseable.

    Naive datetimes and strings without an offset are taken to be UTC.
    """
    if value is None:
        return None
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    if not isinstance(value, datetime):
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def _elapsed(timestamp: Timestamp, unit: timedelta, now: Optional[datetime]) -> Optional[int]:
    moment = parse_timestamp(timestamp)
    if moment is None:
        return None
    reference = parse_timestamp(now) or datetime.now(timezone.utc)
    return (reference - moment) // unit


def age_in_years(timestamp: Timestamp, now: Optional[datetime] = None) -> Optional[int]:
    """Whole 365-day years between ``timestamp`` and ``now``; None when the timestamp is unusable."""
    return _elapsed(timestamp, YEAR, now)


def age_in_days(timestamp: Timestamp, now: Optional[datetime] = None) -> Optional[int]:
    """Whole days between ``timestamp`` and ``now``; None when the timestamp is unusable."""
    return _elapsed(timestamp, DAY, now)
