"""Timestamp helpers.

Timestamps are stored as naive UTC datetimes so that SQLite and server
databases compare them the same way.
"""

from datetime import datetime
from typing import Optional

import pytz


def utc_now() -> datetime:
    """Return the current UTC time as a naive datetime."""
    return datetime.now(pytz.utc).replace(tzinfo=None)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize a datetime to naive UTC.

    Naive inputs are assumed to already be UTC.
    """
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(pytz.utc).replace(tzinfo=None)
