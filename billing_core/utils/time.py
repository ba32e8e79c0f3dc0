"""Time Utilities for UTC management"""

from datetime import date, datetime, timezone
from typing import Optional, Union


def get_utc_now() -> datetime:
    """
    Returns a naive UTC datetime.
    Matches the backend's timestamp convention (no tzinfo on the wire).
    Avoids 'datetime.utcnow()' deprecation warnings.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_date(value: Optional[Union[date, datetime]]) -> Optional[date]:
    """Calendar date of a date or datetime (aware values are taken in UTC)."""
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    return value
