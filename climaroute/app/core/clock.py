"""
Timestamp helpers.

The engine stores naive UTC datetimes throughout; inbound values that
carry an offset are converted before they are compared or persisted.
"""

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def clock_label(value: datetime) -> str:
    """Display label used for start/end times, e.g. '10:45'."""
    return value.strftime("%H:%M")
