"""UTC timestamp helpers shared by the store serializers and services.

Stored timestamps are tz-aware UTC; serialized form is ISO-8601 with millisecond
precision and a trailing ``Z`` (the format browsers emit from ``toISOString``).
"""
from __future__ import annotations
from datetime import datetime, timezone
from typing import Optional, Union


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_iso(dt: Optional[datetime]) -> Optional[str]:
    if dt is None:
        return None
    return ensure_utc(dt).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


def parse_iso(value: Union[str, datetime, None]) -> Optional[datetime]:
    """Parse ISO-8601 (``Z`` suffix accepted); raises ValueError on junk."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    return ensure_utc(datetime.fromisoformat(str(value).replace('Z', '+00:00')))


def epoch_millis(dt: Optional[datetime] = None) -> int:
    dt = dt or utcnow()
    return int(dt.timestamp() * 1000)

__all__ = ['utcnow', 'ensure_utc', 'to_iso', 'parse_iso', 'epoch_millis']
