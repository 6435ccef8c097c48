from __future__ import annotations

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Current instant as a naive UTC datetime, the storage convention."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_naive(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
