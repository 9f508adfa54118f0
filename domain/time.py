"""
Domain time utilities (pure).

Every timestamp in the gold platform (quotes, transactions, certificates,
question logs) is timezone-aware UTC. `utc_now` is the default clock for the
services; `require_utc_timestamp` is the check every domain type runs in
`__post_init__`.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def require_utc_timestamp(name: str, value: datetime) -> None:
    """
    Reject naive or non-UTC timestamps.

    Raises:
        ValueError: `value` has no tzinfo, or its offset is not zero
    """

    if value.tzinfo is None or value.utcoffset() is None:
        raise ValueError(f"{name} must be timezone-aware (UTC)")
    if value.utcoffset() != timedelta(0):
        raise ValueError(f"{name} must be a UTC timestamp (offset 0), got {value.isoformat()}")


__all__ = [
    "utc_now",
    "require_utc_timestamp",
]
