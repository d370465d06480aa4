from __future__ import annotations

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Naive UTC timestamp, matching how the models store their datetimes."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(value: datetime) -> datetime:
    # PostgreSQL hands back tz-aware values, SQLite naive ones.
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def elapsed_seconds(started_at: datetime | None, now: datetime) -> int:
    if started_at is None:
        return 0
    delta = as_naive_utc(now) - as_naive_utc(started_at)
    return max(0, int(delta.total_seconds()))


def remaining_seconds(budget_seconds: int, started_at: datetime | None, now: datetime) -> int:
    return max(0, int(budget_seconds) - elapsed_seconds(started_at, now))
