"""Time utilities for database models."""

from datetime import UTC, date, datetime, timedelta


def utcnow() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes read back from SQLite."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def utc_day(value: datetime) -> date:
    """Return the UTC calendar day a moment falls on."""
    return as_utc(value).date()


def seconds_until_next_utc_midnight(value: datetime) -> int:
    """Return whole seconds until the next UTC midnight (at least 1)."""
    moment = as_utc(value)
    midnight = datetime.combine(moment.date() + timedelta(days=1), datetime.min.time(), UTC)
    return max(1, int((midnight - moment).total_seconds()))
