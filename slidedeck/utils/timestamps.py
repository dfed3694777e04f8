"""UTC time helpers. Stored and reported times are UTC without tzinfo."""

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Current UTC time as a naive datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def isoformat_z(value: datetime) -> str:
    """ISO 8601 with a trailing Z; aware values are converted to UTC first."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.isoformat() + "Z"


def utc_timestamp() -> str:
    return isoformat_z(utcnow())
