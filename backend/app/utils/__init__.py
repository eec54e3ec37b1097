from datetime import datetime, timedelta, timezone


def utcnow() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Make a naive datetime timezone-aware (UTC). Already-aware datetimes pass through.

    MongoDB hands back naive datetimes. Wrap any stored date with ensure_utc()
    before comparing it with utcnow(), otherwise Python raises
    "can't compare offset-naive and offset-aware datetimes".
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_utc(value: str | datetime) -> datetime:
    """Parse an ISO 8601 string (with or without Z/offset) into a tz-aware UTC datetime.

    ESPN sends minute-precision stamps like "2025-09-07T17:00Z".
    """
    if isinstance(value, datetime):
        return ensure_utc(value)
    return ensure_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))


def utc_day_bounds(dt: datetime) -> tuple[datetime, datetime]:
    """Return [start, end) of the UTC calendar day containing dt."""
    start = ensure_utc(dt).replace(hour=0, minute=0, second=0, microsecond=0)
    return start, start + timedelta(days=1)
