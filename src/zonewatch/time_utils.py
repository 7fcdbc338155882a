from datetime import UTC, datetime, timedelta


def as_utc_aware(value: datetime) -> datetime:
    """Normalize datetimes to UTC-aware before arithmetic."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def utc_now() -> datetime:
    return datetime.now(UTC)


def format_api_time(value: datetime) -> str:
    """ISO-8601 in UTC with millisecond precision and a ``Z`` suffix."""
    value = as_utc_aware(value)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_api_time(value: str | None) -> datetime | None:
    """Parse an API timestamp, returning None when it is missing or malformed."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.strip())
    except ValueError:
        return None
    return as_utc_aware(parsed)


def truncate_to_hour(value: datetime) -> datetime:
    return as_utc_aware(value).replace(minute=0, second=0, microsecond=0)


def window(days: int, *, until: datetime) -> tuple[datetime, datetime]:
    """Rolling ``days`` lookback ending at ``until``."""
    until = as_utc_aware(until)
    return until - timedelta(days=days), until
