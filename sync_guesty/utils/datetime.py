"""UTC and property-local date utilities."""

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo


def utc_now() -> datetime:
    """
    Return current UTC time as timezone-aware datetime.

    This function should be used instead of datetime.now() or datetime.utcnow()
    to ensure all timestamps are timezone-aware and stored in UTC.

    Returns:
        Timezone-aware datetime in UTC

    Example:
        >>> now = utc_now()
        >>> now.tzinfo
        datetime.timezone.utc
    """
    return datetime.now(timezone.utc)


def local_today(tz_name: str, now: datetime | None = None) -> date:
    """
    Return today's calendar date in the given IANA timezone.

    Args:
        tz_name: Property timezone, e.g. "Europe/Berlin"
        now: Optional reference instant (defaults to utc_now())

    Returns:
        The property-local date
    """
    reference = now or utc_now()
    return reference.astimezone(ZoneInfo(tz_name)).date()


def date_window(today: date, past_days: int, future_days: int) -> tuple[str, str]:
    """
    Build an inclusive (start, end) window of YYYY-MM-DD strings around today.

    Example:
        >>> date_window(date(2025, 1, 10), 2, 5)
        ('2025-01-08', '2025-01-15')
    """
    start = today - timedelta(days=past_days)
    end = today + timedelta(days=future_days)
    return start.isoformat(), end.isoformat()


def to_date_str(value: str | None) -> str | None:
    """Truncate an ISO-8601 timestamp or date to its YYYY-MM-DD part."""
    if not value:
        return None
    return value[:10]


def ensure_utc(value: datetime) -> datetime:
    """
    Attach UTC to a naive datetime read back from the store.

    SQLite drops tzinfo on DateTime(timezone=True) columns; every timestamp we
    write is UTC, so a naive value read back is UTC too.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
