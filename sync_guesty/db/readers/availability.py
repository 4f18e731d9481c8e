from datetime import date, datetime
from typing import Any, Optional

import structlog
from sqlalchemy import func, select
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError

from sync_guesty.db.readers._freshness import is_older_than_ttl
from sync_guesty.models.availability import Availability

logger = structlog.get_logger(__name__)

COLUMNS = [
    Availability.listing_id,
    Availability.date,
    Availability.status,
    Availability.price,
    Availability.min_nights,
    Availability.closed_to_arrival,
    Availability.closed_to_departure,
    Availability.block_type,
    Availability.block_ref,
    Availability.last_synced_at,
]


def get_availability(
    conn: Connection, listing_id: str, start: str, end: str
) -> list[dict[str, Any]]:
    """
    Return a listing's calendar days between two YYYY-MM-DD dates, inclusive.

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        listing_id (str): Guesty listing id
        start (str): First date
        end (str): Last date

    Returns:
        list[dict[str, Any]]: Day rows ordered by date
    """
    result = conn.execute(
        select(*COLUMNS)
        .where(
            Availability.listing_id == listing_id,
            Availability.date >= start,
            Availability.date <= end,
        )
        .order_by(Availability.date)
    )
    return [dict(row) for row in result.mappings()]


def get_availability_day(conn: Connection, listing_id: str, day: str) -> Optional[dict[str, Any]]:
    row = (
        conn.execute(
            select(*COLUMNS).where(Availability.listing_id == listing_id, Availability.date == day)
        )
        .mappings()
        .fetchone()
    )
    return dict(row) if row else None


def get_availability_date_range(conn: Connection, listing_id: str) -> Optional[tuple[str, str]]:
    """Return (first, last) cached date for a listing, or None when nothing is cached."""
    first, last = conn.execute(
        select(func.min(Availability.date), func.max(Availability.date)).where(
            Availability.listing_id == listing_id
        )
    ).one()
    if first is None:
        return None
    return first, last


def is_availability_stale(
    conn: Connection,
    listing_id: str,
    ttl_minutes: int,
    start: Optional[str] = None,
    end: Optional[str] = None,
    required_until: Optional[str] = None,
    now: Optional[datetime] = None,
) -> bool:
    """
    Decide whether a listing's calendar needs re-syncing.

    The oldest ``last_synced_at`` among the listing's days (restricted to
    [start, end] when given) decides: a window is only as fresh as its
    stalest day.

    Policy, in order:
        - no cached day in scope: stale
        - both ``start`` and ``end`` given and some day of [start, end]
          has no row: stale
        - ``required_until`` given and cached coverage ends before it: stale
        - oldest day older than ``now - ttl``: stale
        - the read fails: logged, stale

    Args:
        conn: Active connection
        listing_id: Guesty listing id
        ttl_minutes: Freshness window supplied by the caller
        start: Optional first date of the window to check
        end: Optional last date of the window to check
        required_until: Optional date the cache must cover (YYYY-MM-DD)
        now: Reference instant (tests pass a fixed one)
    """
    conditions = [Availability.listing_id == listing_id]
    if start:
        conditions.append(Availability.date >= start)
    if end:
        conditions.append(Availability.date <= end)

    try:
        oldest, last_date, cached_days = conn.execute(
            select(
                func.min(Availability.last_synced_at),
                func.max(Availability.date),
                func.count(),
            ).where(*conditions)
        ).one()
    except SQLAlchemyError as e:
        logger.error("availability_freshness_check_failed", listing_id=listing_id, error=str(e))
        return True

    if oldest is None:
        return True

    if start and end:
        window_days = (date.fromisoformat(end) - date.fromisoformat(start)).days + 1
        if cached_days < window_days:
            logger.info(
                "availability_coverage_short",
                listing_id=listing_id,
                cached_days=cached_days,
                window_days=window_days,
            )
            return True

    if required_until and last_date < required_until:
        logger.info(
            "availability_coverage_short",
            listing_id=listing_id,
            cached_until=last_date,
            required_until=required_until,
        )
        return True

    return is_older_than_ttl(oldest, ttl_minutes, now)
