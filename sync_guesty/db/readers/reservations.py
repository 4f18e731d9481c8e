from datetime import datetime
from typing import Any, Optional

import structlog
from sqlalchemy import select
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError

from sync_guesty.db.readers._freshness import is_older_than_ttl
from sync_guesty.models.reservations import Reservation

logger = structlog.get_logger(__name__)

COLUMNS = list(Reservation.__table__.columns)


def get_reservation(conn: Connection, reservation_id: str) -> Optional[dict[str, Any]]:
    row = (
        conn.execute(select(*COLUMNS).where(Reservation.reservation_id == reservation_id))
        .mappings()
        .fetchone()
    )
    return dict(row) if row else None


def overlaps_window(start: str, end: str) -> Any:
    """
    SQL condition: the reservation occupies at least one night in [start, end].

    A stay occupies the nights from check-in up to, not including, check-out,
    so a guest checking out on ``start`` does not overlap.
    """
    return (Reservation.check_in_localized <= end) & (Reservation.check_out_localized > start)


def get_reservations_in_window(
    conn: Connection, listing_id: str, start: str, end: str
) -> list[dict[str, Any]]:
    """
    Return a listing's reservations overlapping [start, end], ordered by check-in.

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        listing_id (str): Guesty listing id
        start (str): First date, YYYY-MM-DD
        end (str): Last date, YYYY-MM-DD
    """
    result = conn.execute(
        select(*COLUMNS)
        .where(Reservation.listing_id == listing_id, overlaps_window(start, end))
        .order_by(Reservation.check_in_localized)
    )
    return [dict(row) for row in result.mappings()]


def get_reservation_ids_in_window(
    conn: Connection, listing_id: str, start: str, end: str
) -> list[str]:
    result = conn.execute(
        select(Reservation.reservation_id).where(
            Reservation.listing_id == listing_id, overlaps_window(start, end)
        )
    )
    return list(result.scalars())


def get_upcoming_reservations(
    conn: Connection, listing_id: str, today: str, limit: int = 50
) -> list[dict[str, Any]]:
    """Return reservations checking out on or after ``today``, soonest first."""
    result = conn.execute(
        select(*COLUMNS)
        .where(
            Reservation.listing_id == listing_id,
            Reservation.check_out_localized >= today,
        )
        .order_by(Reservation.check_in_localized)
        .limit(limit)
    )
    return [dict(row) for row in result.mappings()]


def is_reservation_stale(
    conn: Connection,
    reservation_id: str,
    ttl_minutes: int,
    now: Optional[datetime] = None,
) -> bool:
    """
    Decide whether a single reservation needs re-fetching.

    Same policy as listings: missing row, expired row, or failed read all
    count as stale.
    """
    try:
        last_synced_at = conn.execute(
            select(Reservation.last_synced_at).where(Reservation.reservation_id == reservation_id)
        ).scalar_one_or_none()
    except SQLAlchemyError as e:
        logger.error(
            "reservation_freshness_check_failed", reservation_id=reservation_id, error=str(e)
        )
        return True
    return is_older_than_ttl(last_synced_at, ttl_minutes, now)
