from datetime import datetime
from typing import Any, Optional

import structlog
from sqlalchemy import select
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError

from sync_guesty.db.readers._freshness import is_older_than_ttl
from sync_guesty.models.listings import Listing

logger = structlog.get_logger(__name__)


def get_listing(conn: Connection, listing_id: str) -> Optional[dict[str, Any]]:
    """
    Fetch one listing row.

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        listing_id (str): Guesty listing id

    Returns:
        Optional[dict[str, Any]]: Listing columns, or None if never synced
    """
    row = (
        conn.execute(select(*Listing.__table__.columns).where(Listing.id == listing_id))
        .mappings()
        .fetchone()
    )
    return dict(row) if row else None


def get_active_listings(conn: Connection) -> list[dict[str, Any]]:
    """Return id and title of every active listing, ordered by title."""
    result = conn.execute(
        select(Listing.id, Listing.title).where(Listing.active.is_(True)).order_by(Listing.title)
    )
    return [dict(row) for row in result.mappings()]


def is_listing_stale(
    conn: Connection,
    listing_id: str,
    ttl_minutes: int,
    now: Optional[datetime] = None,
) -> bool:
    """
    Decide whether a listing needs re-syncing.

    Policy: stale when no row exists, when ``last_synced_at`` is older than
    ``now - ttl``, or when the freshness read itself fails. A failed read is
    logged and answered with True so a broken cache never suppresses a sync.
    """
    try:
        last_synced_at = conn.execute(
            select(Listing.last_synced_at).where(Listing.id == listing_id)
        ).scalar_one_or_none()
    except SQLAlchemyError as e:
        logger.error("listing_freshness_check_failed", listing_id=listing_id, error=str(e))
        return True
    return is_older_than_ttl(last_synced_at, ttl_minutes, now)
