from datetime import datetime
from typing import Any, Optional

import structlog
from sqlalchemy import func, select
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError

from sync_guesty.db.readers._freshness import is_older_than_ttl
from sync_guesty.models.inquiries import Inquiry

logger = structlog.get_logger(__name__)

CONFIRMED_STATUSES = ("confirmed", "reserved")


def get_inquiry(conn: Connection, inquiry_id: str) -> Optional[dict[str, Any]]:
    row = (
        conn.execute(select(*Inquiry.__table__.columns).where(Inquiry.inquiry_id == inquiry_id))
        .mappings()
        .fetchone()
    )
    return dict(row) if row else None


def get_inquiry_counts(
    conn: Connection, listing_id: str, since: Optional[str] = None
) -> dict[str, int]:
    """
    Count a listing's upstream reservation records by status.

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        listing_id (str): Guesty listing id
        since (Optional[str]): Only count stays checking in on or after this date

    Returns:
        dict[str, int]: status -> count, e.g. {"inquiry": 12, "confirmed": 4}
    """
    stmt = select(Inquiry.status, func.count()).where(Inquiry.listing_id == listing_id)
    if since:
        stmt = stmt.where(Inquiry.check_in >= since)
    result = conn.execute(stmt.group_by(Inquiry.status))
    return {status: int(count) for status, count in result}


def is_inquiries_stale(
    conn: Connection,
    listing_id: str,
    ttl_minutes: int,
    now: Optional[datetime] = None,
) -> bool:
    """
    Decide whether a listing's inquiries need re-syncing.

    Uses the most recent ``last_synced_at`` for the listing: every sync
    rewrites all rows it sees, while rows that dropped out of the lookback
    window keep their old timestamp and must not make the listing look stale.
    A failed read counts as stale.
    """
    try:
        newest = conn.execute(
            select(func.max(Inquiry.last_synced_at)).where(Inquiry.listing_id == listing_id)
        ).scalar_one_or_none()
    except SQLAlchemyError as e:
        logger.error("inquiries_freshness_check_failed", listing_id=listing_id, error=str(e))
        return True
    return is_older_than_ttl(newest, ttl_minutes, now)
