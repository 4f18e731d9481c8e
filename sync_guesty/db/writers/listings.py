import json
from datetime import datetime
from typing import Any

import structlog
from sqlalchemy import delete
from sqlalchemy.engine import Connection, Engine

from sync_guesty.config import DEBUG
from sync_guesty.db.engine import write_transaction
from sync_guesty.db.writers._upsert import upsert_rows
from sync_guesty.models.listings import Listing
from sync_guesty.utils.datetime import utc_now

logger = structlog.get_logger(__name__)


def upsert_listing(conn: Connection, row: dict[str, Any]) -> None:
    """
    Upsert one mapped listing on the caller's connection.

    Every column is overwritten: a listing is replaced wholesale, never merged.
    """
    upsert_rows(conn, Listing, [{**row, "updated_at": utc_now()}], conflict_columns=["id"])


def upsert_listings(engine: Engine, rows: list[dict[str, Any]]) -> int:
    """
    Upsert mapped listings in a single transaction.

    Args:
        engine: SQLAlchemy Engine
        rows: Listing rows as produced by normalizers.listings.map_listing

    Returns:
        int: Number of rows written

    Raises:
        DatabaseError: If the write fails; nothing is committed in that case
    """
    if not rows:
        logger.info("No listings to upsert")
        return 0

    if DEBUG:
        logger.debug("sample_listing_row", row=json.dumps(rows[0], default=str))

    now = utc_now()
    stamped = [{**row, "updated_at": now} for row in rows]

    with write_transaction(engine, "upsert_listings") as conn:
        count = upsert_rows(conn, Listing, stamped, conflict_columns=["id"])

    logger.info("listings_upserted", count=count)
    return count


def delete_listings_older_than(engine: Engine, cutoff: datetime) -> int:
    """Delete listings whose last sync is older than ``cutoff``."""
    with write_transaction(engine, "delete_listings_older_than") as conn:
        result = conn.execute(delete(Listing).where(Listing.last_synced_at < cutoff))
    deleted = result.rowcount or 0
    if deleted:
        logger.info("listings_purged", count=deleted, cutoff=cutoff.isoformat())
    return deleted
