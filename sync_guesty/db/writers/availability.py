from typing import Any

import structlog
from sqlalchemy import delete
from sqlalchemy.engine import Connection, Engine

from sync_guesty.db.engine import write_transaction
from sync_guesty.db.writers._upsert import upsert_rows
from sync_guesty.models.availability import Availability
from sync_guesty.utils.datetime import utc_now

logger = structlog.get_logger(__name__)

CONFLICT_COLUMNS = ["listing_id", "date"]


def upsert_availability(conn: Connection, row: dict[str, Any]) -> None:
    """Upsert a single calendar day on the caller's connection."""
    upsert_rows(conn, Availability, [{**row, "updated_at": utc_now()}], CONFLICT_COLUMNS)


def upsert_availability_batch(engine: Engine, rows: list[dict[str, Any]]) -> int:
    """
    Upsert calendar days in one transaction, keyed on (listing_id, date).

    Applying the same rows twice leaves one row per day holding the latest
    values. Either every day in the batch is committed or none is.

    Args:
        engine: SQLAlchemy Engine
        rows: Availability rows as produced by normalizers.availability

    Returns:
        int: Number of rows written

    Raises:
        DatabaseError: If the write fails
    """
    if not rows:
        return 0

    now = utc_now()
    stamped = [{**row, "updated_at": now} for row in rows]

    with write_transaction(engine, "upsert_availability") as conn:
        count = upsert_rows(conn, Availability, stamped, CONFLICT_COLUMNS)

    logger.info("availability_upserted", listing_id=rows[0].get("listing_id"), count=count)
    return count


def delete_availability_older_than(engine: Engine, listing_id: str, cutoff_date: str) -> int:
    """
    Retention sweep: delete a listing's calendar days dated before ``cutoff_date``.

    Args:
        engine: SQLAlchemy Engine
        listing_id: Listing to sweep
        cutoff_date: YYYY-MM-DD; days strictly before it are removed

    Returns:
        int: Number of rows deleted
    """
    with write_transaction(engine, "delete_availability_older_than") as conn:
        result = conn.execute(
            delete(Availability).where(
                Availability.listing_id == listing_id,
                Availability.date < cutoff_date,
            )
        )
    deleted = result.rowcount or 0
    if deleted:
        logger.info(
            "availability_purged", listing_id=listing_id, cutoff_date=cutoff_date, count=deleted
        )
    return deleted
