from typing import Any

import structlog
from sqlalchemy import delete
from sqlalchemy.engine import Engine

from sync_guesty.db.engine import write_transaction
from sync_guesty.db.writers._upsert import upsert_rows
from sync_guesty.models.inquiries import Inquiry

logger = structlog.get_logger(__name__)

# created_at_guesty is kept from the first sync
UPDATE_COLUMNS = [
    "listing_id",
    "status",
    "check_in",
    "check_out",
    "guest_name",
    "guests_count",
    "source",
    "last_synced_at",
]


def upsert_inquiries(engine: Engine, rows: list[dict[str, Any]]) -> int:
    """
    Upsert inquiry rows in one transaction, keyed on inquiry_id.

    Args:
        engine: SQLAlchemy Engine
        rows: Rows as produced by normalizers.reservations.map_inquiry

    Returns:
        int: Number of rows written
    """
    if not rows:
        return 0

    with write_transaction(engine, "upsert_inquiries") as conn:
        count = upsert_rows(conn, Inquiry, rows, ["inquiry_id"], update_columns=UPDATE_COLUMNS)

    logger.info("inquiries_upserted", listing_id=rows[0].get("listing_id"), count=count)
    return count


def delete_inquiries_older_than(engine: Engine, listing_id: str, cutoff_date: str) -> int:
    """Delete a listing's inquiries that checked out before ``cutoff_date`` (YYYY-MM-DD)."""
    with write_transaction(engine, "delete_inquiries_older_than") as conn:
        result = conn.execute(
            delete(Inquiry).where(
                Inquiry.listing_id == listing_id,
                Inquiry.check_out < cutoff_date,
            )
        )
    return result.rowcount or 0
