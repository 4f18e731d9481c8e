from typing import Any, Iterable

import structlog
from sqlalchemy import delete, select
from sqlalchemy.engine import Connection, Engine

from sync_guesty.db.engine import write_transaction
from sync_guesty.db.writers._upsert import upsert_rows
from sync_guesty.db.writers.documents import delete_documents_for_reservations
from sync_guesty.models.reservations import Reservation
from sync_guesty.utils.datetime import utc_now

logger = structlog.get_logger(__name__)


def upsert_reservation(conn: Connection, row: dict[str, Any]) -> None:
    """Upsert one reservation on the caller's connection."""
    upsert_rows(conn, Reservation, [{**row, "updated_at": utc_now()}], ["reservation_id"])


def upsert_reservations(engine: Engine, rows: list[dict[str, Any]]) -> int:
    """
    Upsert reservations in one transaction, keyed on reservation_id.

    Args:
        engine: SQLAlchemy Engine
        rows: Reservation rows as produced by normalizers.reservations

    Returns:
        int: Number of rows written

    Raises:
        DatabaseError: If the write fails
    """
    if not rows:
        return 0

    now = utc_now()
    stamped = [{**row, "updated_at": now} for row in rows]

    with write_transaction(engine, "upsert_reservations") as conn:
        count = upsert_rows(conn, Reservation, stamped, ["reservation_id"])

    logger.info("reservations_upserted", count=count)
    return count


def delete_reservations(conn: Connection, reservation_ids: Iterable[str]) -> int:
    """
    Delete reservations and, before them, every document issued for them.

    Runs on the caller's connection so the caller decides the transaction.

    Returns:
        int: Number of reservation rows deleted
    """
    ids = list(reservation_ids)
    if not ids:
        return 0

    delete_documents_for_reservations(conn, ids)
    result = conn.execute(delete(Reservation).where(Reservation.reservation_id.in_(ids)))
    return result.rowcount or 0


def delete_reservations_older_than(engine: Engine, listing_id: str, cutoff_date: str) -> int:
    """
    Retention sweep: delete a listing's reservations that checked out before ``cutoff_date``.

    Args:
        engine: SQLAlchemy Engine
        listing_id: Listing to sweep
        cutoff_date: YYYY-MM-DD, compared with the localized check-out date

    Returns:
        int: Number of reservations deleted
    """
    with write_transaction(engine, "delete_reservations_older_than") as conn:
        ids = list(
            conn.execute(
                select(Reservation.reservation_id).where(
                    Reservation.listing_id == listing_id,
                    Reservation.check_out_localized < cutoff_date,
                )
            ).scalars()
        )
        deleted = delete_reservations(conn, ids)

    if deleted:
        logger.info(
            "reservations_purged", listing_id=listing_id, cutoff_date=cutoff_date, count=deleted
        )
    return deleted
