"""
Pull-reconciliation of reservations against a fresh upstream window.

Guesty does not push cancellations to us. Instead, after each calendar sync
the set of reservation ids seen in that window is compared with what the
store holds for the same window; anything the store has but upstream no
longer reports was cancelled or removed, and is deleted.
"""

from typing import Iterable

import structlog
from sqlalchemy.engine import Engine

from sync_guesty.db.engine import write_transaction
from sync_guesty.db.readers.reservations import get_reservation_ids_in_window
from sync_guesty.db.writers.reservations import delete_reservations
from sync_guesty.metrics import reconciled_deletions

logger = structlog.get_logger(__name__)


def reconcile_window(
    engine: Engine,
    listing_id: str,
    start: str,
    end: str,
    keep_ids: Iterable[str],
) -> int:
    """
    Delete a listing's reservations in [start, end] that upstream no longer reports.

    A reservation is in the window when it occupies at least one night in it
    (check-in on or before ``end``, check-out after ``start``). Reservations
    outside the window are never considered: absence from a narrow fetch says
    nothing about the rest of the calendar.

    Documents issued for a deleted reservation go first, then the reservation,
    all in one transaction. Availability rows are left alone; the calendar
    upsert of the same pass is what updates them.

    Args:
        engine: SQLAlchemy Engine
        listing_id: Guesty listing id
        start: Window start, YYYY-MM-DD
        end: Window end, YYYY-MM-DD
        keep_ids: Reservation ids present in this run's upstream fetch

    Returns:
        int: Number of reservations deleted

    Raises:
        DatabaseError: If the transaction fails; nothing is deleted in that case
    """
    keep = set(keep_ids)

    with write_transaction(engine, "reconcile_window") as conn:
        local_ids = get_reservation_ids_in_window(conn, listing_id, start, end)
        stale_ids = sorted(rid for rid in local_ids if rid not in keep)
        deleted = delete_reservations(conn, stale_ids)

    if deleted:
        reconciled_deletions.labels(listing_id=listing_id).inc(deleted)
        logger.info(
            "reservations_reconciled",
            listing_id=listing_id,
            start=start,
            end=end,
            deleted=deleted,
            reservation_ids=stale_ids,
        )
    else:
        logger.debug(
            "reservations_reconciled", listing_id=listing_id, start=start, end=end, deleted=0
        )
    return deleted
