"""
Document numbering for quotes and invoices.

Both kinds draw from one per-year counter ("shared" sequence group), so a
quote and the invoice later issued for the same booking can carry the same
digits. Only the display prefix differs:

    quote   -> A-2025-0001
    invoice -> 2025-0001
"""

from __future__ import annotations

from typing import Any, Optional

import structlog
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError

from sync_guesty.db.engine import write_transaction
from sync_guesty.db.readers.documents import get_document_for_reservation, get_sequence
from sync_guesty.db.readers.reservations import get_reservation
from sync_guesty.db.writers.documents import increment_sequence, insert_document, write_sequence
from sync_guesty.errors import DatabaseError, NotFoundError, ValidationError
from sync_guesty.models.documents import DOCUMENT_KINDS, SHARED_SEQUENCE
from sync_guesty.utils.datetime import utc_now

logger = structlog.get_logger(__name__)

QUOTE_PREFIX = "A-"


def _check_kind(kind: str) -> None:
    if kind not in DOCUMENT_KINDS:
        raise ValidationError(f"Unknown document kind: {kind}", details={"allowed": DOCUMENT_KINDS})


def format_document_number(kind: str, year: int, number: int) -> str:
    """
    Render a sequence value for display.

    Example:
        >>> format_document_number("quote", 2025, 1)
        'A-2025-0001'
        >>> format_document_number("invoice", 2025, 12)
        '2025-0012'
    """
    _check_kind(kind)
    base = f"{year}-{number:04d}"
    return f"{QUOTE_PREFIX}{base}" if kind == "quote" else base


def _next_number(conn: Connection, kind: str, year: int) -> int:
    _check_kind(kind)
    number = increment_sequence(conn, SHARED_SEQUENCE, year)
    logger.info("document_number_issued", kind=kind, year=year, number=number)
    return number


def next_number(engine: Engine, kind: str, year: int) -> int:
    """
    Issue the next number of ``year`` for a quote or an invoice.

    The increment and the read are one statement inside one transaction, so
    concurrent callers always receive distinct values.

    Args:
        engine: SQLAlchemy Engine
        kind: "quote" or "invoice"
        year: Four-digit year

    Returns:
        int: The issued number

    Raises:
        ValidationError: If ``kind`` is unknown
        DatabaseError: If the transaction fails
    """
    _check_kind(kind)
    with write_transaction(engine, "next_document_number") as conn:
        return _next_number(conn, kind, year)


def number_for(
    engine: Engine,
    reservation_id: str,
    kind: str,
    year: Optional[int] = None,
) -> str:
    """
    Return the display number for a reservation's quote or invoice.

    Idempotent per (reservation, kind): the first call issues a number from
    the shared counter and records the document; later calls return the
    recorded number and never issue another.

    Args:
        engine: SQLAlchemy Engine
        reservation_id: Guesty reservation id
        kind: "quote" or "invoice"
        year: Sequence year (default: current UTC year)

    Returns:
        str: Formatted document number
    """
    document = create_document(engine, reservation_id, kind, year=year)
    return str(document["document_number"])


def create_document(
    engine: Engine,
    reservation_id: str,
    kind: str,
    currency: Optional[str] = None,
    total: Optional[float] = None,
    year: Optional[int] = None,
) -> dict[str, Any]:
    """
    Materialize a numbered document for a stored reservation.

    Returns the existing document when one of this kind already exists, so
    repeated calls never issue a second number. When a concurrent caller
    inserts first, the (reservation_id, document_type) unique constraint
    rejects this insert and the winner's row is returned; the rolled-back
    transaction issues no number.

    Raises:
        NotFoundError: If the reservation is not in the local store
        DatabaseError: If the write fails for any other reason
    """
    _check_kind(kind)
    issue_year = year or utc_now().year

    try:
        with write_transaction(engine, "create_document") as conn:
            reservation = get_reservation(conn, reservation_id)
            if reservation is None:
                raise NotFoundError(f"Reservation {reservation_id} not found")

            existing = get_document_for_reservation(conn, reservation_id, kind)
            if existing:
                return existing

            number = _next_number(conn, kind, issue_year)
            document = insert_document(
                conn,
                document_type=kind,
                document_number=format_document_number(kind, issue_year, number),
                reservation_id=reservation_id,
                currency=currency or reservation.get("currency"),
                total=total,
            )
    except DatabaseError as e:
        if not isinstance(e.__cause__, IntegrityError):
            raise
        with engine.connect() as conn:
            existing = get_document_for_reservation(conn, reservation_id, kind)
        if existing is None:
            raise
        logger.info(
            "document_reused_after_conflict",
            kind=kind,
            reservation_id=reservation_id,
            document_number=existing["document_number"],
        )
        return existing

    logger.info(
        "document_created",
        kind=kind,
        reservation_id=reservation_id,
        document_number=document["document_number"],
    )
    return document


def set_sequence(engine: Engine, year: int, value: int) -> None:
    """
    Manually correct the shared counter for ``year``.

    The next issued number will be ``value + 1``.

    Raises:
        ValidationError: If ``value`` is negative
    """
    if value < 0:
        raise ValidationError("Sequence value must be >= 0", details={"value": value})
    with write_transaction(engine, "set_document_sequence") as conn:
        write_sequence(conn, SHARED_SEQUENCE, year, value)
    logger.warning("document_sequence_set", year=year, value=value)


def get_sequence_info(engine: Engine, year: int) -> dict[str, Any]:
    """Return the shared counter's state for ``year`` and the numbers it would issue next."""
    with engine.connect() as conn:
        row = get_sequence(conn, SHARED_SEQUENCE, year)

    last_number = int(row["last_number"]) if row else 0
    upcoming = last_number + 1
    return {
        "year": year,
        "sequence_type": SHARED_SEQUENCE,
        "last_number": last_number,
        "next_quote_number": format_document_number("quote", year, upcoming),
        "next_invoice_number": format_document_number("invoice", year, upcoming),
        "updated_at": row["updated_at"].isoformat() if row and row["updated_at"] else None,
    }
