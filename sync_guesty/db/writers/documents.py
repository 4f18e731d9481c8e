from typing import Any, Iterable, Optional

from sqlalchemy import delete
from sqlalchemy.engine import Connection

from sync_guesty.db.writers._upsert import dialect_insert
from sync_guesty.models.documents import Document, DocumentSequence
from sync_guesty.utils.datetime import utc_now


def increment_sequence(conn: Connection, sequence_type: str, year: int) -> int:
    """
    Atomically bump the (sequence_type, year) counter and return the new value.

    A single ``INSERT ... ON CONFLICT DO UPDATE ... RETURNING`` statement does
    the read and the write, so two concurrent transactions serialize on the
    row and can never read the same value.

    Args:
        conn: Connection inside the caller's transaction
        sequence_type: Sequence group, "shared" for quotes and invoices
        year: Four-digit year

    Returns:
        int: The newly issued number (1 for the first call of a year)
    """
    now = utc_now()
    stmt = dialect_insert(conn, DocumentSequence).values(
        sequence_type=sequence_type, year=year, last_number=1, updated_at=now
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["sequence_type", "year"],
        set_={
            "last_number": DocumentSequence.last_number + 1,
            "updated_at": now,
        },
    ).returning(DocumentSequence.last_number)
    return int(conn.execute(stmt).scalar_one())


def write_sequence(conn: Connection, sequence_type: str, year: int, value: int) -> None:
    """Overwrite the counter so the next issued number is ``value + 1``."""
    now = utc_now()
    stmt = dialect_insert(conn, DocumentSequence).values(
        sequence_type=sequence_type, year=year, last_number=value, updated_at=now
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["sequence_type", "year"],
        set_={"last_number": value, "updated_at": now},
    )
    conn.execute(stmt)


def insert_document(
    conn: Connection,
    document_type: str,
    document_number: str,
    reservation_id: str,
    currency: Optional[str] = None,
    total: Optional[float] = None,
) -> dict[str, Any]:
    now = utc_now()
    row = {
        "document_type": document_type,
        "document_number": document_number,
        "reservation_id": reservation_id,
        "currency": currency,
        "total": total,
        "created_at": now,
        "updated_at": now,
    }
    result = conn.execute(Document.__table__.insert().values(**row))
    return {"id": result.inserted_primary_key[0], **row}


def delete_documents_for_reservations(conn: Connection, reservation_ids: Iterable[str]) -> int:
    """Delete every document referencing any of the given reservations."""
    ids = list(reservation_ids)
    if not ids:
        return 0
    result = conn.execute(delete(Document).where(Document.reservation_id.in_(ids)))
    return result.rowcount or 0
