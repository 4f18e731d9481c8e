from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.engine import Connection

from sync_guesty.models.documents import Document, DocumentSequence


def get_document_for_reservation(
    conn: Connection, reservation_id: str, document_type: str
) -> Optional[dict[str, Any]]:
    """Return the document of a kind issued for a reservation, if any."""
    row = (
        conn.execute(
            select(*Document.__table__.columns)
            .where(
                Document.reservation_id == reservation_id,
                Document.document_type == document_type,
            )
            .order_by(Document.id)
            .limit(1)
        )
        .mappings()
        .fetchone()
    )
    return dict(row) if row else None


def list_documents_for_reservation(conn: Connection, reservation_id: str) -> list[dict[str, Any]]:
    result = conn.execute(
        select(*Document.__table__.columns)
        .where(Document.reservation_id == reservation_id)
        .order_by(Document.id)
    )
    return [dict(row) for row in result.mappings()]


def get_sequence(conn: Connection, sequence_type: str, year: int) -> Optional[dict[str, Any]]:
    row = (
        conn.execute(
            select(DocumentSequence.last_number, DocumentSequence.updated_at).where(
                DocumentSequence.sequence_type == sequence_type,
                DocumentSequence.year == year,
            )
        )
        .mappings()
        .fetchone()
    )
    return dict(row) if row else None
