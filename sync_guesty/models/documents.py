from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.sql import func

from sync_guesty.models.base import Base

DOCUMENT_KINDS = ("quote", "invoice")
SHARED_SEQUENCE = "shared"


class Document(Base):
    """
    ORM model for a numbered quote or invoice issued for a reservation.

    Only the numbering and the reference to the reservation live here;
    rendering and price breakdowns belong to the document service. A
    reservation holds at most one document of each kind.
    """

    __tablename__ = "documents"
    __table_args__ = (
        UniqueConstraint("reservation_id", "document_type", name="uq_documents_reservation_type"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    document_type = Column(String(16), nullable=False)
    document_number = Column(String(32), nullable=False, unique=True)
    reservation_id = Column(
        String(64),
        ForeignKey("reservations.reservation_id"),
        nullable=False,
        index=True,
    )
    currency = Column(String(3), nullable=True)
    total = Column(Float, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )


class DocumentSequence(Base):
    """Per-year counter; quotes and invoices both draw from the "shared" group."""

    __tablename__ = "document_sequences"

    sequence_type = Column(String(16), primary_key=True)
    year = Column(Integer, primary_key=True, autoincrement=False)
    last_number = Column(Integer, nullable=False, default=0)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
