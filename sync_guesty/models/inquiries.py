from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.sql import func

from sync_guesty.models.base import Base


class Inquiry(Base):
    """
    ORM model for any upstream reservation record, whatever its status.

    Inquiries, confirmed bookings, cancellations and declines all land here,
    which is what inquiry-to-booking conversion reads are computed from.
    """

    __tablename__ = "inquiries"

    inquiry_id = Column(String(64), primary_key=True)  # Guesty reservation _id
    listing_id = Column(String(64), nullable=False, index=True)
    status = Column(String(32), nullable=False, index=True)
    check_in = Column(String, nullable=False)
    check_out = Column(String, nullable=False)
    guest_name = Column(String, nullable=False, default="Unknown")
    guests_count = Column(Integer, nullable=False, default=0)
    source = Column(String, nullable=True)
    created_at_guesty = Column(String, nullable=True)
    last_synced_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
