from sqlalchemy import Boolean, Column, DateTime, Float, Integer, String, UniqueConstraint
from sqlalchemy.sql import func

from sync_guesty.models.base import Base

AVAILABILITY_STATUSES = ("available", "blocked", "booked")
BLOCK_TYPES = ("reservation", "owner", "manual")


class Availability(Base):
    """
    ORM model for one calendar day of one listing.

    (listing_id, date) is unique, so repeated syncs update the same row in
    place. Rows are only removed by the age-based retention sweep.
    """

    __tablename__ = "availability"
    __table_args__ = (UniqueConstraint("listing_id", "date", name="uq_availability_listing_date"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    listing_id = Column(String(64), nullable=False, index=True)
    date = Column(String(10), nullable=False, index=True)  # YYYY-MM-DD, property-local
    status = Column(String(16), nullable=False)
    price = Column(Float, nullable=True)
    min_nights = Column(Integer, nullable=True)
    closed_to_arrival = Column(Boolean, nullable=False, default=False)
    closed_to_departure = Column(Boolean, nullable=False, default=False)
    block_type = Column(String(16), nullable=True)
    block_ref = Column(String(64), nullable=True)
    last_synced_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
