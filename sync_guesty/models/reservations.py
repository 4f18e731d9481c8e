# models/reservations.py

from sqlalchemy import Column, DateTime, Float, Integer, String
from sqlalchemy.sql import func

from sync_guesty.models.base import Base


class Reservation(Base):
    """
    ORM model for a Guesty reservation that occupies the calendar.

    Rows come from the reservations embedded in calendar days. Date range is
    kept both raw (UTC ISO timestamps) and localized (property-local
    YYYY-MM-DD). A row disappears when the reconciler no longer sees it in
    a fresh fetch of its window, together with any documents issued for it.
    """

    __tablename__ = "reservations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    reservation_id = Column(String(64), nullable=False, unique=True)
    listing_id = Column(String(64), nullable=False, index=True)

    check_in = Column(String, nullable=False)
    check_out = Column(String, nullable=False)
    check_in_localized = Column(String(10), nullable=True, index=True)
    check_out_localized = Column(String(10), nullable=True, index=True)
    nights_count = Column(Integer, nullable=False, default=0)

    guest_id = Column(String(64), nullable=True)
    guest_name = Column(String, nullable=True)
    guests_count = Column(Integer, nullable=True)
    adults_count = Column(Integer, nullable=True)
    children_count = Column(Integer, nullable=True)
    infants_count = Column(Integer, nullable=True)

    status = Column(String(32), nullable=False)
    confirmation_code = Column(String, nullable=True)
    source = Column(String, nullable=True)
    platform = Column(String, nullable=True)
    planned_arrival = Column(String, nullable=True)
    planned_departure = Column(String, nullable=True)

    currency = Column(String(3), nullable=True)
    total_price = Column(Float, nullable=True)
    host_payout = Column(Float, nullable=True)
    balance_due = Column(Float, nullable=True)
    total_paid = Column(Float, nullable=True)

    created_at_guesty = Column(String, nullable=True)
    reserved_at = Column(String, nullable=True)
    last_synced_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
