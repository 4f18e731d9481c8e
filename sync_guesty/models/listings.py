from sqlalchemy import Boolean, Column, DateTime, Float, Integer, String
from sqlalchemy.sql import func

from sync_guesty.models.base import Base, JSONType


class Listing(Base):
    """
    ORM model for a Guesty listing (one managed property).

    Holds identity, capacity, base pricing, tax rules and stay terms. The row
    is replaced wholesale on every listing sync; consumers (pricing, calendar,
    admin) only read it.
    """

    __tablename__ = "listings"

    id = Column(String(64), primary_key=True)  # Guesty listing _id
    title = Column(String, nullable=False)
    accommodates = Column(Integer, nullable=True)
    bedrooms = Column(Integer, nullable=True)
    bathrooms = Column(Float, nullable=True)
    property_type = Column(String, nullable=True)
    timezone = Column(String, nullable=True)

    currency = Column(String(3), nullable=False)
    base_price = Column(Float, nullable=False)
    weekend_base_price = Column(Float, nullable=True)
    cleaning_fee = Column(Float, nullable=False, default=0)
    extra_person_fee = Column(Float, nullable=False, default=0)
    guests_included = Column(Integer, nullable=False, default=1)
    weekly_price_factor = Column(Float, nullable=False, default=1.0)
    monthly_price_factor = Column(Float, nullable=False, default=1.0)
    taxes = Column(JSONType, nullable=False, default=list)  # ordered tax rules

    min_nights = Column(Integer, nullable=False, default=1)
    max_nights = Column(Integer, nullable=True)
    check_in_time = Column(String(5), nullable=True)
    check_out_time = Column(String(5), nullable=True)

    active = Column(Boolean, nullable=False, default=True, index=True)
    last_synced_at = Column(DateTime(timezone=True), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
