"""Create listings, availability, reservations, inquiries and document tables

Revision ID: 3f2a9c1d7b40
Revises:
Create Date: 2025-01-06 09:12:31.204118

"""

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op  # type: ignore[attr-defined]

# revision identifiers, used by Alembic.
revision = "3f2a9c1d7b40"
down_revision = None
branch_labels = None
depends_on = None

JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "listings",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("accommodates", sa.Integer(), nullable=True),
        sa.Column("bedrooms", sa.Integer(), nullable=True),
        sa.Column("bathrooms", sa.Float(), nullable=True),
        sa.Column("property_type", sa.String(), nullable=True),
        sa.Column("timezone", sa.String(), nullable=True),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("base_price", sa.Float(), nullable=False),
        sa.Column("weekend_base_price", sa.Float(), nullable=True),
        sa.Column("cleaning_fee", sa.Float(), nullable=False),
        sa.Column("extra_person_fee", sa.Float(), nullable=False),
        sa.Column("guests_included", sa.Integer(), nullable=False),
        sa.Column("weekly_price_factor", sa.Float(), nullable=False),
        sa.Column("monthly_price_factor", sa.Float(), nullable=False),
        sa.Column("taxes", JSON_TYPE, nullable=False),
        sa.Column("min_nights", sa.Integer(), nullable=False),
        sa.Column("max_nights", sa.Integer(), nullable=True),
        sa.Column("check_in_time", sa.String(5), nullable=True),
        sa.Column("check_out_time", sa.String(5), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False),
        sa.Column("last_synced_at", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_listings_active", "listings", ["active"])
    op.create_index("ix_listings_last_synced_at", "listings", ["last_synced_at"])

    op.create_table(
        "availability",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("listing_id", sa.String(64), nullable=False),
        sa.Column("date", sa.String(10), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("price", sa.Float(), nullable=True),
        sa.Column("min_nights", sa.Integer(), nullable=True),
        sa.Column("closed_to_arrival", sa.Boolean(), nullable=False),
        sa.Column("closed_to_departure", sa.Boolean(), nullable=False),
        sa.Column("block_type", sa.String(16), nullable=True),
        sa.Column("block_ref", sa.String(64), nullable=True),
        sa.Column("last_synced_at", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("listing_id", "date", name="uq_availability_listing_date"),
    )
    op.create_index("ix_availability_listing_id", "availability", ["listing_id"])
    op.create_index("ix_availability_date", "availability", ["date"])

    op.create_table(
        "reservations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("reservation_id", sa.String(64), nullable=False, unique=True),
        sa.Column("listing_id", sa.String(64), nullable=False),
        sa.Column("check_in", sa.String(), nullable=False),
        sa.Column("check_out", sa.String(), nullable=False),
        sa.Column("check_in_localized", sa.String(10), nullable=True),
        sa.Column("check_out_localized", sa.String(10), nullable=True),
        sa.Column("nights_count", sa.Integer(), nullable=False),
        sa.Column("guest_id", sa.String(64), nullable=True),
        sa.Column("guest_name", sa.String(), nullable=True),
        sa.Column("guests_count", sa.Integer(), nullable=True),
        sa.Column("adults_count", sa.Integer(), nullable=True),
        sa.Column("children_count", sa.Integer(), nullable=True),
        sa.Column("infants_count", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(32), nullable=False),
        sa.Column("confirmation_code", sa.String(), nullable=True),
        sa.Column("source", sa.String(), nullable=True),
        sa.Column("platform", sa.String(), nullable=True),
        sa.Column("planned_arrival", sa.String(), nullable=True),
        sa.Column("planned_departure", sa.String(), nullable=True),
        sa.Column("currency", sa.String(3), nullable=True),
        sa.Column("total_price", sa.Float(), nullable=True),
        sa.Column("host_payout", sa.Float(), nullable=True),
        sa.Column("balance_due", sa.Float(), nullable=True),
        sa.Column("total_paid", sa.Float(), nullable=True),
        sa.Column("created_at_guesty", sa.String(), nullable=True),
        sa.Column("reserved_at", sa.String(), nullable=True),
        sa.Column("last_synced_at", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_reservations_listing_id", "reservations", ["listing_id"])
    op.create_index("ix_reservations_check_in_localized", "reservations", ["check_in_localized"])
    op.create_index("ix_reservations_check_out_localized", "reservations", ["check_out_localized"])

    op.create_table(
        "inquiries",
        sa.Column("inquiry_id", sa.String(64), primary_key=True),
        sa.Column("listing_id", sa.String(64), nullable=False),
        sa.Column("status", sa.String(32), nullable=False),
        sa.Column("check_in", sa.String(), nullable=False),
        sa.Column("check_out", sa.String(), nullable=False),
        sa.Column("guest_name", sa.String(), nullable=False),
        sa.Column("guests_count", sa.Integer(), nullable=False),
        sa.Column("source", sa.String(), nullable=True),
        sa.Column("created_at_guesty", sa.String(), nullable=True),
        sa.Column("last_synced_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_inquiries_listing_id", "inquiries", ["listing_id"])
    op.create_index("ix_inquiries_status", "inquiries", ["status"])

    op.create_table(
        "documents",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("document_type", sa.String(16), nullable=False),
        sa.Column("document_number", sa.String(32), nullable=False, unique=True),
        sa.Column(
            "reservation_id",
            sa.String(64),
            sa.ForeignKey("reservations.reservation_id"),
            nullable=False,
        ),
        sa.Column("currency", sa.String(3), nullable=True),
        sa.Column("total", sa.Float(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint(
            "reservation_id", "document_type", name="uq_documents_reservation_type"
        ),
    )
    op.create_index("ix_documents_reservation_id", "documents", ["reservation_id"])

    op.create_table(
        "document_sequences",
        sa.Column("sequence_type", sa.String(16), primary_key=True),
        sa.Column("year", sa.Integer(), primary_key=True, autoincrement=False),
        sa.Column("last_number", sa.Integer(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("document_sequences")
    op.drop_index("ix_documents_reservation_id", table_name="documents")
    op.drop_table("documents")
    op.drop_index("ix_inquiries_status", table_name="inquiries")
    op.drop_index("ix_inquiries_listing_id", table_name="inquiries")
    op.drop_table("inquiries")
    op.drop_index("ix_reservations_check_out_localized", table_name="reservations")
    op.drop_index("ix_reservations_check_in_localized", table_name="reservations")
    op.drop_index("ix_reservations_listing_id", table_name="reservations")
    op.drop_table("reservations")
    op.drop_index("ix_availability_date", table_name="availability")
    op.drop_index("ix_availability_listing_id", table_name="availability")
    op.drop_table("availability")
    op.drop_index("ix_listings_last_synced_at", table_name="listings")
    op.drop_index("ix_listings_active", table_name="listings")
    op.drop_table("listings")
