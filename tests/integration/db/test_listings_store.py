"""
Integration tests for the listings readers and writers.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import pytest
from sqlalchemy import func, select
from sqlalchemy.engine import Engine

from sync_guesty.db.readers.listings import get_active_listings, get_listing, is_listing_stale
from sync_guesty.db.writers.listings import delete_listings_older_than, upsert_listings
from sync_guesty.models.listings import Listing
from sync_guesty.normalizers.listings import map_listing

SYNCED_AT = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.mark.integration
def test_upsert_listing_replaces_existing_row(
    db_engine: Engine, listing_payload: Callable[..., dict[str, Any]]
) -> None:
    """Test that upserting the same listing twice keeps one row with the latest values."""
    upsert_listings(db_engine, [map_listing(listing_payload(), synced_at=SYNCED_AT)])
    upsert_listings(
        db_engine,
        [map_listing(listing_payload(title="Harbour Loft", taxes=[]), synced_at=SYNCED_AT)],
    )

    with db_engine.connect() as conn:
        count = conn.execute(select(func.count()).select_from(Listing)).scalar_one()
        row = get_listing(conn, "listing-1")

    assert count == 1
    assert row is not None
    assert row["title"] == "Harbour Loft"
    assert row["taxes"] == []


@pytest.mark.integration
def test_listing_taxes_keep_order(
    db_engine: Engine, listing_payload: Callable[..., dict[str, Any]]
) -> None:
    """Test that tax rules are stored as an ordered list."""
    upsert_listings(db_engine, [map_listing(listing_payload(), synced_at=SYNCED_AT)])

    with db_engine.connect() as conn:
        row = get_listing(conn, "listing-1")

    assert row is not None
    assert [t["id"] for t in row["taxes"]] == ["tax-1", "tax-2"]
    assert row["base_price"] == 120.0
    assert row["currency"] == "EUR"


@pytest.mark.integration
def test_upsert_listings_empty_is_noop(db_engine: Engine) -> None:
    assert upsert_listings(db_engine, []) == 0


@pytest.mark.integration
def test_listing_staleness_lifecycle(
    db_engine: Engine, listing_payload: Callable[..., dict[str, Any]]
) -> None:
    """Test missing, fresh and expired listings."""
    with db_engine.connect() as conn:
        assert is_listing_stale(conn, "listing-1", ttl_minutes=60, now=SYNCED_AT) is True

    upsert_listings(db_engine, [map_listing(listing_payload(), synced_at=SYNCED_AT)])

    with db_engine.connect() as conn:
        assert (
            is_listing_stale(conn, "listing-1", 60, now=SYNCED_AT + timedelta(minutes=59)) is False
        )
        assert (
            is_listing_stale(conn, "listing-1", 60, now=SYNCED_AT + timedelta(minutes=61)) is True
        )


@pytest.mark.integration
def test_get_active_listings_excludes_unlisted(
    db_engine: Engine, listing_payload: Callable[..., dict[str, Any]]
) -> None:
    """Test that a listing only counts as active when it is both active and listed."""
    upsert_listings(
        db_engine,
        [
            map_listing(listing_payload("listing-1", title="B Loft"), synced_at=SYNCED_AT),
            map_listing(listing_payload("listing-2", title="A House"), synced_at=SYNCED_AT),
            map_listing(listing_payload("listing-3", listed=False), synced_at=SYNCED_AT),
        ],
    )

    with db_engine.connect() as conn:
        active = get_active_listings(conn)

    assert active == [
        {"id": "listing-2", "title": "A House"},
        {"id": "listing-1", "title": "B Loft"},
    ]


@pytest.mark.integration
def test_delete_listings_older_than(
    db_engine: Engine, listing_payload: Callable[..., dict[str, Any]]
) -> None:
    """Test that only listings synced before the cutoff are purged."""
    upsert_listings(
        db_engine,
        [
            map_listing(listing_payload("old"), synced_at=SYNCED_AT - timedelta(days=10)),
            map_listing(listing_payload("new"), synced_at=SYNCED_AT),
        ],
    )

    deleted = delete_listings_older_than(db_engine, SYNCED_AT - timedelta(days=1))

    with db_engine.connect() as conn:
        assert get_listing(conn, "old") is None
        assert get_listing(conn, "new") is not None
    assert deleted == 1
