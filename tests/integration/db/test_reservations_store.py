"""
Integration tests for the reservations readers and writers.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import pytest
from sqlalchemy import func, select
from sqlalchemy.engine import Engine

from sync_guesty.db.engine import write_transaction
from sync_guesty.db.readers.documents import list_documents_for_reservation
from sync_guesty.db.readers.reservations import (
    get_reservation,
    get_reservation_ids_in_window,
    get_reservations_in_window,
    get_upcoming_reservations,
    is_reservation_stale,
)
from sync_guesty.db.writers.reservations import (
    delete_reservations,
    delete_reservations_older_than,
    upsert_reservations,
)
from sync_guesty.models.reservations import Reservation
from sync_guesty.normalizers.reservations import map_reservation
from sync_guesty.services.documents import create_document

NOW = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)

ReservationFactory = Callable[..., dict[str, Any]]


def _store(engine: Engine, *payloads: dict[str, Any]) -> None:
    upsert_reservations(engine, [map_reservation(p, synced_at=NOW) for p in payloads])


@pytest.mark.integration
def test_upsert_reservation_is_idempotent(
    db_engine: Engine, reservation_payload: ReservationFactory
) -> None:
    """Test that re-syncing a reservation updates it in place."""
    _store(db_engine, reservation_payload("res-1", "2025-01-02", "2025-01-05"))
    _store(db_engine, reservation_payload("res-1", "2025-01-02", "2025-01-06", status="reserved"))

    with db_engine.connect() as conn:
        count = conn.execute(select(func.count()).select_from(Reservation)).scalar_one()
        row = get_reservation(conn, "res-1")

    assert count == 1
    assert row is not None
    assert row["status"] == "reserved"
    assert row["check_out_localized"] == "2025-01-06"
    assert row["guest_name"] == "Jane Doe"
    assert row["nights_count"] == 4


@pytest.mark.integration
def test_window_overlap_counts_occupied_nights(
    db_engine: Engine, reservation_payload: ReservationFactory
) -> None:
    """Test the overlap rule: check-in on or before the end, check-out after the start."""
    _store(
        db_engine,
        reservation_payload("departs-on-start", "2024-12-28", "2025-01-01"),
        reservation_payload("spans-start", "2024-12-30", "2025-01-03"),
        reservation_payload("inside", "2025-01-04", "2025-01-06"),
        reservation_payload("arrives-on-end", "2025-01-10", "2025-01-12"),
        reservation_payload("after", "2025-01-11", "2025-01-13"),
        reservation_payload("other-listing", "2025-01-04", "2025-01-06", listing_id="listing-2"),
    )

    with db_engine.connect() as conn:
        ids = get_reservation_ids_in_window(conn, "listing-1", "2025-01-01", "2025-01-10")
        rows = get_reservations_in_window(conn, "listing-1", "2025-01-01", "2025-01-10")

    assert sorted(ids) == ["arrives-on-end", "inside", "spans-start"]
    assert [r["reservation_id"] for r in rows] == ["spans-start", "inside", "arrives-on-end"]


@pytest.mark.integration
def test_upcoming_reservations(db_engine: Engine, reservation_payload: ReservationFactory) -> None:
    _store(
        db_engine,
        reservation_payload("past", "2024-12-01", "2024-12-05"),
        reservation_payload("current", "2024-12-30", "2025-01-02"),
        reservation_payload("future", "2025-02-01", "2025-02-03"),
    )

    with db_engine.connect() as conn:
        upcoming = get_upcoming_reservations(conn, "listing-1", "2025-01-01")

    assert [r["reservation_id"] for r in upcoming] == ["current", "future"]


@pytest.mark.integration
def test_delete_reservations_removes_documents_first(
    db_engine: Engine, reservation_payload: ReservationFactory
) -> None:
    """Test that deleting a reservation also deletes the documents that reference it."""
    _store(db_engine, reservation_payload("res-1", "2025-01-02", "2025-01-05"))
    create_document(db_engine, "res-1", "quote", year=2025)
    create_document(db_engine, "res-1", "invoice", year=2025)

    with write_transaction(db_engine, "test_delete") as conn:
        deleted = delete_reservations(conn, ["res-1"])

    with db_engine.connect() as conn:
        assert get_reservation(conn, "res-1") is None
        assert list_documents_for_reservation(conn, "res-1") == []
    assert deleted == 1


@pytest.mark.integration
def test_delete_reservations_empty_ids(db_engine: Engine) -> None:
    with write_transaction(db_engine, "test_delete") as conn:
        assert delete_reservations(conn, []) == 0


@pytest.mark.integration
def test_delete_reservations_older_than(
    db_engine: Engine, reservation_payload: ReservationFactory
) -> None:
    """Test that the retention sweep compares against the localized check-out date."""
    _store(
        db_engine,
        reservation_payload("old", "2024-11-01", "2024-11-05"),
        reservation_payload("recent", "2024-12-20", "2024-12-23"),
    )

    deleted = delete_reservations_older_than(db_engine, "listing-1", "2024-12-01")

    with db_engine.connect() as conn:
        assert get_reservation(conn, "old") is None
        assert get_reservation(conn, "recent") is not None
    assert deleted == 1


@pytest.mark.integration
def test_reservation_staleness(db_engine: Engine, reservation_payload: ReservationFactory) -> None:
    with db_engine.connect() as conn:
        assert is_reservation_stale(conn, "res-1", 60, now=NOW) is True

    _store(db_engine, reservation_payload("res-1", "2025-01-02", "2025-01-05"))

    with db_engine.connect() as conn:
        assert is_reservation_stale(conn, "res-1", 60, now=NOW + timedelta(minutes=30)) is False
        assert is_reservation_stale(conn, "res-1", 60, now=NOW + timedelta(hours=2)) is True
