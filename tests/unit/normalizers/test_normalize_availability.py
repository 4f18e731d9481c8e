"""
Unit tests for normalizers/availability.py.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable

import pytest

from sync_guesty.errors import ValidationError
from sync_guesty.normalizers.availability import (
    get_block_ref,
    get_block_type,
    map_day,
    map_days,
    map_status,
)

SYNCED_AT = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.mark.unit
@pytest.mark.parametrize(
    "day,expected",
    [
        ({"status": "available"}, "available"),
        ({"status": "unavailable", "blocks": {"o": True}}, "blocked"),
        ({"status": "booked", "blocks": {"b": True}}, "booked"),
        ({"status": "unavailable", "blocks": {"b": True, "m": True}}, "booked"),
        ({"status": "unavailable"}, "blocked"),
        ({"status": "unavailable", "allotment": 2}, "available"),
        ({"status": "available", "allotment": 0}, "blocked"),
        ({"status": "available", "allotment": 0, "blocks": {"b": True}}, "booked"),
    ],
)
def test_map_status(day: dict[str, Any], expected: str) -> None:
    """Test status derivation, with allotment winning over status."""
    assert map_status(day) == expected


@pytest.mark.unit
def test_get_block_type_priority() -> None:
    """Test that a reservation block outranks owner and manual blocks."""
    assert get_block_type({"b": True, "o": True}) == "reservation"
    assert get_block_type({"o": True, "m": True}) == "owner"
    assert get_block_type({"m": True}) == "manual"
    assert get_block_type({"b": False}) is None
    assert get_block_type(None) is None


@pytest.mark.unit
def test_get_block_ref_prefers_reservation_id() -> None:
    """Test that the first block's reservation id is used when present."""
    assert get_block_ref([{"_id": "blk-1", "reservationId": "res-1"}, {"_id": "blk-2"}]) == "res-1"
    assert get_block_ref([{"_id": "blk-2"}]) == "blk-2"
    assert get_block_ref([]) is None


@pytest.mark.unit
def test_map_day_booked(
    calendar_day: Callable[..., dict[str, Any]],
    reservation_payload: Callable[..., dict[str, Any]],
) -> None:
    """Test a booked day referencing its reservation."""
    reservation = reservation_payload("res-9", "2025-01-06", "2025-01-11")
    row = map_day(calendar_day("2025-01-06", reservation=reservation), synced_at=SYNCED_AT)

    assert row == {
        "listing_id": "listing-1",
        "date": "2025-01-06",
        "status": "booked",
        "price": 120,
        "min_nights": 2,
        "closed_to_arrival": False,
        "closed_to_departure": False,
        "block_type": "reservation",
        "block_ref": "res-9",
        "last_synced_at": SYNCED_AT,
    }


@pytest.mark.unit
def test_map_day_uses_fallback_listing_and_truncates_date() -> None:
    """Test that a day without listingId takes the caller's id."""
    row = map_day({"date": "2025-01-02T00:00:00.000Z", "status": "available"}, "listing-7")

    assert row["listing_id"] == "listing-7"
    assert row["date"] == "2025-01-02"


@pytest.mark.unit
def test_map_day_requires_date() -> None:
    """Test that a day without a date is rejected."""
    with pytest.raises(ValidationError):
        map_day({"status": "available"}, "listing-1")


@pytest.mark.unit
def test_map_days_share_timestamp(calendar: Callable[..., list[dict[str, Any]]]) -> None:
    """Test that every row of one response gets the same sync timestamp."""
    rows = map_days(calendar("2025-01-01", "2025-01-05"), "listing-1")

    assert len(rows) == 5
    assert len({r["last_synced_at"] for r in rows}) == 1
