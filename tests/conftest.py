"""
Shared fixtures for the sync engine test suite.

The store under test is SQLite: an in-memory database per test for most
cases, and a file-backed one when several threads need their own
connections.
"""

from __future__ import annotations

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SCHEDULER_ENABLED", "false")

from datetime import date, datetime, timedelta, timezone  # noqa: E402
from pathlib import Path  # noqa: E402
from typing import Any, Callable, Generator, Optional  # noqa: E402
from unittest.mock import Mock  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy.engine import Engine  # noqa: E402

from sync_guesty.db.engine import create_db_engine  # noqa: E402
from sync_guesty.models.availability import Availability  # noqa: E402, F401
from sync_guesty.models.base import Base  # noqa: E402
from sync_guesty.models.documents import Document, DocumentSequence  # noqa: E402, F401
from sync_guesty.models.inquiries import Inquiry  # noqa: E402, F401
from sync_guesty.models.listings import Listing  # noqa: E402, F401
from sync_guesty.models.reservations import Reservation  # noqa: E402, F401
from sync_guesty.network.client import GuestyClient  # noqa: E402

LISTING_ID = "listing-1"
FIXED_NOW = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def db_engine() -> Generator[Engine, None, None]:
    """Fresh in-memory SQLite store with the full schema."""
    test_engine = create_db_engine("sqlite://")
    Base.metadata.create_all(test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def file_engine(tmp_path: Path) -> Generator[Engine, None, None]:
    """File-backed SQLite store, for tests that write from several threads."""
    test_engine = create_db_engine(f"sqlite:///{tmp_path / 'guesty.db'}")
    Base.metadata.create_all(test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def mock_client() -> Mock:
    """GuestyClient stand-in; tests set return values per endpoint."""
    return Mock(spec=GuestyClient)


def _listing_payload(listing_id: str = LISTING_ID, **overrides: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "_id": listing_id,
        "title": "Seaside Loft",
        "accommodates": 4,
        "bedrooms": 2,
        "bathrooms": 1.5,
        "propertyType": "Apartment",
        "timezone": "Europe/Berlin",
        "active": True,
        "listed": True,
        "prices": {
            "basePrice": 120,
            "currency": "EUR",
            "weekendBasePrice": 150,
            "cleaningFee": 60,
            "extraPersonFee": 15,
            "guestsIncludedInRegularFee": 2,
            "weeklyPriceFactor": 0.9,
            "monthlyPriceFactor": 0.8,
        },
        "taxes": [
            {
                "_id": "tax-1",
                "type": "CITY_TAX",
                "amount": 5,
                "units": "PERCENTAGE",
                "quantifier": "PER_STAY",
                "appliedToAllFees": False,
                "appliedOnFees": ["AF"],
            },
            {
                "_id": "tax-2",
                "type": "VAT",
                "amount": 7,
                "units": "PERCENTAGE",
                "quantifier": "PER_STAY",
                "appliedToAllFees": True,
            },
        ],
        "terms": {
            "minNights": 2,
            "maxNights": 28,
            "checkInTime": "15:00",
            "checkOutTime": "11:00",
        },
    }
    payload.update(overrides)
    return payload


def _reservation_payload(
    reservation_id: str,
    check_in: str,
    check_out: str,
    listing_id: str = LISTING_ID,
    status: str = "confirmed",
    **overrides: Any,
) -> dict[str, Any]:
    nights = (date.fromisoformat(check_out) - date.fromisoformat(check_in)).days
    payload: dict[str, Any] = {
        "_id": reservation_id,
        "listingId": listing_id,
        "status": status,
        "checkIn": f"{check_in}T14:00:00.000Z",
        "checkOut": f"{check_out}T09:00:00.000Z",
        "checkInDateLocalized": check_in,
        "checkOutDateLocalized": check_out,
        "nightsCount": nights,
        "guestId": f"guest-{reservation_id}",
        "guest": {"_id": f"guest-{reservation_id}", "fullName": "Jane Doe"},
        "guestsCount": 2,
        "numberOfGuests": {"numberOfAdults": 2, "numberOfChildren": 0, "numberOfInfants": 0},
        "confirmationCode": f"GY-{reservation_id}",
        "source": "airbnb2",
        "integration": {"platform": "airbnb2"},
        "money": {
            "currency": "EUR",
            "fareAccommodationAdjusted": 120.0 * nights,
            "hostPayout": 100.0 * nights,
            "balanceDue": 0,
            "totalPaid": 120.0 * nights,
        },
        "createdAt": "2024-11-20T10:00:00.000Z",
    }
    payload.update(overrides)
    return payload


def _calendar_day(
    day: str,
    listing_id: str = LISTING_ID,
    reservation: Optional[dict[str, Any]] = None,
    blocked_by: Optional[str] = None,
    price: float = 120,
) -> dict[str, Any]:
    entry: dict[str, Any] = {
        "date": day,
        "listingId": listing_id,
        "status": "available",
        "price": price,
        "minNights": 2,
        "cta": False,
        "ctd": False,
        "blocks": {},
        "blockRefs": [],
    }
    if reservation is not None:
        entry["status"] = "booked"
        entry["blocks"] = {"b": True}
        entry["blockRefs"] = [
            {
                "_id": f"blk-{reservation['_id']}",
                "reservationId": reservation["_id"],
                "reservation": reservation,
            }
        ]
    elif blocked_by is not None:
        entry["status"] = "unavailable"
        entry["blocks"] = {blocked_by: True}
        entry["blockRefs"] = [{"_id": f"blk-{blocked_by}-{day}"}]
    return entry


def _calendar(
    start: str,
    end: str,
    listing_id: str = LISTING_ID,
    booked: Optional[dict[str, dict[str, Any]]] = None,
) -> list[dict[str, Any]]:
    """Build one calendar day per date in [start, end]; ``booked`` maps date -> reservation."""
    days = []
    current = date.fromisoformat(start)
    last = date.fromisoformat(end)
    while current <= last:
        iso = current.isoformat()
        days.append(_calendar_day(iso, listing_id, reservation=(booked or {}).get(iso)))
        current += timedelta(days=1)
    return days


@pytest.fixture
def listing_payload() -> Callable[..., dict[str, Any]]:
    return _listing_payload


@pytest.fixture
def reservation_payload() -> Callable[..., dict[str, Any]]:
    return _reservation_payload


@pytest.fixture
def calendar_day() -> Callable[..., dict[str, Any]]:
    return _calendar_day


@pytest.fixture
def calendar() -> Callable[..., list[dict[str, Any]]]:
    return _calendar
