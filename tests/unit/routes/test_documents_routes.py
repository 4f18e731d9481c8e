"""
Unit tests for the document numbering endpoints.
"""

from __future__ import annotations

from typing import Any, Callable

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine

from sync_guesty.db.writers.reservations import upsert_reservations
from sync_guesty.normalizers.reservations import map_reservation


@pytest.fixture
def stored_reservation(
    db_engine: Engine, reservation_payload: Callable[..., dict[str, Any]]
) -> str:
    raw = reservation_payload("res-1", "2025-03-01", "2025-03-05")
    upsert_reservations(db_engine, [map_reservation(raw)])
    return "res-1"


@pytest.mark.unit
def test_issue_quote_number(api_client: TestClient, stored_reservation: str) -> None:
    """Test that the first quote of a year gets number 1 with the quote prefix."""
    response = api_client.post(
        "/documents/number",
        json={"reservation_id": stored_reservation, "kind": "quote", "year": 2025},
    )

    assert response.status_code == 200
    assert response.json() == {
        "reservation_id": stored_reservation,
        "kind": "quote",
        "document_number": "A-2025-0001",
    }


@pytest.mark.unit
def test_issue_number_is_idempotent(api_client: TestClient, stored_reservation: str) -> None:
    """Test that asking twice returns the same number."""
    payload = {"reservation_id": stored_reservation, "kind": "quote", "year": 2025}

    first = api_client.post("/documents/number", json=payload).json()
    second = api_client.post("/documents/number", json=payload).json()

    assert first["document_number"] == second["document_number"] == "A-2025-0001"


@pytest.mark.unit
def test_invoice_shares_counter_with_quote(api_client: TestClient, stored_reservation: str) -> None:
    """Test that the invoice draws the next value of the shared yearly counter."""
    api_client.post(
        "/documents/number",
        json={"reservation_id": stored_reservation, "kind": "quote", "year": 2025},
    )

    response = api_client.post(
        "/documents/number",
        json={"reservation_id": stored_reservation, "kind": "invoice", "year": 2025},
    )

    assert response.json()["document_number"] == "2025-0002"


@pytest.mark.unit
def test_issue_number_unknown_reservation(api_client: TestClient) -> None:
    """Test that a reservation missing from the store yields a 404 error body."""
    response = api_client.post(
        "/documents/number",
        json={"reservation_id": "res-missing", "kind": "invoice", "year": 2025},
    )

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "NOT_FOUND"


@pytest.mark.unit
@pytest.mark.parametrize(
    "payload",
    [
        {"reservation_id": "res-1", "kind": "receipt"},
        {"reservation_id": "", "kind": "quote"},
        {"reservation_id": "res-1", "kind": "quote", "year": 1999},
    ],
)
def test_issue_number_rejects_invalid_payload(
    api_client: TestClient, payload: dict[str, Any]
) -> None:
    """Test request validation of the numbering payload."""
    response = api_client.post("/documents/number", json=payload)

    assert response.status_code == 422


@pytest.mark.unit
def test_read_unused_sequence(api_client: TestClient) -> None:
    """Test that a year without issued numbers reports the first numbers."""
    response = api_client.get("/documents/sequence/2025")

    assert response.status_code == 200
    body = response.json()
    assert body["year"] == 2025
    assert body["sequence_type"] == "shared"
    assert body["last_number"] == 0
    assert body["next_quote_number"] == "A-2025-0001"
    assert body["next_invoice_number"] == "2025-0001"
    assert body["updated_at"] is None


@pytest.mark.unit
def test_update_sequence(api_client: TestClient, stored_reservation: str) -> None:
    """Test that a manual correction moves the next issued number."""
    response = api_client.put("/documents/sequence/2025", json={"value": 41})

    assert response.status_code == 200
    assert response.json()["next_invoice_number"] == "2025-0042"

    issued = api_client.post(
        "/documents/number",
        json={"reservation_id": stored_reservation, "kind": "invoice", "year": 2025},
    )
    assert issued.json()["document_number"] == "2025-0042"


@pytest.mark.unit
def test_update_sequence_rejects_negative(api_client: TestClient) -> None:
    """Test that a negative counter value is refused."""
    response = api_client.put("/documents/sequence/2025", json={"value": -1})

    assert response.status_code == 422
