"""
Unit tests for the metric-wrapped pollers.
"""

from __future__ import annotations

from unittest.mock import Mock

import pytest
from prometheus_client import REGISTRY

from sync_guesty.errors import ExternalAPIError
from sync_guesty.pollers.availability import poll_availability
from sync_guesty.pollers.listings import poll_listing
from sync_guesty.pollers.reservations import poll_reservation, poll_reservations


def _poll_count(listing_id: str, entity_type: str, status: str) -> float:
    labels = {"listing_id": listing_id, "entity_type": entity_type, "status": status}
    return REGISTRY.get_sample_value("guesty_polls_total", labels) or 0.0


@pytest.mark.unit
def test_poll_listing_counts_success(mock_client: Mock) -> None:
    """Test that a successful poll returns the payload and counts a success."""
    mock_client.fetch_listing.return_value = {"_id": "poll-l1", "title": "Loft"}
    before = _poll_count("poll-l1", "listing", "success")

    assert poll_listing(mock_client, "poll-l1") == {"_id": "poll-l1", "title": "Loft"}
    assert _poll_count("poll-l1", "listing", "success") == before + 1


@pytest.mark.unit
def test_poll_listing_counts_failure_and_reraises(mock_client: Mock) -> None:
    """Test that an upstream failure is counted and propagated."""
    mock_client.fetch_listing.side_effect = ExternalAPIError("down", status_code=503)
    before = _poll_count("poll-l2", "listing", "failure")

    with pytest.raises(ExternalAPIError):
        poll_listing(mock_client, "poll-l2")
    assert _poll_count("poll-l2", "listing", "failure") == before + 1


@pytest.mark.unit
def test_poll_availability_passes_window(mock_client: Mock) -> None:
    """Test that the calendar window is forwarded unchanged."""
    mock_client.fetch_availability.return_value = [{"date": "2025-01-01"}]

    days = poll_availability(mock_client, "listing-1", "2025-01-01", "2025-01-31")

    assert days == [{"date": "2025-01-01"}]
    mock_client.fetch_availability.assert_called_once_with("listing-1", "2025-01-01", "2025-01-31")


@pytest.mark.unit
def test_poll_reservations_passes_window(mock_client: Mock) -> None:
    """Test that the reservation search window is forwarded unchanged."""
    mock_client.fetch_reservations.return_value = [{"_id": "r1"}]

    assert poll_reservations(mock_client, "listing-1", "2024-01-01", "2025-12-31") == [
        {"_id": "r1"}
    ]
    mock_client.fetch_reservations.assert_called_once_with("listing-1", "2024-01-01", "2025-12-31")


@pytest.mark.unit
def test_poll_reservation_merges_guest_profile(mock_client: Mock) -> None:
    """Test that the guest profile is fetched and attached when the reservation names one."""
    mock_client.fetch_reservation.return_value = {"_id": "res-1", "guestId": "g-1"}
    mock_client.fetch_guest.return_value = {"_id": "g-1", "fullName": "Jane Doe"}

    reservation = poll_reservation(mock_client, "res-1")

    assert reservation["guest"] == {"_id": "g-1", "fullName": "Jane Doe"}
    mock_client.fetch_guest.assert_called_once_with("g-1")


@pytest.mark.unit
def test_poll_reservation_without_guest(mock_client: Mock) -> None:
    """Test that no guest request is made when the reservation has no guestId."""
    mock_client.fetch_reservation.return_value = {"_id": "res-1"}

    poll_reservation(mock_client, "res-1")

    mock_client.fetch_guest.assert_not_called()
