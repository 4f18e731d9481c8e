import json
from typing import Any

import structlog

from sync_guesty.config import DEBUG
from sync_guesty.metrics import poll_duration, poll_total
from sync_guesty.network.client import GuestyClient

logger = structlog.get_logger(__name__)


def poll_reservations(
    client: GuestyClient, listing_id: str, start: str, end: str
) -> list[dict[str, Any]]:
    """
    Fetch raw reservations of every status overlapping a window.

    Args:
        client (GuestyClient): Upstream client
        listing_id (str): Guesty listing id
        start (str): Window start, YYYY-MM-DD
        end (str): Window end, YYYY-MM-DD

    Returns:
        list[dict]: Raw Guesty reservation records
    """
    with poll_duration.labels(listing_id=listing_id, entity_type="reservations").time():
        try:
            reservations = client.fetch_reservations(listing_id, start, end)

            if DEBUG and reservations:
                logger.debug(
                    "sample_reservation", payload=json.dumps(reservations[0], default=str)
                )

            logger.info(
                "reservations_fetched", listing_id=listing_id, count=len(reservations)
            )
            poll_total.labels(
                listing_id=listing_id, entity_type="reservations", status="success"
            ).inc()
            return reservations
        except Exception:
            poll_total.labels(
                listing_id=listing_id, entity_type="reservations", status="failure"
            ).inc()
            raise


def poll_reservation(client: GuestyClient, reservation_id: str) -> dict[str, Any]:
    """Fetch one reservation and, when it names a guest, that guest's profile."""
    reservation = client.fetch_reservation(reservation_id)
    guest_id = reservation.get("guestId")
    if guest_id:
        reservation = {**reservation, "guest": client.fetch_guest(guest_id)}
    return reservation
