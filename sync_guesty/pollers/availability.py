import json
from typing import Any

import structlog

from sync_guesty.config import DEBUG
from sync_guesty.metrics import poll_duration, poll_total
from sync_guesty.network.client import GuestyClient

logger = structlog.get_logger(__name__)


def poll_availability(
    client: GuestyClient, listing_id: str, start: str, end: str
) -> list[dict[str, Any]]:
    """
    Fetch raw calendar days from Guesty's calendar endpoint.

    Args:
        client (GuestyClient): Upstream client
        listing_id (str): Guesty listing id
        start (str): First date, YYYY-MM-DD
        end (str): Last date, YYYY-MM-DD

    Returns:
        list[dict]: Raw Guesty calendar days
    """
    with poll_duration.labels(listing_id=listing_id, entity_type="availability").time():
        try:
            days = client.fetch_availability(listing_id, start, end)

            if DEBUG and days:
                logger.debug("sample_calendar_day", payload=json.dumps(days[0], default=str))

            logger.info(
                "calendar_fetched", listing_id=listing_id, start=start, end=end, days=len(days)
            )
            poll_total.labels(
                listing_id=listing_id, entity_type="availability", status="success"
            ).inc()
            return days
        except Exception:
            poll_total.labels(
                listing_id=listing_id, entity_type="availability", status="failure"
            ).inc()
            raise
