import json
from typing import Any

import structlog

from sync_guesty.config import DEBUG
from sync_guesty.metrics import poll_duration, poll_total
from sync_guesty.network.client import GuestyClient

logger = structlog.get_logger(__name__)


def poll_listing(client: GuestyClient, listing_id: str) -> dict[str, Any]:
    """
    Fetch one raw listing from Guesty's /listings/{id} endpoint.

    Args:
        client (GuestyClient): Upstream client
        listing_id (str): Guesty listing id

    Returns:
        dict: Raw Guesty listing payload
    """
    with poll_duration.labels(listing_id=listing_id, entity_type="listing").time():
        try:
            listing = client.fetch_listing(listing_id)

            if DEBUG:
                logger.debug("sample_listing", payload=json.dumps(listing, default=str)[:2000])

            logger.info("listing_fetched", listing_id=listing_id)
            poll_total.labels(listing_id=listing_id, entity_type="listing", status="success").inc()
            return listing
        except Exception:
            poll_total.labels(listing_id=listing_id, entity_type="listing", status="failure").inc()
            raise
