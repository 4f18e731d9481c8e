"""
Unit tests for reservation search pagination in network/client.py.
"""

from __future__ import annotations

import json
import threading
from typing import Any, Callable, Optional
from unittest.mock import Mock

import pytest
import requests

from sync_guesty.network.client import GuestyClient
from sync_guesty.network.rate_limiter import RateLimiter


def _client(session: Mock) -> GuestyClient:
    provider = Mock()
    provider.get_token.return_value = "tok-1"
    return GuestyClient(
        token_provider=provider,
        rate_limiter=RateLimiter(max_per_second=1000, max_concurrent=4),
        session=session,
        sleep=Mock(),
    )


@pytest.mark.unit
def test_fetch_reservations_single_page(make_response: Callable) -> None:
    """Test that one page is enough when count fits in the limit."""
    session = Mock()
    session.get.return_value = make_response(
        200, {"results": [{"_id": "r1"}, {"_id": "r2"}], "count": 2}
    )

    results = _client(session).fetch_reservations("listing-1", "2025-01-01", "2025-12-31")

    assert [r["_id"] for r in results] == ["r1", "r2"]
    assert session.get.call_count == 1


@pytest.mark.unit
def test_fetch_reservations_builds_overlap_filters(make_response: Callable) -> None:
    """Test that the search filters on listing and window overlap."""
    session = Mock()
    session.get.return_value = make_response(200, {"results": [], "count": 0})

    _client(session).fetch_reservations(
        "listing-1", "2025-01-01", "2025-12-31", statuses=["inquiry", "confirmed"]
    )

    params = session.get.call_args[1]["params"]
    filters = json.loads(params["filters"])
    assert {"operator": "$eq", "field": "listingId", "value": "listing-1"} in filters
    assert {"operator": "$lte", "field": "checkInDateLocalized", "value": "2025-12-31"} in filters
    assert {"operator": "$gte", "field": "checkOutDateLocalized", "value": "2025-01-01"} in filters
    assert {"operator": "$in", "field": "status", "value": ["inquiry", "confirmed"]} in filters
    assert params["limit"] == 100
    assert "skip" not in params


@pytest.mark.unit
def test_fetch_reservations_fetches_remaining_pages(make_response: Callable) -> None:
    """Test that later pages are requested by skip offset and merged."""
    seen_skips: list[int] = []
    lock = threading.Lock()

    def fake_get(
        url: str,
        headers: Optional[dict[str, str]] = None,
        params: Optional[dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> requests.Response:
        skip = (params or {}).get("skip", 0)
        with lock:
            seen_skips.append(skip)
        page = [{"_id": f"r{skip + i}"} for i in range(2 if skip < 4 else 1)]
        return make_response(200, {"results": page, "count": 5})

    session = Mock()
    session.get.side_effect = fake_get

    results = _client(session).fetch_reservations(
        "listing-1", "2025-01-01", "2025-12-31", limit=2
    )

    assert sorted(seen_skips) == [0, 2, 4]
    assert sorted(r["_id"] for r in results) == ["r0", "r1", "r2", "r3", "r4"]
