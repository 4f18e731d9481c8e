"""
Client for the Guesty Open API with throttling, retries, and token refresh.

All upstream reads go through one GuestyClient instance. The instance owns
its OAuth token state and its rate limiter, so two clients never share or
race on each other's token.
"""

from __future__ import annotations

import json
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from math import ceil
from typing import Any, Callable, Dict, List, Optional, cast
from urllib.parse import quote

import requests
import structlog

from sync_guesty import config
from sync_guesty.errors import ConfigError, ExternalAPIError
from sync_guesty.metrics import api_latency, api_requests
from sync_guesty.network.auth import OAuthTokenProvider
from sync_guesty.network.rate_limiter import RateLimiter
from sync_guesty.utils.backoff import backoff_delay

logger = structlog.get_logger(__name__)

BASE_URL = "https://open-api.guesty.com/v1"
MAX_RETRIES = 3
RETRY_BACKOFF_BASE = 1.0
PAGE_SIZE = 100
MAX_PAGE_WORKERS = 4
LOW_BUDGET_RATIO = 0.2

RESERVATION_FIELDS = " ".join(
    [
        "_id",
        "listingId",
        "status",
        "checkIn",
        "checkOut",
        "checkInDateLocalized",
        "checkOutDateLocalized",
        "guest",
        "guestsCount",
        "source",
        "createdAt",
        "confirmedAt",
        "confirmationCode",
        "integration",
    ]
)


def should_retry(res: Optional[requests.Response], err: Optional[Exception]) -> bool:
    """
    Determine whether a data request should be retried.

    Args:
        res: Response object if the request produced one
        err: Exception raised by the request, if any

    Returns:
        bool: True for throttling, server errors, timeouts and dropped connections
    """
    if res is not None and res.status_code == 429:
        return True
    if res is not None and 500 <= res.status_code < 600:
        return True
    if isinstance(err, (requests.Timeout, requests.ConnectionError)):
        return True
    return False


class GuestyClient:
    """
    Rate-limited, retrying reader for the Guesty Open API.

    Args:
        token_provider: Source of bearer tokens
        base_url: API root, e.g. https://open-api.guesty.com/v1
        rate_limiter: Shared throttle for every request this client makes
        session: requests.Session for connection reuse
        timeout: Per-request timeout in seconds
        max_retries: Retries after the first attempt for retryable failures
        sleep: Sleep function (patched in tests)
        health_listing_id: Listing fetched by health_check()

    Example:
        >>> client = GuestyClient.from_config()
        >>> listing = client.fetch_listing("5f1a...")
    """

    def __init__(
        self,
        token_provider: OAuthTokenProvider,
        base_url: str = BASE_URL,
        rate_limiter: Optional[RateLimiter] = None,
        session: Optional[requests.Session] = None,
        timeout: float = 30.0,
        max_retries: int = MAX_RETRIES,
        sleep: Callable[[float], None] = time.sleep,
        health_listing_id: Optional[str] = None,
    ):
        self.token_provider = token_provider
        self.base_url = base_url.rstrip("/")
        self.rate_limiter = rate_limiter or RateLimiter()
        self.session = session or requests.Session()
        self.timeout = timeout
        self.max_retries = max_retries
        self._sleep = sleep
        self.health_listing_id = health_listing_id
        self._rate_limit_info: Dict[str, Optional[int]] = {
            "limit_per_second": None,
            "remaining_per_second": None,
            "limit_per_minute": None,
            "remaining_per_minute": None,
            "limit_per_hour": None,
            "remaining_per_hour": None,
        }
        self._info_lock = threading.Lock()

    @classmethod
    def from_config(cls) -> "GuestyClient":
        """
        Build a client from environment configuration.

        Raises:
            ConfigError: If the OAuth credentials are not configured
        """
        if not config.GUESTY_CLIENT_ID or not config.GUESTY_CLIENT_SECRET:
            raise ConfigError("GUESTY_CLIENT_ID and GUESTY_CLIENT_SECRET must be set")

        session = requests.Session()
        provider = OAuthTokenProvider(
            client_id=config.GUESTY_CLIENT_ID,
            client_secret=config.GUESTY_CLIENT_SECRET,
            token_url=config.GUESTY_OAUTH_URL,
            session=session,
            timeout=config.GUESTY_REQUEST_TIMEOUT,
        )
        limiter = RateLimiter(
            max_per_second=config.GUESTY_MAX_RPS,
            max_concurrent=config.GUESTY_MAX_CONCURRENT,
        )
        return cls(
            token_provider=provider,
            base_url=config.GUESTY_API_URL,
            rate_limiter=limiter,
            session=session,
            timeout=config.GUESTY_REQUEST_TIMEOUT,
            health_listing_id=config.PROPERTY_IDS[0] if config.PROPERTY_IDS else None,
        )

    # ------------------------------------------------------------------
    # Public reads
    # ------------------------------------------------------------------

    def fetch_listing(self, listing_id: str) -> Dict[str, Any]:
        """Fetch one listing by its Guesty id."""
        listing = self.request(f"/listings/{quote(listing_id)}", endpoint="listings")
        logger.debug("listing_fetched", listing_id=listing_id, title=listing.get("title"))
        return listing

    def fetch_availability(self, listing_id: str, start: str, end: str) -> List[Dict[str, Any]]:
        """
        Fetch calendar days for a listing between two YYYY-MM-DD dates (inclusive).

        The endpoint wraps its payload as ``{"status": ..., "data": {"days": [...]}}``.

        Returns:
            List[Dict[str, Any]]: Raw calendar day objects
        """
        body = self.request(
            f"/availability-pricing/api/calendar/listings/{quote(listing_id)}",
            params={"startDate": start, "endDate": end},
            endpoint="calendar",
        )
        data = body.get("data")
        days = data.get("days") if isinstance(data, dict) else None
        if not isinstance(days, list):
            raise ExternalAPIError(
                "Unexpected calendar response shape from Guesty",
                status_code=502,
                details={"listing_id": listing_id},
            )
        logger.debug(
            "calendar_fetched", listing_id=listing_id, start=start, end=end, days=len(days)
        )
        return cast(List[Dict[str, Any]], days)

    def fetch_reservations(
        self,
        listing_id: str,
        start: str,
        end: str,
        statuses: Optional[List[str]] = None,
        limit: int = PAGE_SIZE,
    ) -> List[Dict[str, Any]]:
        """
        Fetch every reservation of a listing that overlaps [start, end].

        Overlap means check-in on or before ``end`` and check-out on or after
        ``start``. The first page reports the total count; remaining pages are
        fetched concurrently, still under the client's rate limiter.

        Args:
            listing_id: Guesty listing id
            start: Window start, YYYY-MM-DD
            end: Window end, YYYY-MM-DD
            statuses: Optional status filter (all statuses when omitted)
            limit: Page size

        Returns:
            List[Dict[str, Any]]: Raw reservation objects
        """
        filters: List[Dict[str, Any]] = [
            {"operator": "$eq", "field": "listingId", "value": listing_id},
            {"operator": "$lte", "field": "checkInDateLocalized", "value": end},
            {"operator": "$gte", "field": "checkOutDateLocalized", "value": start},
        ]
        if statuses:
            if len(statuses) == 1:
                filters.append({"operator": "$eq", "field": "status", "value": statuses[0]})
            else:
                filters.append({"operator": "$in", "field": "status", "value": statuses})

        base_params = {
            "filters": json.dumps(filters),
            "fields": RESERVATION_FIELDS,
            "limit": limit,
        }

        first_page = self.request("/reservations", params=base_params, endpoint="reservations")
        results = list(first_page.get("results") or [])
        total_count = int(first_page.get("count") or len(results))
        total_pages = ceil(total_count / limit) if limit else 1

        logger.info(
            "reservations_page_plan",
            listing_id=listing_id,
            total_count=total_count,
            total_pages=total_pages,
        )

        if total_pages > 1:
            with ThreadPoolExecutor(max_workers=MAX_PAGE_WORKERS) as pool:
                futures = [
                    pool.submit(
                        self.request,
                        "/reservations",
                        params={**base_params, "skip": page * limit},
                        endpoint="reservations",
                    )
                    for page in range(1, total_pages)
                ]
                for future in as_completed(futures):
                    results.extend(future.result().get("results") or [])

        return results

    def fetch_reservation(self, reservation_id: str) -> Dict[str, Any]:
        """Fetch one reservation by id."""
        return self.request(f"/reservations/{quote(reservation_id)}", endpoint="reservation")

    def fetch_guest(self, guest_id: str) -> Dict[str, Any]:
        """Fetch one guest profile by id."""
        return self.request(f"/guests/{quote(guest_id)}", endpoint="guests")

    def rate_limit_info(self) -> Dict[str, Optional[int]]:
        """Return the last seen upstream X-ratelimit-* values."""
        with self._info_lock:
            return dict(self._rate_limit_info)

    def health_check(self) -> bool:
        """
        Verify credentials and connectivity by fetching the configured listing.

        Returns:
            bool: True if the upstream answered, False otherwise
        """
        if not self.health_listing_id:
            logger.warning("guesty_health_check_skipped", reason="no listing configured")
            return False
        try:
            self.fetch_listing(self.health_listing_id)
            return True
        except Exception as e:
            logger.error("guesty_health_check_failed", error=str(e))
            return False

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def request(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        endpoint: str = "other",
    ) -> Dict[str, Any]:
        """
        Perform one authenticated GET with throttling and retries.

        429, 5xx, timeouts and connection errors are retried up to
        ``max_retries`` times with exponential backoff and jitter (Retry-After
        wins when present). A 401 drops the cached token and retries once.
        Any other non-2xx response fails immediately.

        Args:
            path: Path under the API root
            params: Query parameters
            endpoint: Metric label for the endpoint

        Returns:
            Dict[str, Any]: Parsed JSON body

        Raises:
            ExternalAPIError: On non-retryable failures or exhausted retries
        """
        url = f"{self.base_url}{path}"
        attempt = 0
        token_refreshed = False

        while True:
            token = self.token_provider.get_token()
            headers = {"Authorization": f"Bearer {token}", "Accept": "application/json"}
            res: Optional[requests.Response] = None
            err: Optional[requests.RequestException] = None

            start_time = time.monotonic()
            with self.rate_limiter:
                try:
                    res = self.session.get(url, headers=headers, params=params, timeout=self.timeout)
                except requests.RequestException as e:
                    err = e
            latency = time.monotonic() - start_time

            status_label = str(res.status_code) if res is not None else "error"
            api_requests.labels(endpoint=endpoint, status_code=status_label).inc()
            api_latency.labels(endpoint=endpoint).observe(latency)

            if res is not None:
                self._track_rate_limit_headers(res)

                if res.status_code == 401 and not token_refreshed:
                    logger.warning("guesty_token_rejected", endpoint=endpoint)
                    self.token_provider.invalidate()
                    token_refreshed = True
                    continue

                if res.ok:
                    try:
                        return cast(Dict[str, Any], res.json())
                    except ValueError as e:
                        raise ExternalAPIError(
                            f"Invalid JSON from Guesty {endpoint}",
                            status_code=502,
                            details={"path": path},
                        ) from e

            if not should_retry(res, err) or attempt >= self.max_retries:
                raise self._to_error(path, res, err, retried=attempt)

            retry_after = res.headers.get("Retry-After") if res is not None else None
            delay = backoff_delay(attempt, RETRY_BACKOFF_BASE, retry_after=retry_after)
            logger.warning(
                "guesty_request_retry",
                endpoint=endpoint,
                attempt=attempt + 1,
                max_retries=self.max_retries,
                status_code=res.status_code if res is not None else None,
                error=str(err) if err else None,
                delay_s=round(delay, 2),
            )
            self._sleep(delay)
            attempt += 1

    def _to_error(
        self,
        path: str,
        res: Optional[requests.Response],
        err: Optional[Exception],
        retried: int,
    ) -> ExternalAPIError:
        if res is None:
            return ExternalAPIError(
                f"Failed to communicate with Guesty API: {err}",
                status_code=502,
                details={"path": path, "retries": retried},
            )

        if res.status_code == 429:
            message = f"Guesty rate limit exceeded after {retried} retries"
        else:
            message = f"Guesty API error: {res.status_code} {res.reason}"

        logger.error(
            "guesty_request_failed",
            path=path,
            status_code=res.status_code,
            retries=retried,
        )
        return ExternalAPIError(
            message,
            status_code=res.status_code,
            details={"path": path, "body": res.text[:500], "retries": retried},
        )

    def _track_rate_limit_headers(self, res: requests.Response) -> None:
        def _parse(name: str) -> Optional[int]:
            raw = res.headers.get(name)
            try:
                return int(raw) if raw is not None else None
            except ValueError:
                return None

        info = {
            "limit_per_second": _parse("X-ratelimit-limit-second"),
            "remaining_per_second": _parse("X-ratelimit-remaining-second"),
            "limit_per_minute": _parse("X-ratelimit-limit-minute"),
            "remaining_per_minute": _parse("X-ratelimit-remaining-minute"),
            "limit_per_hour": _parse("X-ratelimit-limit-hour"),
            "remaining_per_hour": _parse("X-ratelimit-remaining-hour"),
        }
        with self._info_lock:
            for key, value in info.items():
                if value is not None:
                    self._rate_limit_info[key] = value

        limit = info["limit_per_second"]
        remaining = info["remaining_per_second"]
        if limit and remaining is not None and remaining / limit < LOW_BUDGET_RATIO:
            logger.warning(
                "guesty_rate_limit_low",
                remaining=remaining,
                limit=limit,
                percent_remaining=round(remaining / limit * 100),
            )
