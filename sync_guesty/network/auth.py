"""OAuth client-credentials token acquisition for the Guesty Open API."""

from __future__ import annotations

import threading
import time
from typing import Callable, Optional

import requests
import structlog

from sync_guesty.cache import TokenCache
from sync_guesty.errors import ExternalAPIError
from sync_guesty.metrics import token_refreshes
from sync_guesty.utils.backoff import backoff_delay

logger = structlog.get_logger(__name__)

TOKEN_URL = "https://open-api.guesty.com/oauth2/token"
TOKEN_MAX_ATTEMPTS = 5
TOKEN_BACKOFF_BASE = 2.0
DEFAULT_EXPIRES_IN = 86400


class OAuthTokenProvider:
    """
    Hands out a valid bearer token, fetching a new one when the cache is empty.

    Token acquisition has its own retry policy, separate from data requests:
    up to ``max_attempts`` tries with exponential backoff (2s, 4s, 8s, ...)
    and jitter on 429 and network errors. Any other non-2xx answer fails
    immediately, since retrying bad credentials only burns rate budget.

    Args:
        client_id: Guesty OAuth client id
        client_secret: Guesty OAuth client secret
        token_url: Token endpoint
        session: requests.Session used for the token POST
        cache: TokenCache holding the current token
        max_attempts: Attempts before giving up
        sleep: Sleep function (patched in tests)
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        token_url: str = TOKEN_URL,
        session: Optional[requests.Session] = None,
        cache: Optional[TokenCache] = None,
        max_attempts: int = TOKEN_MAX_ATTEMPTS,
        timeout: float = 30.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.token_url = token_url
        self.session = session or requests.Session()
        self.cache = cache or TokenCache()
        self.max_attempts = max_attempts
        self.timeout = timeout
        self._sleep = sleep
        self._lock = threading.Lock()

    def get_token(self) -> str:
        """
        Return the cached token, or acquire a new one.

        The lock makes concurrent callers share one acquisition instead of
        each hitting the token endpoint.

        Returns:
            str: Bearer token
        """
        cached = self.cache.get()
        if cached:
            return cached

        with self._lock:
            cached = self.cache.get()
            if cached:
                return cached
            token, expires_in = self._request_token()
            self.cache.set(token, expires_in)
            return token

    def invalidate(self) -> None:
        self.cache.invalidate()

    def _request_token(self) -> tuple[str, int]:
        logger.info("oauth_token_requested", token_url=self.token_url)

        payload = {
            "grant_type": "client_credentials",
            "scope": "open-api",
            "client_id": self.client_id,
            "client_secret": self.client_secret,
        }
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/x-www-form-urlencoded",
        }

        for attempt in range(self.max_attempts):
            last_attempt = attempt == self.max_attempts - 1
            try:
                response = self.session.post(
                    self.token_url, data=payload, headers=headers, timeout=self.timeout
                )
            except requests.RequestException as e:
                if last_attempt:
                    token_refreshes.labels(status="failure").inc()
                    raise ExternalAPIError(
                        f"Failed to obtain OAuth token: {e}",
                        status_code=502,
                        service="Guesty OAuth",
                    ) from e
                delay = backoff_delay(attempt, TOKEN_BACKOFF_BASE)
                logger.warning(
                    "oauth_network_error",
                    attempt=attempt + 1,
                    max_attempts=self.max_attempts,
                    delay_s=round(delay, 2),
                    error=str(e),
                )
                self._sleep(delay)
                continue

            if response.status_code == 429:
                if last_attempt:
                    token_refreshes.labels(status="failure").inc()
                    raise ExternalAPIError(
                        f"OAuth token rate limit exceeded after {self.max_attempts} attempts",
                        status_code=429,
                        service="Guesty OAuth",
                        details={"body": response.text, "attempts_exhausted": True},
                    )
                delay = backoff_delay(
                    attempt, TOKEN_BACKOFF_BASE, retry_after=response.headers.get("Retry-After")
                )
                logger.warning(
                    "oauth_rate_limited",
                    attempt=attempt + 1,
                    max_attempts=self.max_attempts,
                    delay_s=round(delay, 2),
                )
                self._sleep(delay)
                continue

            if not response.ok:
                token_refreshes.labels(status="failure").inc()
                raise ExternalAPIError(
                    f"OAuth token exchange failed: {response.status_code}",
                    status_code=response.status_code,
                    service="Guesty OAuth",
                    details={"body": response.text},
                )

            body = response.json()
            token = body.get("access_token")
            if not isinstance(token, str) or not token:
                token_refreshes.labels(status="failure").inc()
                raise ExternalAPIError(
                    "No access_token in Guesty OAuth response",
                    status_code=502,
                    service="Guesty OAuth",
                )

            expires_in = int(body.get("expires_in") or DEFAULT_EXPIRES_IN)
            token_refreshes.labels(status="success").inc()
            logger.info("oauth_token_obtained", expires_in=expires_in, retried_attempts=attempt)
            return token, expires_in

        # Loop always returns or raises; kept for type checkers
        raise ExternalAPIError("OAuth token request failed", status_code=500, service="Guesty OAuth")
