"""
In-memory OAuth token cache with expiry margin.

The upstream issues bearer tokens with an ``expires_in`` lifetime (24 hours).
The cache hands a token out only while it is further than ``refresh_margin``
from expiry, so callers never start a request with a token that is about to
lapse mid-flight.

One cache belongs to one client instance; it is not a module-level global.
"""

from __future__ import annotations

import threading
from datetime import datetime, timedelta
from typing import Callable

from sync_guesty.utils.datetime import utc_now


class TokenCache:
    """
    Single-slot token cache with time-based expiry.

    Attributes:
        refresh_margin: How long before real expiry the token is treated as expired
        _token: Cached bearer token, if any
        _expires_at: Real expiry of the cached token

    Example:
        >>> cache = TokenCache(refresh_margin_seconds=300)
        >>> cache.set("token-abc-123", expires_in=86400)
        >>> cache.get()
        'token-abc-123'
        >>> cache.invalidate()
    """

    def __init__(
        self,
        refresh_margin_seconds: int = 300,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.refresh_margin = timedelta(seconds=refresh_margin_seconds)
        self._clock = clock
        self._token: str | None = None
        self._expires_at: datetime | None = None
        self._lock = threading.Lock()

    def get(self) -> str | None:
        """
        Get the cached token if it is not within the refresh margin of expiry.

        Returns:
            Cached token string if usable, None otherwise
        """
        with self._lock:
            if self._token is None or self._expires_at is None:
                return None
            if self._clock() < self._expires_at - self.refresh_margin:
                return self._token
            self._token = None
            self._expires_at = None
            return None

    def set(self, token: str, expires_in: int) -> None:
        """
        Cache a token for ``expires_in`` seconds from now.

        Args:
            token: Bearer token
            expires_in: Lifetime in seconds as reported by the token endpoint
        """
        with self._lock:
            self._token = token
            self._expires_at = self._clock() + timedelta(seconds=expires_in)

    def invalidate(self) -> None:
        """Drop the cached token (e.g. after the upstream rejected it with 401)."""
        with self._lock:
            self._token = None
            self._expires_at = None

    @property
    def expires_at(self) -> datetime | None:
        return self._expires_at
