"""
Client-side throttle for the Guesty Open API.

Guesty publishes a ceiling of 15 requests/second and 15 concurrent requests
per client. The limiter enforces both independently, with a safety margin
configured below the published numbers. Callers over either ceiling block
until a slot frees up; nothing is rejected.
"""

from __future__ import annotations

import threading
import time
from collections import deque
from types import TracebackType
from typing import Callable, Deque, Optional

import structlog

from sync_guesty.metrics import rate_limit_wait

logger = structlog.get_logger(__name__)


class RateLimiter:
    """
    Requests-per-second plus max-in-flight throttle.

    The per-second ceiling is a sliding one-second window of request start
    times. The concurrency ceiling is a bounded semaphore held for the whole
    request, so slow responses count against it.

    Example:
        >>> limiter = RateLimiter(max_per_second=10, max_concurrent=10)
        >>> with limiter:
        ...     session.get(url)
    """

    def __init__(
        self,
        max_per_second: float = 10.0,
        max_concurrent: int = 10,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if max_per_second <= 0:
            raise ValueError("max_per_second must be positive")
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")

        self.max_per_second = max_per_second
        self.max_concurrent = max_concurrent
        self._window_size = max(1, int(max_per_second))
        self._window_seconds = self._window_size / max_per_second
        self._clock = clock
        self._sleep = sleep
        self._slots = threading.BoundedSemaphore(max_concurrent)
        self._starts: Deque[float] = deque()
        self._lock = threading.Lock()
        self._in_flight = 0

    @property
    def in_flight(self) -> int:
        return self._in_flight

    def acquire(self) -> float:
        """
        Block until a request may start.

        Returns:
            float: Seconds spent waiting
        """
        started = self._clock()
        self._slots.acquire()
        try:
            self._wait_for_window()
        except BaseException:
            self._slots.release()
            raise

        with self._lock:
            self._in_flight += 1

        waited = self._clock() - started
        rate_limit_wait.observe(waited)
        if waited > 1.0:
            logger.debug("rate_limiter_waited", waited_s=round(waited, 3))
        return waited

    def release(self) -> None:
        with self._lock:
            self._in_flight -= 1
        self._slots.release()

    def _wait_for_window(self) -> None:
        while True:
            with self._lock:
                now = self._clock()
                while self._starts and now - self._starts[0] >= self._window_seconds:
                    self._starts.popleft()
                if len(self._starts) < self._window_size:
                    self._starts.append(now)
                    return
                delay = self._window_seconds - (now - self._starts[0])
            self._sleep(max(delay, 0.001))

    def __enter__(self) -> "RateLimiter":
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        self.release()
