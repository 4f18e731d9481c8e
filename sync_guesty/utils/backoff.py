"""Exponential backoff with jitter, shared by token and data requests."""

from __future__ import annotations

import random
from typing import Optional

JITTER_RATIO = 0.2


def backoff_delay(
    attempt: int,
    base_seconds: float,
    retry_after: Optional[str] = None,
    jitter_ratio: float = JITTER_RATIO,
    max_seconds: float = 120.0,
    rng: Optional[random.Random] = None,
) -> float:
    """
    Compute the delay before retry number ``attempt`` (0-based).

    A numeric Retry-After header wins over the exponential schedule. The result
    is spread by +/- ``jitter_ratio`` and capped at ``max_seconds``.

    Args:
        attempt: Zero-based retry attempt
        base_seconds: Delay for attempt 0; doubles on each attempt
        retry_after: Raw Retry-After header value, if the upstream sent one
        jitter_ratio: Fraction of the delay used as symmetric jitter
        max_seconds: Upper bound on the returned delay
        rng: Optional random source (tests pass a seeded one)

    Returns:
        float: Seconds to sleep
    """
    delay = base_seconds * (2**attempt)
    if retry_after:
        try:
            delay = float(retry_after)
        except ValueError:
            pass

    source = rng or random
    jitter = delay * jitter_ratio * (source.random() * 2 - 1)
    return max(0.0, min(max_seconds, delay + jitter))
