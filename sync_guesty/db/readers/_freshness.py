"""Shared freshness rule for every cache-aware reader."""

from datetime import datetime, timedelta
from typing import Optional

from sync_guesty.utils.datetime import ensure_utc, utc_now


def is_older_than_ttl(
    last_synced_at: Optional[datetime],
    ttl_minutes: int,
    now: Optional[datetime] = None,
) -> bool:
    """
    Return True when a sync timestamp is missing or older than ``now - ttl``.

    A missing timestamp means the entity was never synced, which is stale.
    """
    if last_synced_at is None:
        return True
    cutoff = (now or utc_now()) - timedelta(minutes=ttl_minutes)
    return ensure_utc(last_synced_at) < cutoff
