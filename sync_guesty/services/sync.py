"""Property-level ETL orchestrator for the Guesty integration."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Sequence

import structlog
from sqlalchemy.engine import Engine

from sync_guesty import config
from sync_guesty.errors import ConfigError
from sync_guesty.metrics import configured_properties, etl_run_duration
from sync_guesty.network.client import GuestyClient
from sync_guesty.services.tasks import (
    EntityResult,
    SyncMode,
    sync_availability,
    sync_inquiries,
    sync_listing,
)
from sync_guesty.utils.datetime import utc_now

logger = structlog.get_logger(__name__)

__all__ = [
    "EtlRunResult",
    "PropertyRunResult",
    "RunState",
    "SyncMode",
    "run_etl_job",
    "sync_property",
]


class RunState(str, Enum):
    NOT_STARTED = "not_started"
    SYNCING_LISTING = "syncing_listing"
    SYNCING_AVAILABILITY = "syncing_availability"
    SYNCING_RESERVATIONS = "syncing_reservations"
    DONE = "done"


@dataclass
class PropertyRunResult:
    """
    Outcome of one property's pass through the three entity tasks.

    ``outcome`` is "success" when every task succeeded (skipped counts as
    success), "failed" when every task failed, "partial" otherwise.
    """

    listing_id: str
    state: RunState = RunState.NOT_STARTED
    listing: Optional[EntityResult] = None
    availability: Optional[EntityResult] = None
    reservations: Optional[EntityResult] = None
    error: Optional[str] = None
    duration_ms: int = 0

    @property
    def tasks(self) -> list[EntityResult]:
        return [r for r in (self.listing, self.availability, self.reservations) if r is not None]

    @property
    def success(self) -> bool:
        return self.error is None and len(self.tasks) == 3 and all(r.success for r in self.tasks)

    @property
    def outcome(self) -> str:
        if self.success:
            return "success"
        if self.error is not None or not any(r.success for r in self.tasks):
            return "failed"
        return "partial"

    def to_dict(self) -> dict[str, Any]:
        return {
            "listing_id": self.listing_id,
            "state": self.state.value,
            "outcome": self.outcome,
            "success": self.success,
            "listing": self.listing.to_dict() if self.listing else None,
            "availability": self.availability.to_dict() if self.availability else None,
            "reservations": self.reservations.to_dict() if self.reservations else None,
            "error": self.error,
            "duration_ms": self.duration_ms,
        }


@dataclass
class EtlRunResult:
    """Aggregate of one ETL run across every configured property."""

    mode: SyncMode
    properties: list[PropertyRunResult] = field(default_factory=list)
    duration_ms: int = 0
    timestamp: datetime = field(default_factory=utc_now)

    @property
    def success(self) -> bool:
        return all(p.success for p in self.properties)

    def _sum(self, entity: str, attr: str) -> int:
        total = 0
        for prop in self.properties:
            result = getattr(prop, entity)
            if result is not None:
                total += getattr(result, attr)
        return total

    @property
    def listings_count(self) -> int:
        return self._sum("listing", "count")

    @property
    def availability_count(self) -> int:
        return self._sum("availability", "count")

    @property
    def reservations_count(self) -> int:
        return self._sum("reservations", "count")

    @property
    def deleted_count(self) -> int:
        return self._sum("availability", "deleted")

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "mode": self.mode.value,
            "listings_count": self.listings_count,
            "availability_count": self.availability_count,
            "reservations_count": self.reservations_count,
            "deleted_count": self.deleted_count,
            "duration_ms": self.duration_ms,
            "timestamp": self.timestamp.isoformat(),
            "properties": [p.to_dict() for p in self.properties],
        }


def sync_property(
    client: GuestyClient,
    engine: Engine,
    listing_id: str,
    mode: SyncMode = SyncMode.NORMAL,
    now: Optional[datetime] = None,
) -> PropertyRunResult:
    """
    Sync one property: listing, then availability, then reservations.

    The tasks are independent and each owns its transactions; the fixed
    order only keeps logs readable. A failing task never stops the next one.

    Args:
        client: Upstream client
        engine: SQLAlchemy Engine
        listing_id: Guesty listing id
        mode: NORMAL honours freshness, FORCE refetches everything
        now: Reference instant passed to every task

    Returns:
        PropertyRunResult: Per-entity outcomes, ending in state DONE
    """
    started = time.monotonic()
    result = PropertyRunResult(listing_id=listing_id)
    logger.info("property_sync_started", listing_id=listing_id, mode=mode.value)

    result.state = RunState.SYNCING_LISTING
    result.listing = sync_listing(client, engine, listing_id, mode, now=now)

    result.state = RunState.SYNCING_AVAILABILITY
    result.availability = sync_availability(client, engine, listing_id, mode, now=now)

    result.state = RunState.SYNCING_RESERVATIONS
    result.reservations = sync_inquiries(client, engine, listing_id, mode, now=now)

    result.state = RunState.DONE
    result.duration_ms = int((time.monotonic() - started) * 1000)

    logger.info(
        "property_sync_completed",
        listing_id=listing_id,
        outcome=result.outcome,
        listing_skipped=result.listing.skipped,
        availability_skipped=result.availability.skipped,
        reservations_skipped=result.reservations.skipped,
        duration_ms=result.duration_ms,
    )
    return result


def run_etl_job(
    client: GuestyClient,
    engine: Engine,
    mode: SyncMode = SyncMode.NORMAL,
    property_ids: Optional[Sequence[str]] = None,
    now: Optional[datetime] = None,
) -> EtlRunResult:
    """
    Run sync_property() for every configured property, one after another.

    An unexpected exception inside one property becomes a failed
    PropertyRunResult for that property; the remaining properties still run.

    Args:
        client: Upstream client
        engine: SQLAlchemy Engine
        mode: NORMAL or FORCE, applied to every task
        property_ids: Listings to sync (default: PROPERTY_IDS from config)
        now: Reference instant passed to every task

    Returns:
        EtlRunResult: success is True only if every task of every property succeeded

    Raises:
        ConfigError: If no property is configured
    """
    ids = list(property_ids) if property_ids is not None else list(config.PROPERTY_IDS)
    if not ids:
        raise ConfigError("No Guesty property configured (set GUESTY_PROPERTY_ID or GUESTY_PROPERTY_IDS)")

    configured_properties.set(len(ids))
    started = time.monotonic()
    run = EtlRunResult(mode=mode, timestamp=utc_now())
    logger.info("etl_run_started", mode=mode.value, properties=len(ids))

    for listing_id in ids:
        try:
            run.properties.append(sync_property(client, engine, listing_id, mode, now=now))
        except Exception as e:
            logger.exception("property_sync_failed", listing_id=listing_id, error=str(e))
            run.properties.append(PropertyRunResult(listing_id=listing_id, error=str(e)))

    run.duration_ms = int((time.monotonic() - started) * 1000)
    etl_run_duration.observe(run.duration_ms / 1000)

    logger.info(
        "etl_run_completed",
        mode=mode.value,
        success=run.success,
        properties=len(ids),
        listings_count=run.listings_count,
        availability_count=run.availability_count,
        reservations_count=run.reservations_count,
        deleted_count=run.deleted_count,
        duration_ms=run.duration_ms,
    )
    return run
