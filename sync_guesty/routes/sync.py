"""
Admin sync triggers and scheduler status.

These are the only externally triggerable entry points into the sync
engine. ``force=true`` maps to SyncMode.FORCE and bypasses every freshness
check; manual and scheduled runs return the same structured result.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.engine import Engine

from sync_guesty.dependencies import get_db_engine, get_guesty_client, get_scheduler
from sync_guesty.network.client import GuestyClient
from sync_guesty.services.scheduler import SyncScheduler
from sync_guesty.services.tasks import (
    SyncMode,
    sync_availability,
    sync_listing,
    sync_reservation,
)

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.post("/all")
def trigger_full_sync(
    force: bool = Query(True, description="Bypass freshness checks"),
    scheduler: SyncScheduler = Depends(get_scheduler),
) -> dict[str, Any]:
    """
    Run one ETL pass over every configured property now.

    Runs through the scheduler so it never overlaps a scheduled run.

    Returns:
        dict: EtlRunResult.to_dict()

    Raises:
        HTTPException: 409 when a run is already in flight
    """
    mode = SyncMode.from_force(force)
    logger.info("manual_sync_requested", scope="all", mode=mode.value)

    result = scheduler.trigger_now(mode)
    if result is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A sync run is already in progress",
        )
    return result.to_dict()


@router.post("/listing/{listing_id}")
def trigger_listing_sync(
    listing_id: str,
    force: bool = Query(False, description="Bypass the freshness check"),
    client: GuestyClient = Depends(get_guesty_client),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    """Sync one listing's details and return the entity result."""
    mode = SyncMode.from_force(force)
    logger.info("manual_sync_requested", scope="listing", listing_id=listing_id, mode=mode.value)
    return sync_listing(client, engine, listing_id, mode).to_dict()


@router.post("/availability/{listing_id}")
def trigger_availability_sync(
    listing_id: str,
    force: bool = Query(False, description="Bypass the freshness check"),
    client: GuestyClient = Depends(get_guesty_client),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    """Sync one listing's calendar, reconcile its reservations, and return the entity result."""
    mode = SyncMode.from_force(force)
    logger.info(
        "manual_sync_requested", scope="availability", listing_id=listing_id, mode=mode.value
    )
    return sync_availability(client, engine, listing_id, mode).to_dict()


@router.post("/reservation/{reservation_id}")
def trigger_reservation_sync(
    reservation_id: str,
    force: bool = Query(False, description="Bypass the freshness check"),
    client: GuestyClient = Depends(get_guesty_client),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    """
    Refresh one reservation and its guest profile, e.g. before issuing a quote.

    Returns:
        dict: EntityResult.to_dict(); ``listing_id`` is the reservation's
        listing once the payload was fetched
    """
    mode = SyncMode.from_force(force)
    logger.info(
        "manual_sync_requested", scope="reservation", reservation_id=reservation_id, mode=mode.value
    )
    return sync_reservation(client, engine, reservation_id, mode).to_dict()


@router.get("/status")
def scheduler_status(
    scheduler: SyncScheduler = Depends(get_scheduler),
    client: GuestyClient = Depends(get_guesty_client),
) -> dict[str, Any]:
    """
    Return scheduler state and the last upstream rate-limit headers seen.

    Example:
        >>> GET /sync/status
        {"scheduler": {"running": true, "success_count": 12, ...}, "rate_limit": {...}}
    """
    return {
        "scheduler": scheduler.status().to_dict(),
        "rate_limit": client.rate_limit_info(),
    }
