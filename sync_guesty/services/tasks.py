"""
Entity sync tasks: listing, availability (+ embedded reservations), inquiries.

Each task checks freshness (unless forced), fetches from Guesty, maps the
payload with a pure normalizer, and upserts it. Nothing escapes a task: every
failure becomes an EntityResult with ``success=False`` so that sibling tasks
in the same run still execute.
"""

from __future__ import annotations

import time
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Callable, Optional

import structlog
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from sync_guesty import config
from sync_guesty.db.readers.availability import is_availability_stale
from sync_guesty.db.readers.inquiries import CONFIRMED_STATUSES, is_inquiries_stale
from sync_guesty.db.readers.listings import is_listing_stale
from sync_guesty.db.readers.reservations import is_reservation_stale
from sync_guesty.db.writers.availability import (
    delete_availability_older_than,
    upsert_availability_batch,
)
from sync_guesty.db.writers.inquiries import upsert_inquiries
from sync_guesty.db.writers.listings import upsert_listings
from sync_guesty.db.writers.reservations import (
    delete_reservations_older_than,
    upsert_reservations,
)
from sync_guesty.errors import AppError, ValidationError
from sync_guesty.metrics import records_synced, task_results
from sync_guesty.network.client import GuestyClient
from sync_guesty.normalizers.availability import map_days
from sync_guesty.normalizers.listings import map_listing
from sync_guesty.normalizers.reservations import (
    extract_reservations_from_calendar,
    map_inquiries,
    map_reservation,
)
from sync_guesty.pollers.availability import poll_availability
from sync_guesty.pollers.listings import poll_listing
from sync_guesty.pollers.reservations import poll_reservation, poll_reservations
from sync_guesty.services.reconciler import reconcile_window
from sync_guesty.utils.datetime import date_window, local_today, utc_now

logger = structlog.get_logger(__name__)


class SyncMode(str, Enum):
    """Whether a sync honours the freshness check (NORMAL) or bypasses it (FORCE)."""

    NORMAL = "normal"
    FORCE = "force"

    @classmethod
    def from_force(cls, force: bool) -> "SyncMode":
        return cls.FORCE if force else cls.NORMAL


@dataclass
class EntityResult:
    """
    Outcome of one entity sync task.

    ``skipped`` means the cache was fresh and no upstream call was made; it
    always comes with ``success=True``. ``error`` may be set on a successful
    result when a follow-up step (reconciliation, retention) failed after the
    upsert committed.
    """

    entity: str
    listing_id: str
    success: bool
    skipped: bool = False
    count: int = 0
    deleted: int = 0
    error: Optional[str] = None
    duration_ms: int = 0
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class _Outcome:
    """Mutable accumulator a task body fills in."""

    def __init__(self) -> None:
        self.count = 0
        self.deleted = 0
        self.error: Optional[str] = None
        self.details: dict[str, Any] = {}


def _run_task(
    entity: str,
    listing_id: str,
    body: Callable[[_Outcome], None],
    log_context: Optional[dict[str, Any]] = None,
) -> EntityResult:
    started = time.monotonic()
    outcome = _Outcome()
    context = log_context or {}

    try:
        body(outcome)
    except AppError as e:
        duration_ms = int((time.monotonic() - started) * 1000)
        task_results.labels(entity_type=entity, outcome="failure").inc()
        logger.error(
            "entity_sync_failed",
            entity=entity,
            listing_id=listing_id,
            error=e.message,
            error_code=e.code,
            status_code=e.status_code,
            duration_ms=duration_ms,
            **context,
        )
        return EntityResult(
            entity=entity,
            listing_id=listing_id,
            success=False,
            error=e.message,
            duration_ms=duration_ms,
        )
    except Exception as e:
        duration_ms = int((time.monotonic() - started) * 1000)
        task_results.labels(entity_type=entity, outcome="failure").inc()
        logger.exception(
            "entity_sync_failed",
            entity=entity,
            listing_id=listing_id,
            error=str(e),
            duration_ms=duration_ms,
            **context,
        )
        return EntityResult(
            entity=entity,
            listing_id=listing_id,
            success=False,
            error=str(e),
            duration_ms=duration_ms,
        )

    duration_ms = int((time.monotonic() - started) * 1000)
    task_results.labels(entity_type=entity, outcome="success").inc()
    logger.info(
        "entity_sync_completed",
        entity=entity,
        listing_id=listing_id,
        count=outcome.count,
        deleted=outcome.deleted,
        duration_ms=duration_ms,
        **context,
    )
    return EntityResult(
        entity=entity,
        listing_id=listing_id,
        success=True,
        count=outcome.count,
        deleted=outcome.deleted,
        error=outcome.error,
        duration_ms=duration_ms,
        details=outcome.details,
    )


def _is_fresh(
    engine: Engine,
    entity: str,
    listing_id: str,
    is_stale: Callable[[Connection], bool],
) -> bool:
    """
    Run a staleness check, treating any failure to even connect as stale.

    Returns:
        bool: True only when the store positively reports fresh data
    """
    try:
        with engine.connect() as conn:
            return not is_stale(conn)
    except SQLAlchemyError as e:
        logger.error("freshness_check_failed", entity=entity, listing_id=listing_id, error=str(e))
        return False


def _skipped(entity: str, listing_id: str) -> EntityResult:
    task_results.labels(entity_type=entity, outcome="skipped").inc()
    logger.info("entity_sync_skipped", entity=entity, listing_id=listing_id, reason="cache_fresh")
    return EntityResult(entity=entity, listing_id=listing_id, success=True, skipped=True)


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------


def sync_listing(
    client: GuestyClient,
    engine: Engine,
    listing_id: str,
    mode: SyncMode = SyncMode.NORMAL,
    ttl_minutes: Optional[int] = None,
    now: Optional[datetime] = None,
) -> EntityResult:
    """
    Sync one listing's details, pricing, taxes and terms.

    Args:
        client: Upstream client
        engine: SQLAlchemy Engine
        listing_id: Guesty listing id
        mode: NORMAL skips the fetch when the cached listing is fresh
        ttl_minutes: Freshness window (default CACHE_LISTING_TTL)
        now: Reference instant for the freshness check

    Returns:
        EntityResult: count is 1 on a successful fetch
    """
    ttl = ttl_minutes if ttl_minutes is not None else config.CACHE_LISTING_TTL

    if mode is SyncMode.NORMAL and _is_fresh(
        engine, "listing", listing_id, lambda conn: is_listing_stale(conn, listing_id, ttl, now)
    ):
        return _skipped("listing", listing_id)

    def body(outcome: _Outcome) -> None:
        raw = poll_listing(client, listing_id)
        row = map_listing(raw, synced_at=utc_now())
        outcome.count = upsert_listings(engine, [row])
        outcome.details = {"title": row["title"], "active": row["active"]}
        records_synced.labels(listing_id=listing_id, entity_type="listing").inc(outcome.count)

    return _run_task("listing", listing_id, body, {"mode": mode.value})


# ---------------------------------------------------------------------------
# Availability
# ---------------------------------------------------------------------------


def availability_window(
    now: Optional[datetime] = None,
    past_days: Optional[int] = None,
    future_days: Optional[int] = None,
) -> tuple[str, str]:
    """Return the (start, end) dates synced for availability, around the property-local today."""
    today = local_today(config.PROPERTY_TIMEZONE, now)
    return date_window(
        today,
        config.AVAILABILITY_PAST_DAYS if past_days is None else past_days,
        config.AVAILABILITY_FUTURE_DAYS if future_days is None else future_days,
    )


def _retention_cutoff(now: Optional[datetime], retention_days: int) -> str:
    today: date = local_today(config.PROPERTY_TIMEZONE, now)
    return (today - timedelta(days=retention_days)).isoformat()


def sync_availability(
    client: GuestyClient,
    engine: Engine,
    listing_id: str,
    mode: SyncMode = SyncMode.NORMAL,
    start: Optional[str] = None,
    end: Optional[str] = None,
    ttl_minutes: Optional[int] = None,
    retention_days: Optional[int] = None,
    now: Optional[datetime] = None,
) -> EntityResult:
    """
    Sync a listing's calendar and the reservations embedded in it, then reconcile.

    Steps, each its own transaction:
        1. upsert every calendar day in the window
        2. upsert the distinct reservations found in the days' block refs
        3. reconcile: delete stored reservations in the window that this
           fetch no longer reports
        4. retention sweep of days and reservations older than the cutoff

    Steps 3 and 4 run after the upserts have committed. If either fails, the
    failure is logged and reported in ``error`` while ``success`` stays True.
    An empty calendar response is treated as a failure: Guesty always
    returns one entry per day, so empty means something upstream is wrong.

    Args:
        client: Upstream client
        engine: SQLAlchemy Engine
        listing_id: Guesty listing id
        mode: NORMAL skips the fetch when every day in the window is cached and fresh
        start: Window start (default: today minus AVAILABILITY_PAST_DAYS)
        end: Window end (default: today plus AVAILABILITY_FUTURE_DAYS)
        ttl_minutes: Freshness window (default CACHE_AVAILABILITY_TTL)
        retention_days: Age in days past which rows are purged
            (default AVAILABILITY_RETENTION_DAYS)
        now: Reference instant for freshness, window and retention

    Returns:
        EntityResult: count is the number of days written, deleted the
        number of reservations reconciled away
    """
    default_start, default_end = availability_window(now)
    window_start = start or default_start
    window_end = end or default_end
    ttl = ttl_minutes if ttl_minutes is not None else config.CACHE_AVAILABILITY_TTL
    retention = retention_days if retention_days is not None else config.AVAILABILITY_RETENTION_DAYS

    if mode is SyncMode.NORMAL and _is_fresh(
        engine,
        "availability",
        listing_id,
        lambda conn: is_availability_stale(
            conn, listing_id, ttl, start=window_start, end=window_end, now=now
        ),
    ):
        return _skipped("availability", listing_id)

    def body(outcome: _Outcome) -> None:
        days = poll_availability(client, listing_id, window_start, window_end)
        if not days:
            raise ValidationError(
                "Guesty returned an empty calendar",
                details={"listing_id": listing_id, "start": window_start, "end": window_end},
            )

        synced_at = utc_now()
        rows = map_days(days, listing_id=listing_id, synced_at=synced_at)
        outcome.count = upsert_availability_batch(engine, rows)
        records_synced.labels(listing_id=listing_id, entity_type="availability").inc(
            outcome.count
        )

        reservations = extract_reservations_from_calendar(
            days, listing_id=listing_id, synced_at=synced_at
        )
        upsert_reservations(engine, reservations)
        records_synced.labels(listing_id=listing_id, entity_type="reservations").inc(
            len(reservations)
        )

        keep_ids = {r["reservation_id"] for r in reservations}
        keep_ids.update(
            row["block_ref"]
            for row in rows
            if row["block_type"] == "reservation" and row["block_ref"]
        )

        outcome.details = {
            "start": window_start,
            "end": window_end,
            "booked_days": sum(1 for r in rows if r["status"] == "booked"),
            "reservations": len(reservations),
        }

        errors = []
        try:
            outcome.deleted = reconcile_window(
                engine, listing_id, window_start, window_end, keep_ids
            )
        except Exception as e:
            logger.exception("reconcile_failed", listing_id=listing_id, error=str(e))
            errors.append(f"reconcile failed: {e}")

        try:
            cutoff = _retention_cutoff(now, retention)
            purged_days = delete_availability_older_than(engine, listing_id, cutoff)
            purged_reservations = delete_reservations_older_than(engine, listing_id, cutoff)
            outcome.details["purged_days"] = purged_days
            outcome.details["purged_reservations"] = purged_reservations
        except Exception as e:
            logger.exception("retention_sweep_failed", listing_id=listing_id, error=str(e))
            errors.append(f"retention sweep failed: {e}")

        if errors:
            outcome.error = "; ".join(errors)

    return _run_task(
        "availability",
        listing_id,
        body,
        {"mode": mode.value, "start": window_start, "end": window_end},
    )


# ---------------------------------------------------------------------------
# Reservations / inquiries
# ---------------------------------------------------------------------------


def sync_inquiries(
    client: GuestyClient,
    engine: Engine,
    listing_id: str,
    mode: SyncMode = SyncMode.NORMAL,
    ttl_minutes: Optional[int] = None,
    now: Optional[datetime] = None,
) -> EntityResult:
    """
    Sync every upstream reservation record (any status) for a listing into ``inquiries``.

    The search covers stays checking out within INQUIRY_LOOKBACK_DAYS before
    today through the end of the availability window. No reconciliation runs
    here: the inquiries table is a history, so records are kept even after
    they stop appearing in the search.

    Returns:
        EntityResult: count is the number of records written; details carry
        the inquiry and confirmed counts of this fetch
    """
    ttl = ttl_minutes if ttl_minutes is not None else config.CACHE_RESERVATION_TTL

    if mode is SyncMode.NORMAL and _is_fresh(
        engine,
        "reservations",
        listing_id,
        lambda conn: is_inquiries_stale(conn, listing_id, ttl, now),
    ):
        return _skipped("reservations", listing_id)

    today = local_today(config.PROPERTY_TIMEZONE, now)
    start, end = date_window(today, config.INQUIRY_LOOKBACK_DAYS, config.AVAILABILITY_FUTURE_DAYS)

    def body(outcome: _Outcome) -> None:
        records = poll_reservations(client, listing_id, start, end)
        rows = map_inquiries(records, listing_id=listing_id, synced_at=utc_now())
        outcome.count = upsert_inquiries(engine, rows)
        outcome.details = {
            "fetched": len(records),
            "inquiries_count": sum(1 for r in rows if r["status"] == "inquiry"),
            "confirmed_count": sum(1 for r in rows if r["status"] in CONFIRMED_STATUSES),
        }
        records_synced.labels(listing_id=listing_id, entity_type="inquiries").inc(outcome.count)

    return _run_task("reservations", listing_id, body, {"mode": mode.value})


def sync_reservation(
    client: GuestyClient,
    engine: Engine,
    reservation_id: str,
    mode: SyncMode = SyncMode.FORCE,
    ttl_minutes: Optional[int] = None,
    now: Optional[datetime] = None,
) -> EntityResult:
    """
    Refresh one reservation (and its guest profile) from Guesty.

    Used when a single booking must be current before a document is issued
    for it. ``listing_id`` on the result is the reservation id until the
    payload has been fetched.
    """
    ttl = ttl_minutes if ttl_minutes is not None else config.CACHE_RESERVATION_TTL

    if mode is SyncMode.NORMAL and _is_fresh(
        engine,
        "reservation",
        reservation_id,
        lambda conn: is_reservation_stale(conn, reservation_id, ttl, now),
    ):
        return _skipped("reservation", reservation_id)

    def body(outcome: _Outcome) -> None:
        raw = poll_reservation(client, reservation_id)
        row = map_reservation(raw, synced_at=utc_now())
        outcome.count = upsert_reservations(engine, [row])
        outcome.details = {
            "reservation_id": reservation_id,
            "listing_id": row["listing_id"],
            "status": row["status"],
        }

    result = _run_task("reservation", reservation_id, body, {"reservation_id": reservation_id})
    result.listing_id = result.details.get("listing_id", reservation_id)
    return result
