"""
Map Guesty reservation payloads to local rows.

Two sources feed this module: reservations embedded in calendar days
(``blockRefs[].reservation``), which become ``reservations`` rows, and the
/reservations search, whose records of every status become ``inquiries`` rows.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

import structlog

from sync_guesty.errors import ValidationError
from sync_guesty.utils.datetime import to_date_str, utc_now

logger = structlog.get_logger(__name__)


def _guest_name(raw: Dict[str, Any], guest: Optional[Dict[str, Any]] = None) -> Optional[str]:
    source = guest or raw.get("guest") or {}
    full_name = source.get("fullName")
    if full_name:
        return str(full_name)
    parts = [source.get("firstName"), source.get("lastName")]
    joined = " ".join(p for p in parts if p)
    return joined or None


def map_reservation(
    raw: Dict[str, Any],
    synced_at: Optional[datetime] = None,
    listing_id: Optional[str] = None,
    guest: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Map one Guesty reservation to a ``reservations`` row.

    Localized dates fall back to the date part of the raw timestamps so that
    window queries always have something to compare against.

    Args:
        raw: Reservation object (embedded calendar block or GET /reservations/{id})
        synced_at: Timestamp to store as last_synced_at
        listing_id: Fallback when the payload omits listingId
        guest: Optional guest profile from GET /guests/{id}

    Raises:
        ValidationError: If id, listing, status or stay dates are missing
    """
    reservation_id = raw.get("_id")
    owner = raw.get("listingId") or listing_id
    check_in = raw.get("checkIn")
    check_out = raw.get("checkOut")
    status = raw.get("status")
    if not reservation_id or not owner or not check_in or not check_out or not status:
        raise ValidationError(
            "Reservation payload missing required fields",
            details={"id": reservation_id},
        )

    party = raw.get("numberOfGuests") or {}
    money = raw.get("money") or {}
    integration = raw.get("integration") or {}

    return {
        "reservation_id": reservation_id,
        "listing_id": owner,
        # Dates
        "check_in": check_in,
        "check_out": check_out,
        "check_in_localized": raw.get("checkInDateLocalized") or to_date_str(check_in),
        "check_out_localized": raw.get("checkOutDateLocalized") or to_date_str(check_out),
        "nights_count": raw.get("nightsCount") or 0,
        # Guest
        "guest_id": raw.get("guestId") or (guest or {}).get("_id"),
        "guest_name": _guest_name(raw, guest),
        "guests_count": raw.get("guestsCount"),
        "adults_count": party.get("numberOfAdults"),
        "children_count": party.get("numberOfChildren"),
        "infants_count": party.get("numberOfInfants"),
        # Booking
        "status": status,
        "confirmation_code": raw.get("confirmationCode"),
        "source": raw.get("source"),
        "platform": integration.get("platform"),
        "planned_arrival": raw.get("plannedArrival"),
        "planned_departure": raw.get("plannedDeparture"),
        # Money
        "currency": money.get("currency"),
        "total_price": money.get("fareAccommodationAdjusted"),
        "host_payout": money.get("hostPayout"),
        "balance_due": money.get("balanceDue"),
        "total_paid": money.get("totalPaid"),
        # Metadata
        "created_at_guesty": raw.get("createdAt"),
        "reserved_at": raw.get("reservedAt"),
        "last_synced_at": synced_at or utc_now(),
    }


def extract_reservations_from_calendar(
    days: List[Dict[str, Any]],
    listing_id: Optional[str] = None,
    synced_at: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    """
    Collect the distinct reservations embedded in a calendar response.

    A stay spans several days and appears on each of them; rows are
    de-duplicated by reservation id, keeping the last occurrence. Embedded
    reservations that fail validation are skipped with a warning.

    Returns:
        List[Dict[str, Any]]: One row per reservation id
    """
    stamp = synced_at or utc_now()
    found: Dict[str, Dict[str, Any]] = {}

    for day in days:
        for ref in day.get("blockRefs") or []:
            embedded = ref.get("reservation")
            if not embedded:
                continue
            try:
                row = map_reservation(embedded, synced_at=stamp, listing_id=listing_id)
            except ValidationError as e:
                logger.warning(
                    "calendar_reservation_skipped",
                    date=day.get("date"),
                    reservation_id=embedded.get("_id"),
                    error=e.message,
                )
                continue
            found[row["reservation_id"]] = row

    return list(found.values())


def map_inquiry(
    raw: Dict[str, Any],
    synced_at: Optional[datetime] = None,
    listing_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Map one /reservations search result (any status) to an ``inquiries`` row.

    Raises:
        ValidationError: If id, listing, status or stay dates are missing
    """
    inquiry_id = raw.get("_id")
    owner = raw.get("listingId") or listing_id
    status = raw.get("status")
    check_in = raw.get("checkInDateLocalized") or to_date_str(raw.get("checkIn"))
    check_out = raw.get("checkOutDateLocalized") or to_date_str(raw.get("checkOut"))
    if not inquiry_id or not owner or not status or not check_in or not check_out:
        raise ValidationError("Inquiry payload missing required fields", details={"id": inquiry_id})

    return {
        "inquiry_id": inquiry_id,
        "listing_id": owner,
        "status": status,
        "check_in": check_in,
        "check_out": check_out,
        "guest_name": _guest_name(raw) or "Unknown",
        "guests_count": raw.get("guestsCount") or 0,
        "source": raw.get("source"),
        "created_at_guesty": raw.get("createdAt"),
        "last_synced_at": synced_at or utc_now(),
    }


def map_inquiries(
    records: List[Dict[str, Any]],
    listing_id: Optional[str] = None,
    synced_at: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    """Map search results, skipping (and logging) records missing required fields."""
    stamp = synced_at or utc_now()
    rows: Dict[str, Dict[str, Any]] = {}
    for record in records:
        try:
            row = map_inquiry(record, synced_at=stamp, listing_id=listing_id)
        except ValidationError:
            logger.debug("inquiry_skipped", inquiry_id=record.get("_id"))
            continue
        rows[row["inquiry_id"]] = row
    return list(rows.values())
