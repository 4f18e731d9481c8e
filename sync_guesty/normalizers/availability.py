"""Map Guesty calendar days to local availability rows."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from sync_guesty.errors import ValidationError
from sync_guesty.utils.datetime import utc_now

BLOCK_FLAGS = (("b", "reservation"), ("o", "owner"), ("m", "manual"))


def map_status(day: Dict[str, Any]) -> str:
    """
    Derive available / blocked / booked for one calendar day.

    Multi-unit listings report an ``allotment``; when present it wins over
    ``status``. An unavailable day is booked when the reservation block flag
    is set, otherwise blocked.
    """
    allotment = day.get("allotment")
    if isinstance(allotment, (int, float)) and not isinstance(allotment, bool):
        is_available = allotment > 0
    else:
        is_available = day.get("status") == "available"

    if is_available:
        return "available"
    if (day.get("blocks") or {}).get("b"):
        return "booked"
    return "blocked"


def get_block_type(blocks: Optional[Dict[str, Any]]) -> Optional[str]:
    if not blocks:
        return None
    for flag, block_type in BLOCK_FLAGS:
        if blocks.get(flag):
            return block_type
    return None


def get_block_ref(block_refs: Optional[List[Dict[str, Any]]]) -> Optional[str]:
    """
    Return the id of the first block on the day.

    Reservation blocks carry the reservation id, which is what consumers join
    on; other blocks only have their own ``_id``.
    """
    if not block_refs:
        return None
    first = block_refs[0]
    return first.get("reservationId") or first.get("_id")


def map_day(
    day: Dict[str, Any],
    listing_id: Optional[str] = None,
    synced_at: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Map one calendar day to an ``availability`` row.

    Args:
        day: Raw day from the calendar endpoint
        listing_id: Fallback listing id when the day omits ``listingId``
        synced_at: Timestamp to store as last_synced_at

    Raises:
        ValidationError: If the day has no date or no listing id
    """
    date = day.get("date")
    owner = day.get("listingId") or listing_id
    if not date or not owner:
        raise ValidationError("Calendar day missing date or listingId", details={"day": day})

    return {
        "listing_id": owner,
        "date": str(date)[:10],
        "status": map_status(day),
        "price": day.get("price"),
        "min_nights": day.get("minNights"),
        "closed_to_arrival": bool(day.get("cta", False)),
        "closed_to_departure": bool(day.get("ctd", False)),
        "block_type": get_block_type(day.get("blocks")),
        "block_ref": get_block_ref(day.get("blockRefs")),
        "last_synced_at": synced_at or utc_now(),
    }


def map_days(
    days: List[Dict[str, Any]],
    listing_id: Optional[str] = None,
    synced_at: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    """Map a calendar response; all rows share one sync timestamp."""
    stamp = synced_at or utc_now()
    return [map_day(day, listing_id=listing_id, synced_at=stamp) for day in days]
