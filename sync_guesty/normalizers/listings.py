"""Map Guesty listing payloads to local listing rows."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from sync_guesty.errors import ValidationError
from sync_guesty.utils.datetime import utc_now


def map_tax(raw_tax: Dict[str, Any]) -> Dict[str, Any]:
    """Map one Guesty tax rule, keeping its position in the listing's tax list."""
    return {
        "id": raw_tax.get("_id"),
        "type": raw_tax.get("type"),
        "amount": raw_tax.get("amount"),
        "units": raw_tax.get("units"),
        "quantifier": raw_tax.get("quantifier"),
        "applied_to_all_fees": bool(raw_tax.get("appliedToAllFees", False)),
        "applied_on_fees": list(raw_tax.get("appliedOnFees") or []),
    }


def map_listing(raw: Dict[str, Any], synced_at: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Map a Guesty listing to a full ``listings`` row.

    Pure: the only input besides the payload is the sync timestamp, which
    defaults to now. A listing is only active when Guesty reports it both
    ``active`` and ``listed``.

    Args:
        raw: Listing payload from GET /listings/{id}
        synced_at: Timestamp to store as last_synced_at

    Returns:
        Dict[str, Any]: Row for the listings table

    Raises:
        ValidationError: If id, title or the pricing block is missing
    """
    listing_id = raw.get("_id")
    prices = raw.get("prices")
    if not listing_id or not raw.get("title"):
        raise ValidationError("Listing payload missing _id or title", details={"id": listing_id})
    if not isinstance(prices, dict) or prices.get("basePrice") is None or not prices.get("currency"):
        raise ValidationError(
            "Listing payload missing prices.basePrice or prices.currency",
            details={"id": listing_id},
        )

    terms = raw.get("terms") or {}
    taxes: List[Dict[str, Any]] = [map_tax(t) for t in raw.get("taxes") or []]
    active = bool(raw.get("active", True)) and bool(raw.get("listed", True))

    return {
        "id": listing_id,
        "title": raw["title"],
        "accommodates": raw.get("accommodates"),
        "bedrooms": raw.get("bedrooms"),
        "bathrooms": raw.get("bathrooms"),
        "property_type": raw.get("propertyType"),
        "timezone": raw.get("timezone"),
        # Pricing
        "currency": prices["currency"],
        "base_price": float(prices["basePrice"]),
        "weekend_base_price": prices.get("weekendBasePrice"),
        "cleaning_fee": prices.get("cleaningFee") or 0,
        "extra_person_fee": prices.get("extraPersonFee") or 0,
        "guests_included": prices.get("guestsIncludedInRegularFee") or 1,
        "weekly_price_factor": prices.get("weeklyPriceFactor") or 1.0,
        "monthly_price_factor": prices.get("monthlyPriceFactor") or 1.0,
        "taxes": taxes,
        # Terms
        "min_nights": terms.get("minNights") or 1,
        "max_nights": terms.get("maxNights"),
        "check_in_time": terms.get("checkInTime"),
        "check_out_time": terms.get("checkOutTime"),
        "active": active,
        "last_synced_at": synced_at or utc_now(),
    }
