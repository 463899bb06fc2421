import math
from typing import List, Dict, Any, Optional


def _to_amount(value) -> Optional[float]:
    try:
        amount = float(value)
    except (TypeError, ValueError):
        return None
    return amount if math.isfinite(amount) and amount >= 0 else None


def from_flight_destinations(json_obj: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Normalise an Amadeus flight-destinations payload.

    Returns ``[{"destinationCode": "BCN", "price": {"currency": "EUR", "total": "123.40"}}]``.
    Raises ``ValueError`` when the payload is not the expected envelope.
    """
    if not isinstance(json_obj, dict) or not isinstance(json_obj.get("data", []), list):
        raise ValueError("Malformed flight-destinations payload")
    currency = ((json_obj.get("meta") or {}).get("currency") or "EUR").upper()
    items = []
    for d in json_obj.get("data", []):
        if not isinstance(d, dict):
            continue
        code = d.get("destination")
        price = d.get("price") or {}
        if not code or "total" not in price:
            continue
        items.append({
            "destinationCode": str(code).upper(),
            "price": {"currency": price.get("currency", currency), "total": price["total"]},
        })
    return items


def cheapest_offer(offers: List[Dict[str, Any]], destination: str) -> Optional[Dict[str, Any]]:
    """Lowest-priced offer for ``destination``, skipping entries that don't parse."""
    wanted = destination.upper()
    best = None
    best_amount = None
    for offer in offers or []:
        if not isinstance(offer, dict):
            continue
        if str(offer.get("destinationCode", "")).upper() != wanted:
            continue
        price = offer.get("price") or {}
        amount = _to_amount(price.get("total"))
        if amount is None:
            continue
        if best_amount is None or amount < best_amount:
            best_amount = amount
            best = {"currency": (price.get("currency") or "EUR").upper(), "total": amount}
    return best
