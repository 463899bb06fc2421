import math
import re
from typing import Any, Dict, List, Optional

from explorer.catalog.themes import BACKEND_ACTIVITY_THEMES, activity_matches_for
from explorer.pricing.resolver import estimate_price
from explorer.types import (
    CURRENCY_SYMBOLS,
    DestinationInfo,
    DestinationRecommendation,
    FlightRouteSummary,
    PriceQuote,
    ThemeScores,
)

_SYMBOL_CURRENCIES = {symbol: code for code, symbol in CURRENCY_SYMBOLS.items()}
_AMOUNT = re.compile(r"\d+(?:[.,]\d+)?")
_THOUSANDS = re.compile(r"(?<=\d),(?=\d{3}\b)")


def categorize_budget_level(level: Optional[str]) -> str:
    level = (level or "").lower()
    if level in ("budget", "low"):
        return "budget"
    if level in ("luxury", "high"):
        return "luxury"
    return "mid-range"


def parse_price(text: Optional[str], destination: str) -> Optional[PriceQuote]:
    """Parse display strings such as ``€206.1``, ``€150-300`` or ``USD 250``."""
    if not text:
        return None
    cleaned = _THOUSANDS.sub("", text)
    amounts = [float(a.replace(",", ".")) for a in _AMOUNT.findall(cleaned)]
    amounts = [a for a in amounts if math.isfinite(a)]
    if not amounts:
        return None
    currency = "EUR"
    for symbol, code in _SYMBOL_CURRENCIES.items():
        if symbol in text:
            currency = code
            break
    else:
        match = re.search(r"\b([A-Z]{3})\b", text)
        if match:
            currency = match.group(1)
    low, high = amounts[0], amounts[1] if len(amounts) > 1 else amounts[0]
    return PriceQuote(
        destination_code=destination.upper(),
        currency=currency,
        amount_low=min(low, high),
        amount_high=max(low, high),
        source="live",
    )


def theme_scores_from_activities(activities: List[Dict[str, Any]]) -> ThemeScores:
    scores = {"party": 0, "adventure": 0, "learn": 0, "shopping": 0, "beach": 0}
    for activity in activities or []:
        theme = BACKEND_ACTIVITY_THEMES.get(str(activity.get("type", "")).lower())
        if theme is None:
            continue
        score = max(0, min(int(activity.get("score") or 0), 100))
        scores[theme] = max(scores[theme], score)
    return ThemeScores(**scores)


def highlights_from_activities(activities: List[Dict[str, Any]]) -> List[str]:
    return [
        a.get("description") or f"Great {a.get('type', 'activities')}"
        for a in (activities or [])[:3]
    ]


def from_backend_destination(raw: Dict[str, Any], origin: str, theme: str) -> DestinationRecommendation:
    """Map one backend ``DestinationRecommendation`` into the explorer's shape.

    Raises ``KeyError``/``ValueError`` on records missing identity fields.
    """
    dest = raw["destination"]
    route = raw.get("flight_route") or {}
    code = str(dest.get("airport_code") or dest["id"]).upper()
    activities = dest.get("activities") or []
    total_minutes = int(route.get("total_duration_minutes") or 0)

    quote = parse_price(raw.get("estimated_flight_price"), code)
    if quote is None:
        quote = estimate_price(code, total_minutes / 60.0)

    return DestinationRecommendation(
        destination=DestinationInfo(
            iata_code=code,
            city_name=dest["city_name"],
            country_name=dest.get("country_name") or "Unknown",
            country_code=(dest.get("country_code") or "XX").upper(),
            description=dest.get("description") or "",
            highlights=highlights_from_activities(activities),
            best_months=list(dest.get("best_time_to_visit") or []),
            price_tier=categorize_budget_level((dest.get("budget") or {}).get("level")),
            theme_scores=theme_scores_from_activities(activities),
        ),
        flight_route=FlightRouteSummary(
            origin=(route.get("origin_airport_code") or origin).upper(),
            destination=code,
            duration_hours=total_minutes // 60,
            duration_minutes=total_minutes % 60,
            total_duration_minutes=total_minutes,
        ),
        match_score=max(0, min(int(round(float(raw.get("match_score") or 0))), 100)),
        activity_matches=list(raw.get("activity_matches") or activity_matches_for(theme)),
        reason_for_recommendation=raw.get("reason_for_recommendation") or f"Perfect {theme} destination",
        estimated_flight_price=quote.display,
        price_quote=quote,
    )
