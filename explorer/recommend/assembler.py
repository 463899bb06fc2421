from typing import Iterable, List, Tuple

from explorer.catalog.themes import MIXED_THEME, activity_matches_for, normalize_theme, is_theme_supported
from explorer.types import (
    DestinationInfo,
    DestinationRecommendation,
    FlightRouteSummary,
    PriceQuote,
    ThemeCityRecord,
)

# Tunable ranking constants; the cap keeps the top of the scale free for
# results carrying extra signal.
MATCH_SCORE_BONUS = 5
MATCH_SCORE_CAP = 98


def match_score(city: ThemeCityRecord, theme: str) -> int:
    key = normalize_theme(theme)
    if key == MIXED_THEME or not is_theme_supported(key):
        base = city.theme_scores.best()
    else:
        base = city.theme_scores.score_for(key)
    return max(0, min(base + MATCH_SCORE_BONUS, MATCH_SCORE_CAP, 100))


def flight_route(origin: str, city: ThemeCityRecord) -> FlightRouteSummary:
    total_minutes = int(round(city.average_flight_time * 60))
    return FlightRouteSummary(
        origin=origin.upper(),
        destination=city.iata_code,
        duration_hours=total_minutes // 60,
        duration_minutes=total_minutes % 60,
        total_duration_minutes=total_minutes,
    )


def recommendation_reason(city: ThemeCityRecord, theme: str) -> str:
    key = normalize_theme(theme)
    label = "destination" if key == MIXED_THEME else f"{key} destination"
    highlight = city.highlights[0] if city.highlights else (city.description or city.city_name)
    return f"Perfect {label}: {highlight}"


def build_recommendation(city: ThemeCityRecord, quote: PriceQuote, theme: str,
                         origin: str) -> DestinationRecommendation:
    return DestinationRecommendation(
        destination=DestinationInfo(
            iata_code=city.iata_code,
            city_name=city.city_name,
            country_name=city.country_name,
            country_code=city.country_code,
            description=city.description or f"{city.city_name} - {', '.join(city.highlights)}",
            highlights=list(city.highlights),
            best_months=list(city.best_months),
            price_tier=city.price_range,
            theme_scores=city.theme_scores,
        ),
        flight_route=flight_route(origin, city),
        match_score=match_score(city, theme),
        activity_matches=activity_matches_for(theme),
        reason_for_recommendation=recommendation_reason(city, theme),
        estimated_flight_price=quote.display,
        price_quote=quote,
    )


def sort_recommendations(recs: Iterable[DestinationRecommendation]) -> List[DestinationRecommendation]:
    """Cheapest first by price midpoint; equal prices go to the better match."""
    return sorted(recs, key=lambda r: (r.price_quote.midpoint, -r.match_score))


def assemble(resolved_pairs: Iterable[Tuple[ThemeCityRecord, PriceQuote]], theme: str,
             origin: str) -> List[DestinationRecommendation]:
    return sort_recommendations(
        build_recommendation(city, quote, theme, origin) for city, quote in resolved_pairs
    )
