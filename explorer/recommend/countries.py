from typing import Dict, List

from explorer.types import CountrySummary, DestinationRecommendation, format_amount_range

TOP_CITIES_LIMIT = 3


def summarize(recommendations: List[DestinationRecommendation]) -> List[CountrySummary]:
    """Group recommendations by country code, in first-seen order."""
    groups: Dict[str, List[DestinationRecommendation]] = {}
    for rec in recommendations:
        groups.setdefault(rec.destination.country_code, []).append(rec)

    summaries = []
    for code, members in groups.items():
        midpoints = [m.price_quote.midpoint for m in members]
        currency = members[0].price_quote.currency
        summaries.append(CountrySummary(
            country_code=code,
            country_name=members[0].destination.country_name,
            city_count=len(members),
            average_score=sum(m.match_score for m in members) / len(members),
            price_range=format_amount_range(min(midpoints), max(midpoints), currency),
            top_cities=[m.destination.city_name for m in members[:TOP_CITIES_LIMIT]],
        ))
    return summaries
