"""Three-tier degrading recommendation pipeline.

Tiers are plain strategy objects tried in order until one returns a result:

1. ``RemoteBackendTier``   - the product's recommendation backend
2. ``DirectProviderTier``  - catalog candidates priced live, heuristic on failure
3. ``StaticCatalogTier``   - catalog candidates with heuristic prices, no network

Adding or removing a tier is a change to the list passed to
``DegradationCascade``. Failover is strictly failure-driven and a new request
always starts again at the first tier. Which tier answered is logged and
counted but never exposed in the response.
"""

import time
from datetime import datetime, timezone
from typing import Dict, List, Optional, Protocol, Sequence

from explorer.backend.client import RecommendationBackendClient
from explorer.backend.transform import from_backend_destination
from explorer.catalog.theme_cities import ThemeCatalog
from explorer.catalog.themes import MIXED_THEME, is_theme_supported, normalize_theme
from explorer.config import settings
from explorer.errors import AllTiersFailedError, TierUnavailableError, UnsupportedThemeError
from explorer.obs.context import bind_search
from explorer.obs.logger import log_event
from explorer.obs.metrics import record_tier_outcome
from explorer.pricing.batch import BatchOrchestrator
from explorer.pricing.resolver import estimate_price
from explorer.recommend.assembler import assemble
from explorer.recommend.countries import summarize
from explorer.types import (
    CountrySummary,
    DestinationRecommendation,
    SearchMetadata,
    ThemeCityRecord,
    ThemeSearchRequest,
    ThemeSearchResponse,
)


class RecommendationTier(Protocol):
    name: str

    async def attempt(self, request: ThemeSearchRequest,
                      catalog: ThemeCatalog) -> List[DestinationRecommendation]:
        ...


def result_limit(request: ThemeSearchRequest) -> int:
    return min(request.max_results or settings.DEFAULT_MAX_RESULTS, settings.MAX_DESTINATION_RESULTS)


def select_candidates(catalog: ThemeCatalog, request: ThemeSearchRequest) -> List[ThemeCityRecord]:
    """Catalog cities for the theme after flight-time, budget and country filters."""
    cities = catalog.cities_for_theme(request.theme)
    if request.max_flight_time_hours:
        cities = [c for c in cities if c.average_flight_time <= request.max_flight_time_hours]
    if request.price_range and request.price_range != "any":
        cities = [c for c in cities if c.price_range == request.price_range]
    if request.countries:
        wanted = set(request.countries)
        cities = [c for c in cities if c.country_code.upper() in wanted]
    return cities[:result_limit(request)]


def filters_applied(request: ThemeSearchRequest) -> List[str]:
    filters = []
    if request.max_flight_time_hours:
        filters.append(f"Flight time: {_fmt_number(request.max_flight_time_hours)}h")
    if request.price_range and request.price_range != "any":
        filters.append(f"Budget: {request.price_range}")
    if request.countries:
        filters.append(f"Countries: {', '.join(request.countries)}")
    if request.max_results:
        filters.append(f"Max results: {request.max_results}")
    return filters


def _fmt_number(value: float) -> str:
    return f"{value:g}"


class RemoteBackendTier:
    name = "remote_backend"

    def __init__(self, client: Optional[RecommendationBackendClient], enabled: bool = True):
        self.client = client
        self.enabled = enabled

    async def attempt(self, request: ThemeSearchRequest,
                      catalog: ThemeCatalog) -> List[DestinationRecommendation]:
        if not self.enabled or self.client is None:
            raise TierUnavailableError("recommendation backend disabled")

        data = await self.client.explore_destinations(request)
        recs = []
        for raw in data["recommended_destinations"]:
            try:
                recs.append(from_backend_destination(raw, request.origin, request.theme))
            except (KeyError, TypeError, ValueError) as e:
                log_event("backend_record_skipped", level="WARNING", error=str(e)[:200])
        if request.countries:
            wanted = set(request.countries)
            recs = [r for r in recs if r.destination.country_code in wanted]
        return recs


class DirectProviderTier:
    name = "direct_provider"

    def __init__(self, orchestrator: Optional[BatchOrchestrator], enabled: bool = True):
        self.orchestrator = orchestrator
        self.enabled = enabled

    async def attempt(self, request: ThemeSearchRequest,
                      catalog: ThemeCatalog) -> List[DestinationRecommendation]:
        if not self.enabled or self.orchestrator is None:
            raise TierUnavailableError("direct pricing provider disabled")

        candidates = select_candidates(catalog, request)
        resolved = await self.orchestrator.resolve_all(candidates, request.origin)
        return assemble(resolved, request.theme, request.origin)


class StaticCatalogTier:
    name = "static_catalog"

    async def attempt(self, request: ThemeSearchRequest,
                      catalog: ThemeCatalog) -> List[DestinationRecommendation]:
        candidates = select_candidates(catalog, request)
        return static_recommendations(candidates, request.theme, request.origin)


def static_recommendations(cities: Sequence[ThemeCityRecord], theme: str,
                           origin: str) -> List[DestinationRecommendation]:
    resolved = [(c, estimate_price(c.iata_code, c.average_flight_time)) for c in cities]
    return assemble(resolved, theme, origin)


class DegradationCascade:
    def __init__(self, catalog: ThemeCatalog, tiers: Sequence[RecommendationTier]):
        if not tiers:
            raise ValueError("DegradationCascade needs at least one tier")
        self.catalog = catalog
        self.tiers = list(tiers)

    async def search(self, request: ThemeSearchRequest) -> ThemeSearchResponse:
        theme = normalize_theme(request.theme)
        if not is_theme_supported(theme):
            raise UnsupportedThemeError(request.theme)
        request = request.model_copy(update={"theme": theme})
        bind_search(request.origin, theme)

        start = time.monotonic()
        failures: Dict[str, str] = {}
        for tier in self.tiers:
            try:
                destinations = await tier.attempt(request, self.catalog)
            except UnsupportedThemeError:
                raise
            except Exception as e:
                failures[tier.name] = f"{type(e).__name__}: {e}"[:300]
                record_tier_outcome(tier.name, "failed")
                log_event("tier_failed", level="WARNING", tier=tier.name, reason=failures[tier.name])
                continue

            record_tier_outcome(tier.name, "success")
            elapsed_ms = int((time.monotonic() - start) * 1000)
            log_event("tier_succeeded", tier=tier.name, results=len(destinations), ms=elapsed_ms)
            return ThemeSearchResponse(
                destinations=destinations,
                total_results=len(destinations),
                country_summary=summarize(destinations),
                search_metadata=SearchMetadata(
                    theme=theme,
                    origin=request.origin,
                    searched_at=datetime.now(timezone.utc).isoformat(),
                    processing_time_ms=elapsed_ms,
                    filters_applied=filters_applied(request),
                ),
            )

        log_event("all_tiers_failed", level="ERROR", failures=failures)
        raise AllTiersFailedError(failures)

    async def countries_for_theme(self, theme: str, origin: str) -> List[CountrySummary]:
        response = await self.search(ThemeSearchRequest(origin=origin, theme=theme, max_results=50))
        return response.country_summary

    async def destinations_for_country(self, country_code: str, theme: str,
                                       origin: str) -> List[DestinationRecommendation]:
        response = await self.search(ThemeSearchRequest(
            origin=origin, theme=theme, countries=[country_code], max_results=10,
        ))
        return response.destinations

    def popular_destinations(self, origin: str, limit: int = 10) -> List[DestinationRecommendation]:
        return static_recommendations(self.catalog.popular_cities(limit), MIXED_THEME, origin)


def build_cascade(catalog: ThemeCatalog,
                  backend_client: Optional[RecommendationBackendClient],
                  orchestrator: Optional[BatchOrchestrator],
                  backend_enabled: bool = settings.BACKEND_ENABLED,
                  direct_provider_enabled: bool = settings.DIRECT_PROVIDER_ENABLED) -> DegradationCascade:
    return DegradationCascade(catalog, [
        RemoteBackendTier(backend_client, enabled=backend_enabled),
        DirectProviderTier(orchestrator, enabled=direct_provider_enabled),
        StaticCatalogTier(),
    ])
