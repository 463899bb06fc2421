import httpx
import pytest

from explorer.backend.client import RecommendationBackendClient
from explorer.errors import AllTiersFailedError, UnsupportedThemeError
from explorer.pricing.batch import BatchOrchestrator
from explorer.pricing.resolver import PriceResolver, estimate_price
from explorer.recommend.cascade import (
    DegradationCascade,
    DirectProviderTier,
    RemoteBackendTier,
    StaticCatalogTier,
    build_cascade,
    filters_applied,
    select_candidates,
)
from explorer.types import ThemeSearchRequest


class FailingProvider:
    def __init__(self):
        self.calls = 0

    async def explore_destinations(self, origin, max_flight_time_hours=None, departure_date=None, sort_by="PRICE"):
        self.calls += 1
        raise httpx.ConnectError("provider down")


class ListProvider:
    def __init__(self, offers):
        self.offers = offers

    async def explore_destinations(self, origin, max_flight_time_hours=None, departure_date=None, sort_by="PRICE"):
        return self.offers


class BrokenTier:
    def __init__(self, name="broken", error=None):
        self.name = name
        self.error = error or RuntimeError("tier down")
        self.attempts = 0

    async def attempt(self, request, catalog):
        self.attempts += 1
        raise self.error


def backend_500():
    def handler(request):
        return httpx.Response(500, json={"error": "boom"})
    return RecommendationBackendClient(base_url="http://backend.test", transport=httpx.MockTransport(handler))


def orchestrator_for(provider):
    return BatchOrchestrator(PriceResolver(provider), batch_size=5, inter_batch_delay_ms=0)


def adventure_request(**kw):
    return ThemeSearchRequest(origin="LHR", theme="adventure", **kw)


def test_select_candidates_applies_filters_in_order(catalog):
    req = adventure_request(max_flight_time_hours=3, price_range="luxury", countries=["is", "no"])
    cities = select_candidates(catalog, req)
    assert cities
    for c in cities:
        assert c.average_flight_time <= 3
        assert c.price_range == "luxury"
        assert c.country_code in ("IS", "NO")


def test_select_candidates_truncates_to_max_results(catalog):
    assert len(select_candidates(catalog, ThemeSearchRequest(origin="LHR", theme="party", max_results=7))) == 7
    assert len(select_candidates(catalog, ThemeSearchRequest(origin="LHR", theme="party"))) == 20


def test_filters_applied_labels():
    req = adventure_request(max_flight_time_hours=3.0, price_range="budget", countries=["ES", "PT"], max_results=5)
    assert filters_applied(req) == ["Flight time: 3h", "Budget: budget", "Countries: ES, PT", "Max results: 5"]
    assert filters_applied(adventure_request(price_range="any", max_flight_time_hours=2.5)) == ["Flight time: 2.5h"]


async def test_flight_time_scenario_excludes_long_haul(catalog):
    cascade = build_cascade(catalog, None, orchestrator_for(FailingProvider()), backend_enabled=False)
    response = await cascade.search(adventure_request(max_flight_time_hours=3))
    codes = {r.destination.iata_code for r in response.destinations}
    assert "KEF" in codes  # 3.0h, on the boundary
    assert "BKK" not in codes
    for rec in response.destinations:
        assert catalog.city_by_code(rec.destination.iata_code).average_flight_time <= 3


async def test_all_lookups_failing_yields_estimates_for_every_candidate(catalog):
    provider = FailingProvider()
    cascade = build_cascade(catalog, None, orchestrator_for(provider), backend_enabled=False)
    req = adventure_request(max_flight_time_hours=3)
    response = await cascade.search(req)

    candidates = select_candidates(catalog, req)
    assert response.total_results == len(response.destinations) == len(candidates)
    assert provider.calls == len(candidates)
    for rec in response.destinations:
        hours = catalog.city_by_code(rec.destination.iata_code).average_flight_time
        assert rec.price_quote.source == "estimated"
        assert rec.price_quote == estimate_price(rec.destination.iata_code, hours)


async def test_direct_tier_uses_live_prices_and_sorts(catalog):
    provider = ListProvider([
        {"destinationCode": "KEF", "price": {"currency": "EUR", "total": "45.00"}},
        {"destinationCode": "INN", "price": {"currency": "EUR", "total": "500.00"}},
    ])
    cascade = build_cascade(catalog, None, orchestrator_for(provider), backend_enabled=False)
    response = await cascade.search(adventure_request(max_flight_time_hours=3))
    first = response.destinations[0]
    assert first.destination.iata_code == "KEF"
    assert first.price_quote.source == "live"
    midpoints = [r.price_quote.midpoint for r in response.destinations]
    assert midpoints == sorted(midpoints)


async def test_backend_500_with_direct_disabled_equals_static_output(catalog):
    req = adventure_request(max_flight_time_hours=3)
    cascade = build_cascade(catalog, backend_500(), orchestrator_for(FailingProvider()),
                            backend_enabled=True, direct_provider_enabled=False)
    response = await cascade.search(req)

    static = await StaticCatalogTier().attempt(req.model_copy(update={"theme": "adventure"}), catalog)
    assert response.destinations
    assert response.destinations == static
    assert response.total_results == len(static)
    assert sum(s.city_count for s in response.country_summary) == len(static)


async def test_unsupported_theme_rejected_before_any_tier(catalog):
    tier = BrokenTier()
    cascade = DegradationCascade(catalog, [tier, StaticCatalogTier()])
    with pytest.raises(UnsupportedThemeError):
        await cascade.search(ThemeSearchRequest(origin="LHR", theme="skiing"))
    assert tier.attempts == 0


async def test_theme_is_normalised(catalog):
    cascade = DegradationCascade(catalog, [StaticCatalogTier()])
    response = await cascade.search(ThemeSearchRequest(origin="lhr", theme="Beach"))
    assert response.search_metadata.theme == "beach"
    assert response.search_metadata.origin == "LHR"


async def test_falls_through_in_order_and_no_retry(catalog):
    first, second = BrokenTier("one"), BrokenTier("two")
    cascade = DegradationCascade(catalog, [first, second, StaticCatalogTier()])
    response = await cascade.search(adventure_request())
    assert response.destinations
    assert first.attempts == 1 and second.attempts == 1


async def test_all_tiers_failing_raises(catalog):
    cascade = DegradationCascade(catalog, [BrokenTier("one"), BrokenTier("two")])
    with pytest.raises(AllTiersFailedError) as info:
        await cascade.search(adventure_request())
    assert set(info.value.failures) == {"one", "two"}


async def test_disabled_tiers_are_skipped(catalog):
    cascade = DegradationCascade(catalog, [
        RemoteBackendTier(None),
        DirectProviderTier(None),
        StaticCatalogTier(),
    ])
    response = await cascade.search(adventure_request(max_results=3))
    assert response.total_results == 3


async def test_response_metadata(catalog):
    cascade = DegradationCascade(catalog, [StaticCatalogTier()])
    response = await cascade.search(adventure_request(max_flight_time_hours=3, max_results=5))
    meta = response.search_metadata
    assert meta.theme == "adventure"
    assert meta.origin == "LHR"
    assert meta.processing_time_ms >= 0
    assert meta.searched_at.endswith("+00:00")
    assert meta.filters_applied == ["Flight time: 3h", "Max results: 5"]


async def test_country_helpers(catalog):
    cascade = DegradationCascade(catalog, [StaticCatalogTier()])
    countries = await cascade.countries_for_theme("learn", "LHR")
    assert countries
    recs = await cascade.destinations_for_country("it", "learn", "LHR")
    assert recs
    assert all(r.destination.country_code == "IT" for r in recs)
    assert len(recs) <= 10


def test_popular_destinations_use_mixed_scoring(catalog):
    cascade = DegradationCascade(catalog, [StaticCatalogTier()])
    recs = cascade.popular_destinations("LHR", limit=5)
    assert 0 < len(recs) <= 5
    for rec in recs:
        city = catalog.city_by_code(rec.destination.iata_code)
        assert rec.match_score == min(city.theme_scores.best() + 5, 98)
        assert rec.price_quote.source == "estimated"
        assert rec.reason_for_recommendation.startswith("Perfect destination: ")


async def test_non_finite_offer_only_degrades_its_own_quote(catalog):
    provider = ListProvider([
        {"destinationCode": "KEF", "price": {"currency": "EUR", "total": "Infinity"}},
        {"destinationCode": "INN", "price": {"currency": "EUR", "total": "88.00"}},
    ])
    cascade = DegradationCascade(catalog, [DirectProviderTier(orchestrator_for(provider))])
    response = await cascade.search(adventure_request(max_flight_time_hours=3))
    by_code = {r.destination.iata_code: r for r in response.destinations}

    assert by_code["INN"].price_quote.source == "live"
    assert by_code["INN"].estimated_flight_price == "€88"
    assert by_code["KEF"].price_quote == estimate_price("KEF", catalog.city_by_code("KEF").average_flight_time)
