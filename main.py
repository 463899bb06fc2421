from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Request, Query
from fastapi.responses import JSONResponse
from dotenv import load_dotenv

from explorer.config import settings
from explorer.amadeus.client import AmadeusClient
from explorer.backend.client import RecommendationBackendClient
from explorer.catalog.theme_cities import ThemeCatalog
from explorer.catalog.themes import THEME_DEFINITIONS, is_theme_supported, normalize_theme
from explorer.errors import AllTiersFailedError, UnsupportedThemeError
from explorer.infrastructure.resilience import CircuitBreaker, HealthChecker, ProductionMiddleware
from explorer.obs.logger import log_event
from explorer.obs.metrics import get_metrics_snapshot
from explorer.obs.middleware import ObservabilityMiddleware
from explorer.pricing.batch import BatchOrchestrator
from explorer.pricing.resolver import PriceResolver
from explorer.recommend.cascade import build_cascade
from explorer.types import ThemeSearchRequest, ThemeSearchResponse

load_dotenv()

PRICING_BREAKER = "amadeus_api"


@asynccontextmanager
async def lifespan(app: FastAPI):
    log_event("startup", service="theme-destination-explorer", env=settings.APP_ENV)

    app.state.catalog = ThemeCatalog.from_json(settings.THEME_CITIES_PATH)
    app.state.backend = RecommendationBackendClient() if settings.BACKEND_ENABLED else None
    app.state.amadeus = AmadeusClient() if settings.amadeus_configured else None
    app.state.amadeus_breaker = CircuitBreaker(
        name=PRICING_BREAKER,
        failure_threshold=settings.PROVIDER_FAILURE_THRESHOLD,
        recovery_timeout=settings.PROVIDER_RECOVERY_SECONDS,
    )

    orchestrator = None
    if app.state.amadeus is not None:
        resolver = PriceResolver(app.state.amadeus, breaker=app.state.amadeus_breaker)
        orchestrator = BatchOrchestrator(resolver)
    else:
        log_event("direct_provider_unconfigured", level="WARNING")

    app.state.cascade = build_cascade(app.state.catalog, app.state.backend, orchestrator)
    log_event("catalog_loaded", cities=len(app.state.catalog))

    yield

    for client in (app.state.backend, app.state.amadeus):
        if client is not None:
            await client.aclose()
    log_event("shutdown", service="theme-destination-explorer")


api = FastAPI(
    title="Theme Destination Explorer",
    version="1.0.0",
    lifespan=lifespan
)


def _require_theme(theme: str) -> str:
    key = normalize_theme(theme)
    if not is_theme_supported(key):
        raise HTTPException(status_code=404, detail=f"Unknown theme: {theme}")
    return key


@api.get("/")
async def root():
    return {
        "service": "Theme Destination Explorer",
        "version": "1.0.0",
        "status": "running",
        "themes": list(THEME_DEFINITIONS),
    }


@api.get("/health")
async def health():
    return {"status": "healthy", "service": "theme-destination-explorer"}


@api.get("/health/detailed")
async def detailed_health(request: Request):
    health_checker = HealthChecker()

    def check_catalog():
        return len(request.app.state.catalog) > 0

    async def check_backend():
        backend = request.app.state.backend
        return backend is None or await backend.health_check()

    def check_amadeus():
        return request.app.state.amadeus_breaker.state.value != "open"

    health_checker.register_check("catalog", check_catalog)
    health_checker.register_check("recommendation_backend", check_backend)
    health_checker.register_check("amadeus", check_amadeus)

    results = await health_checker.run_checks()
    # Degraded tiers still serve results, so only a missing catalog is fatal
    status_code = 200 if results["checks"]["catalog"]["status"] == "healthy" else 503
    return JSONResponse(results, status_code=status_code)


@api.get("/metrics")
async def metrics(request: Request):
    breaker = getattr(request.app.state, "amadeus_breaker", None)
    snapshot = get_metrics_snapshot()
    snapshot["circuit_breaker"] = breaker.get_state() if breaker else None
    return snapshot


@api.post("/api/themes/destinations", response_model=ThemeSearchResponse)
async def search_destinations(request: Request, body: ThemeSearchRequest):
    try:
        return await request.app.state.cascade.search(body)
    except UnsupportedThemeError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except AllTiersFailedError as e:
        raise HTTPException(status_code=503, detail="Unable to load destination data") from e


@api.get("/api/themes")
async def list_themes(request: Request):
    themes = request.app.state.catalog.available_themes()
    return [{"id": key, **THEME_DEFINITIONS[key]} for key in themes]


@api.get("/api/themes/{theme}/cities")
async def theme_cities(request: Request, theme: str, min_score: int = Query(60, ge=0, le=100),
                       limit: Optional[int] = Query(None, ge=1)):
    key = _require_theme(theme)
    cities = request.app.state.catalog.cities_for_theme(key, min_score)
    if limit is not None:
        cities = cities[:limit]
    return [c.model_dump(by_alias=True) for c in cities]


@api.get("/api/themes/{theme}/countries")
async def theme_countries(request: Request, theme: str, origin: str = Query(..., min_length=3, max_length=3)):
    key = _require_theme(theme)
    try:
        summaries = await request.app.state.cascade.countries_for_theme(key, origin)
    except AllTiersFailedError as e:
        raise HTTPException(status_code=503, detail="Unable to load destination data") from e
    return [s.model_dump(by_alias=True) for s in summaries]


@api.get("/api/themes/{theme}/countries/{country_code}/destinations")
async def theme_country_destinations(request: Request, theme: str, country_code: str,
                                     origin: str = Query(..., min_length=3, max_length=3)):
    key = _require_theme(theme)
    try:
        recs = await request.app.state.cascade.destinations_for_country(country_code, key, origin)
    except AllTiersFailedError as e:
        raise HTTPException(status_code=503, detail="Unable to load destination data") from e
    return [r.model_dump(by_alias=True) for r in recs]


@api.get("/api/cities")
async def cities_by_themes(request: Request, themes: str = Query(..., description="Comma-separated theme ids"),
                           min_score: int = Query(50, ge=0, le=100)):
    wanted = [t for t in (part.strip() for part in themes.split(",")) if t]
    unknown = [t for t in wanted if not is_theme_supported(t)]
    if not wanted or unknown:
        raise HTTPException(status_code=400, detail=f"Unsupported themes: {', '.join(unknown) or themes}")
    cities = request.app.state.catalog.cities_by_multiple_themes(wanted, min_score)
    return [c.model_dump(by_alias=True) for c in cities]


@api.get("/api/cities/{iata_code}")
async def city_detail(request: Request, iata_code: str):
    catalog = request.app.state.catalog
    city = catalog.city_by_code(iata_code)
    if city is None:
        raise HTTPException(status_code=404, detail=f"Unknown city: {iata_code}")
    return {**city.model_dump(by_alias=True), "themes": catalog.themes_for_city(iata_code)}


@api.get("/api/catalog/statistics")
async def catalog_statistics(request: Request):
    return request.app.state.catalog.statistics().model_dump(by_alias=True)


@api.get("/api/destinations/popular")
async def popular_destinations(request: Request, origin: str = Query(..., min_length=3, max_length=3),
                               limit: int = Query(10, ge=1, le=50)):
    recs = request.app.state.cascade.popular_destinations(origin, limit)
    return [r.model_dump(by_alias=True) for r in recs]


@api.post("/admin/circuit/{name}/reset")
async def reset_circuit_breaker(request: Request, name: str):
    """Admin endpoint to manually reset a circuit breaker"""
    if name == PRICING_BREAKER:
        request.app.state.amadeus_breaker.reset()
        log_event("circuit_reset", breaker=name)
        return {"status": "reset", "breaker": name}
    raise HTTPException(status_code=404, detail="Unknown circuit breaker")


# Apply middleware
app = ObservabilityMiddleware(api)

redis_client = None
if settings.REDIS_URL:
    import redis
    redis_client = redis.from_url(settings.REDIS_URL)
app = ProductionMiddleware(app, redis_client, max_requests_per_minute=settings.RATE_LIMIT_PER_MINUTE)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8001,
        reload=settings.APP_ENV == "dev",
        log_level="info"
    )
