import httpx
import time
from typing import Any, Dict, Optional

from explorer.catalog.themes import backend_activities_for
from explorer.config import settings
from explorer.obs.logger import log_event
from explorer.types import ThemeSearchRequest

EXPLORE_PATH = "/api/v1/explore/destinations"


class BackendResponseError(Exception):
    pass


class RecommendationBackendClient:
    """Client for the product's own recommendation backend (the richest tier)."""

    def __init__(self, base_url: str = settings.RECOMMENDATION_BACKEND_URL,
                 timeout_seconds: float = settings.BACKEND_TIMEOUT_SECONDS,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = base_url.rstrip("/")
        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            transport=transport,
            timeout=httpx.Timeout(timeout_seconds, connect=3.0),
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    def build_request_body(self, request: ThemeSearchRequest) -> Dict[str, Any]:
        max_results = request.max_results or settings.DEFAULT_MAX_RESULTS
        return {
            "origin_airport_code": request.origin,
            "preferred_activities": backend_activities_for(request.theme),
            "min_flight_duration_hours": 0,
            "max_flight_duration_hours": request.max_flight_time_hours or settings.DEFAULT_BACKEND_MAX_FLIGHT_HOURS,
            "budget_level": request.price_range or "any",
            "max_results": min(max_results, settings.MAX_DESTINATION_RESULTS),
            "include_visa_required": True,
        }

    async def explore_destinations(self, request: ThemeSearchRequest) -> Dict[str, Any]:
        body = self.build_request_body(request)
        start = time.monotonic()
        r = await self._http.post(EXPLORE_PATH, json=body, headers={"Accept": "application/json"})
        r.raise_for_status()
        try:
            data = r.json()
        except ValueError as e:
            raise BackendResponseError(f"Backend returned invalid JSON: {e}") from e
        if not isinstance(data, dict) or not isinstance(data.get("recommended_destinations"), list):
            raise BackendResponseError("Backend response missing recommended_destinations")
        log_event(
            "backend_explore",
            results=len(data["recommended_destinations"]),
            ms=round((time.monotonic() - start) * 1000.0, 2),
        )
        return data

    async def health_check(self) -> bool:
        r = await self._http.get("/health")
        return r.status_code == 200
