import asyncio
import time

import httpx
from typing import Dict, Any, List, Optional

from explorer.amadeus.transform import from_flight_destinations
from explorer.config import settings
from explorer.obs.logger import log_event

BASE = "https://test.api.amadeus.com" if settings.AMADEUS_ENV != "production" \
       else "https://api.amadeus.com"

VIEW_BY = {"PRICE", "DATE", "DESTINATION", "DURATION", "WEEK", "COUNTRY"}


class AmadeusClient:
    """Async adapter for the Amadeus flight inspiration search.

    Implements the pricing provider contract used by ``PriceResolver``:
    ``explore_destinations`` returns ``[{"destinationCode", "price": {...}}]``.
    """

    def __init__(self, client_id: Optional[str] = None, client_secret: Optional[str] = None,
                 base_url: str = BASE, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._client_id = client_id if client_id is not None else settings.AMADEUS_CLIENT_ID
        self._client_secret = client_secret if client_secret is not None else settings.AMADEUS_CLIENT_SECRET
        self._token = None
        self._exp = 0
        # one refresh at a time; concurrent lookups wait for the shared token
        self._token_lock = asyncio.Lock()
        # Persistent HTTP client with HTTP/2 and sensible timeouts
        self._http = httpx.AsyncClient(
            base_url=base_url,
            http2=transport is None,
            transport=transport,
            timeout=httpx.Timeout(connect=3.0, read=12.0, write=12.0, pool=12.0),
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _get_token(self) -> str:
        if self._token_valid():
            return self._token
        async with self._token_lock:
            if self._token_valid():
                return self._token
            return await self._refresh_token()

    def _token_valid(self) -> bool:
        return bool(self._token) and time.time() < self._exp - 60

    async def _refresh_token(self) -> str:
        data = {
            "grant_type": "client_credentials",
            "client_id": self._client_id,
            "client_secret": self._client_secret,
        }
        r = await self._http.post(
            "/v1/security/oauth2/token",
            data=data,
            headers={"Accept": "application/json"},
        )
        r.raise_for_status()
        j = r.json()
        self._token = j["access_token"]
        self._exp = time.time() + j.get("expires_in", 1799)
        log_event("amadeus_token_refreshed", expires_in=j.get("expires_in", 1799))
        return self._token

    def _build_params(self, origin: str, departure_date: Optional[str], sort_by: str) -> Dict[str, Any]:
        view_by = sort_by.upper() if sort_by and sort_by.upper() in VIEW_BY else "PRICE"
        params: Dict[str, Any] = {"origin": origin.upper(), "viewBy": view_by}
        if departure_date:
            params["departureDate"] = departure_date
        return params

    async def explore_destinations(self, origin: str, max_flight_time_hours: Optional[float] = None,
                                   departure_date: Optional[str] = None,
                                   sort_by: str = "PRICE") -> List[Dict[str, Any]]:
        # The inspiration endpoint has no flight-time filter; the ceiling is
        # part of the provider contract but cannot be forwarded.
        token = await self._get_token()
        params = self._build_params(origin, departure_date, sort_by)
        start = time.monotonic()
        r = await self._http.get(
            "/v1/shopping/flight-destinations",
            params=params,
            headers={"Authorization": f"Bearer {token}", "Accept": "application/json"},
        )
        if r.status_code != 200:
            log_event(
                "amadeus_error_response",
                level="WARNING",
                status=r.status_code,
                body=r.text[:500],
            )
        r.raise_for_status()
        offers = from_flight_destinations(r.json())
        log_event(
            "amadeus_destinations",
            offers=len(offers),
            max_flight_time_hours=max_flight_time_hours,
            ms=round((time.monotonic() - start) * 1000.0, 2),
        )
        return offers
