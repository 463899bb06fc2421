"""Single-route price resolution with heuristic fallback.

``PriceResolver.resolve`` is total: whatever the pricing provider does
(timeout, HTTP error, malformed payload, open circuit, no provider at all),
the caller gets a usable ``PriceQuote``. Live prices are tagged ``live``;
everything else is a flight-time heuristic tagged ``estimated``.
"""

import asyncio
import math
import time
from typing import Any, Dict, List, Optional, Protocol

from explorer.amadeus.transform import cheapest_offer
from explorer.config import settings
from explorer.infrastructure.resilience import CircuitBreaker
from explorer.obs.logger import log_event
from explorer.obs.metrics import record_price_source, record_timing
from explorer.types import PriceQuote

HEURISTIC_CURRENCY = "EUR"
HEURISTIC_BASE = 100
HEURISTIC_PER_HOUR = 50
HEURISTIC_VARIATION = 0.3
# longest plausible route; larger or non-finite inputs are clamped
HEURISTIC_MAX_HOURS = 48.0


class PricingProvider(Protocol):
    async def explore_destinations(self, origin: str, max_flight_time_hours: Optional[float] = None,
                                   departure_date: Optional[str] = None,
                                   sort_by: str = "PRICE") -> List[Dict[str, Any]]:
        ...


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _clamp_hours(value: float) -> float:
    try:
        hours = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(hours) or hours < 0:
        return 0.0
    return min(hours, HEURISTIC_MAX_HOURS)


def estimate_price(destination: str, flight_time_hours: float) -> PriceQuote:
    """Flight-duration heuristic: base +/- 30%, in EUR."""
    hours = _clamp_hours(flight_time_hours)
    base = round_half_up(hours * HEURISTIC_PER_HOUR + HEURISTIC_BASE)
    variation = round_half_up(base * HEURISTIC_VARIATION)
    return PriceQuote(
        destination_code=destination.upper(),
        currency=HEURISTIC_CURRENCY,
        amount_low=base - variation,
        amount_high=base + variation,
        source="estimated",
    )


class PriceResolver:
    def __init__(self, provider: Optional[PricingProvider],
                 breaker: Optional[CircuitBreaker] = None,
                 flight_time_buffer_hours: float = settings.FLIGHT_TIME_BUFFER_HOURS,
                 timeout_seconds: float = settings.PRICE_LOOKUP_TIMEOUT_SECONDS):
        self.provider = provider
        self.breaker = breaker
        self.flight_time_buffer_hours = flight_time_buffer_hours
        self.timeout_seconds = timeout_seconds

    async def resolve(self, origin: str, destination: str, flight_time_hours: float) -> PriceQuote:
        quote = None
        if self.provider is not None:
            quote = await self._live_quote(origin, destination, flight_time_hours)
        if quote is None:
            quote = estimate_price(destination, flight_time_hours)
        record_price_source(quote.source)
        return quote

    async def _live_quote(self, origin: str, destination: str, flight_time_hours: float) -> Optional[PriceQuote]:
        ceiling = flight_time_hours + self.flight_time_buffer_hours
        start = time.monotonic()
        try:
            offers = await self._lookup(origin, ceiling)
            best = cheapest_offer(offers, destination)
        except Exception as e:
            log_event(
                "price_lookup_failed",
                level="WARNING",
                destination=destination,
                error_type=type(e).__name__,
                error=str(e)[:200],
            )
            return None
        finally:
            record_timing("price_lookup_ms", (time.monotonic() - start) * 1000.0)

        if best is None:
            log_event("price_lookup_no_offer", destination=destination)
            return None
        return PriceQuote(
            destination_code=destination.upper(),
            currency=best["currency"],
            amount_low=best["total"],
            amount_high=best["total"],
            source="live",
        )

    async def _lookup(self, origin: str, ceiling: float) -> List[Dict[str, Any]]:
        if self.breaker is not None:
            # the timeout runs inside the breaker so a hung provider counts as a failure
            return await self.breaker.async_call(self._timed_lookup, origin, ceiling)
        return await self._timed_lookup(origin, ceiling)

    async def _timed_lookup(self, origin: str, ceiling: float) -> List[Dict[str, Any]]:
        return await asyncio.wait_for(
            self.provider.explore_destinations(origin, max_flight_time_hours=ceiling, sort_by="PRICE"),
            timeout=self.timeout_seconds,
        )
