import asyncio
from typing import List, Optional, Sequence, Tuple

from explorer.config import settings
from explorer.obs.logger import log_event
from explorer.pricing.resolver import PriceResolver, estimate_price
from explorer.types import PriceQuote, ThemeCityRecord


class BatchOrchestrator:
    """Resolves prices for a candidate list without bursting the provider.

    Candidates run in sequential slices of ``batch_size``; inside a slice every
    lookup is in flight at once, and the next slice starts only after the
    previous one has fully settled and the inter-batch delay has elapsed, so
    at most ``batch_size`` lookups are ever outstanding. Results land in
    candidate-indexed slots, so output order never depends on completion order.
    """

    def __init__(self, resolver: PriceResolver,
                 batch_size: int = settings.PRICE_BATCH_SIZE,
                 inter_batch_delay_ms: int = settings.PRICE_BATCH_DELAY_MS):
        self.resolver = resolver
        self.batch_size = batch_size
        self.inter_batch_delay_ms = inter_batch_delay_ms

    async def resolve_all(self, candidates: Sequence[ThemeCityRecord], origin: str,
                          batch_size: Optional[int] = None,
                          inter_batch_delay_ms: Optional[int] = None) -> List[Tuple[ThemeCityRecord, PriceQuote]]:
        size = self.batch_size if batch_size is None else batch_size
        delay_ms = self.inter_batch_delay_ms if inter_batch_delay_ms is None else inter_batch_delay_ms
        if size < 1:
            raise ValueError(f"batch_size must be >= 1, got {size}")

        slots: List[Optional[PriceQuote]] = [None] * len(candidates)

        async def fill(index: int, city: ThemeCityRecord) -> None:
            slots[index] = await self._resolve_one(origin, city)

        starts = range(0, len(candidates), size)
        for n, start in enumerate(starts):
            if n and delay_ms > 0:
                await asyncio.sleep(delay_ms / 1000.0)
            batch = range(start, min(start + size, len(candidates)))
            await asyncio.gather(*(fill(i, candidates[i]) for i in batch))
            log_event("price_batch_settled", batch=n + 1, size=len(batch))

        return list(zip(candidates, slots))

    async def _resolve_one(self, origin: str, city: ThemeCityRecord) -> PriceQuote:
        try:
            return await self.resolver.resolve(origin, city.iata_code, city.average_flight_time)
        except Exception as e:
            # A resolver is meant to be total; keep the slot filled regardless
            log_event(
                "price_resolver_error",
                level="ERROR",
                destination=city.iata_code,
                error_type=type(e).__name__,
                error=str(e)[:200],
            )
            return estimate_price(city.iata_code, city.average_flight_time)
