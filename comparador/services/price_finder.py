# comparador/services/price_finder.py

"""Pipeline entry points: identify a product, then price it."""

import asyncio
import logging

from comparador.models.offer import Offer
from comparador.models.product import (
    IdentificationInput,
    IdentifiedProduct,
    PricingResult,
    ResolutionFailure,
)
from comparador.services.aggregation_engine import (
    AggregationEngine,
    load_adapters,
)
from comparador.services.catalog_lookup import OpenFoodFactsCatalog
from comparador.services.identification_resolver import (
    IdentificationResolver,
)
from comparador.services.vision_identifier import GeminiVisionIdentifier
from comparador.storage.result_cache import ResultCache
from comparador.storage.search_history_db import HistoryRecorder

logger = logging.getLogger("comparador.pipeline")


class PipelineError(Exception):
    """Unexpected internal failure; carries no adapter stack trace."""


class PriceFinder:
    """Caller-facing facade over the resolver and the engine."""

    def __init__(
        self,
        engine: AggregationEngine,
        resolver: IdentificationResolver,
        history: HistoryRecorder | None = None,
    ) -> None:
        self.engine = engine
        self.resolver = resolver
        self.history = history
        self._background: set[asyncio.Task[None]] = set()

    async def _record(
        self, product: IdentifiedProduct, offers: list[Offer]
    ) -> None:
        if self.history is None:
            return
        try:
            await asyncio.to_thread(self.history.record, product, offers)
        except Exception as exc:
            logger.warning(
                "History recording failed for '%s': %s",
                product.canonical_name,
                exc,
                exc_info=True,
            )

    def _record_in_background(
        self, product: IdentifiedProduct, offers: list[Offer]
    ) -> None:
        """Fire-and-forget persistence; the caller never waits on it."""
        if self.history is None:
            return
        task = asyncio.create_task(self._record(product, offers))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def drain(self) -> None:
        """Wait for pending history writes (used on shutdown)."""
        if self._background:
            await asyncio.gather(*self._background)

    async def identify_and_price(
        self, identification: IdentificationInput
    ) -> PricingResult | ResolutionFailure:
        """Resolve the input, then aggregate offers for its name.

        An empty offer list is a valid outcome
        (:attr:`PricingResult.is_empty`), not an error.
        """
        try:
            resolved = await self.resolver.resolve(identification)
            if isinstance(resolved, ResolutionFailure):
                return resolved
            offers = await self.engine.aggregate(resolved.canonical_name)
        except Exception as exc:
            logger.error("Pipeline failed: %s", exc, exc_info=True)
            raise PipelineError(
                "internal error while pricing product"
            ) from exc

        if offers:
            self._record_in_background(resolved, offers)
        return PricingResult(product=resolved, offers=offers)

    async def search_by_name(self, query: str) -> list[Offer]:
        """Aggregate offers for a known name, skipping identification."""
        try:
            return await self.engine.aggregate(query)
        except Exception as exc:
            logger.error(
                "Search for '%s' failed: %s", query, exc, exc_info=True
            )
            raise PipelineError("internal error while searching") from exc


def build_default_finder(
    source_ids: list[str] | None = None,
    history: HistoryRecorder | None = None,
) -> PriceFinder:
    """Wire the default collaborators from Settings."""
    engine = AggregationEngine(ResultCache(), load_adapters(source_ids))
    resolver = IdentificationResolver(
        catalog=OpenFoodFactsCatalog(),
        vision=GeminiVisionIdentifier(),
        web_search=engine,
    )
    return PriceFinder(engine, resolver, history)
