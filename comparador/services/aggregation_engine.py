# comparador/services/aggregation_engine.py

"""Concurrent fan-out of one query to every registered source."""

import asyncio
import functools
import importlib
import logging
import time
from typing import Any

from comparador.adapters.base_adapter import SourceAdapter
from comparador.config.settings import Settings
from comparador.filters.deduplicator import OfferDeduplicator
from comparador.filters.offer_normalizer import OfferNormalizer
from comparador.filters.outlier_filter import OutlierFilter
from comparador.models.offer import (
    Offer,
    RawOffer,
    SourceOutcome,
    SourceStatus,
)
from comparador.models.product import ProductQuery
from comparador.storage.result_cache import ResultCache

logger = logging.getLogger("comparador.engine")


def _load_adapter_class(dotted_path: str) -> type[Any]:
    """Dynamically import an adapter class from its dotted module path."""
    module_path, class_name = dotted_path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    cls: type[Any] = getattr(module, class_name)
    return cls


def load_adapters(
    source_ids: list[str] | None = None,
    sources: list[dict[str, Any]] | None = None,
) -> list[SourceAdapter]:
    """Instantiate the registered adapters, optionally only ``source_ids``.

    A source whose class cannot be loaded or built is logged and skipped.
    """
    registry = sources if sources is not None else Settings.AVAILABLE_SOURCES
    wanted = set(source_ids) if source_ids else None
    adapters: list[SourceAdapter] = []
    for src in registry:
        if wanted is not None and src["id"] not in wanted:
            continue
        try:
            adapter_cls = _load_adapter_class(src["adapter"])
            adapters.append(adapter_cls(**src.get("kwargs", {})))
        except Exception as exc:
            logger.error(
                "Failed to load adapter '%s': %s",
                src["id"],
                exc,
                exc_info=True,
            )
    return adapters


class AggregationEngine:
    """Query every adapter concurrently and merge the results.

    Each adapter call is isolated: a timeout or exception in one source
    becomes a logged :class:`SourceOutcome` and never affects the others.
    Browser-backed and plain-HTTP adapters are throttled by separate
    semaphores.
    """

    def __init__(
        self,
        cache: ResultCache,
        adapters: list[SourceAdapter] | None = None,
        timeout: float | None = None,
    ) -> None:
        self.settings = Settings()
        self.cache = cache
        self.adapters: list[SourceAdapter] = (
            adapters if adapters is not None else load_adapters()
        )
        self.timeout = (
            timeout if timeout is not None else self.settings.ADAPTER_TIMEOUT
        )
        self.normalizer = OfferNormalizer()
        self.deduplicator = OfferDeduplicator()
        self.outlier_filter = OutlierFilter()
        self._browser_slots: asyncio.Semaphore | None = None
        self._http_slots: asyncio.Semaphore | None = None

    @property
    def adapter_ids(self) -> list[str]:
        return [a.source_id for a in self.adapters]

    # ── Private helpers ──────────────────────────────────

    def _slots(self, adapter: SourceAdapter) -> asyncio.Semaphore:
        """Semaphore for the adapter's kind, created inside the loop."""
        if self._browser_slots is None or self._http_slots is None:
            self._browser_slots = asyncio.Semaphore(
                self.settings.MAX_BROWSER_ADAPTERS
            )
            self._http_slots = asyncio.Semaphore(
                self.settings.MAX_HTTP_ADAPTERS
            )
        if adapter.uses_browser:
            return self._browser_slots
        return self._http_slots

    async def _call(
        self, adapter: SourceAdapter, method: str, query: str
    ) -> tuple[SourceStatus, Any, str | None]:
        """Run ``adapter.method(query)`` in a worker thread.

        The slot is held until the worker thread returns, not until the
        timeout fires: a timed-out browser search keeps its Chromium
        process alive until it finishes.
        """
        slots = self._slots(adapter)
        await slots.acquire()
        worker = asyncio.ensure_future(
            asyncio.to_thread(getattr(adapter, method), query)
        )
        worker.add_done_callback(
            functools.partial(self._release_slot, slots)
        )
        try:
            result = await asyncio.wait_for(
                asyncio.shield(worker), self.timeout
            )
            return SourceStatus.SUCCESS, result, None
        except asyncio.TimeoutError:
            return (
                SourceStatus.TIMEOUT,
                None,
                f"timed out after {self.timeout:.0f}s",
            )
        except Exception as exc:
            return SourceStatus.FAILURE, None, str(exc) or repr(exc)

    @staticmethod
    def _release_slot(
        slots: asyncio.Semaphore, worker: "asyncio.Future[Any]"
    ) -> None:
        slots.release()
        # Consume late errors of timed-out workers so none go unretrieved
        if not worker.cancelled():
            worker.exception()

    async def _run_adapter(
        self, adapter: SourceAdapter, canonical_name: str
    ) -> SourceOutcome:
        """Run one adapter's search under its timeout and semaphore."""
        start = time.monotonic()
        status, result, error = await self._call(
            adapter, "search", canonical_name
        )
        elapsed = time.monotonic() - start

        if status is not SourceStatus.SUCCESS:
            logger.warning(
                "[%s] %s after %.1fs: %s",
                adapter.source_id,
                status.value,
                elapsed,
                error,
            )
            return SourceOutcome(
                source_id=adapter.source_id,
                status=status,
                error=error,
                elapsed=elapsed,
            )

        offers: list[RawOffer] = list(result or [])
        logger.info(
            "[%s] %d raw offers in %.1fs",
            adapter.source_id,
            len(offers),
            elapsed,
        )
        return SourceOutcome(
            source_id=adapter.source_id,
            status=SourceStatus.SUCCESS,
            offers=offers,
            elapsed=elapsed,
        )

    def _merge(
        self,
        outcomes: list[SourceOutcome],
        query: ProductQuery,
    ) -> list[Offer]:
        """Normalise, dedup, outlier-filter noisy sources and rank."""
        raw: list[RawOffer] = []
        for outcome in outcomes:
            if outcome.status is SourceStatus.SUCCESS:
                raw.extend(outcome.offers)

        offers, _dropped = self.normalizer.normalize(raw, query)
        offers, _dupes = self.deduplicator.deduplicate(offers)

        noisy_ids = {a.source_id for a in self.adapters if a.noisy}
        noisy = [o for o in offers if o.source_id in noisy_ids]
        trusted = [o for o in offers if o.source_id not in noisy_ids]
        noisy, _outliers = self.outlier_filter.filter(noisy)

        return sorted(trusted + noisy, key=lambda o: o.total_price)

    # ── Public API ───────────────────────────────────────

    async def aggregate(
        self,
        canonical_name: str,
        currency: str | None = None,
    ) -> list[Offer]:
        """Return ranked offers for ``canonical_name`` from all sources.

        Served from the cache when a fresh entry exists.  Empty results
        are returned but never cached.
        """
        query = ProductQuery(
            text=canonical_name.strip(),
            currency=currency or self.settings.DEFAULT_CURRENCY,
        )
        cached = self.cache.get(query.cache_key)
        if cached is not None:
            return cached

        outcomes: list[SourceOutcome] = list(
            await asyncio.gather(
                *(
                    self._run_adapter(adapter, query.text)
                    for adapter in self.adapters
                )
            )
        )
        failed = [
            o.source_id
            for o in outcomes
            if o.status is not SourceStatus.SUCCESS
        ]
        if failed:
            logger.warning(
                "Aggregation of '%s': %d/%d sources failed (%s)",
                query.text,
                len(failed),
                len(outcomes),
                ", ".join(failed),
            )

        offers = self._merge(outcomes, query)
        logger.info(
            "Aggregated %d offers for '%s'", len(offers), query.text
        )
        if offers:
            self.cache.set(query.cache_key, offers)
        return offers

    async def first_listing_name(self, query: str) -> str | None:
        """Top listing name from the name-lookup adapters, or ``None``.

        Adapters are queried concurrently; the first non-empty name in
        registration order wins.
        """
        lookups = [a for a in self.adapters if a.supports_name_lookup]
        if not lookups:
            logger.info("No name-lookup adapters registered")
            return None

        results = await asyncio.gather(
            *(self._call(a, "top_listing_name", query) for a in lookups)
        )
        for adapter, (status, name, error) in zip(lookups, results):
            if status is not SourceStatus.SUCCESS:
                logger.warning(
                    "[%s] name lookup %s: %s",
                    adapter.source_id,
                    status.value,
                    error,
                )
                continue
            if name and str(name).strip():
                return str(name).strip()
        return None
