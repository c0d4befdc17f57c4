# comparador/services/identification_resolver.py

"""Ordered fallback chain that turns raw input into a canonical name."""

import asyncio
import functools
import logging
from collections.abc import Awaitable, Callable
from typing import Protocol

from comparador.config.settings import Settings
from comparador.filters.query_cleaner import QueryCleaner
from comparador.models.product import (
    Confidence,
    IdentificationInput,
    IdentificationSource,
    IdentifiedProduct,
    ResolutionFailure,
)
from comparador.services.catalog_lookup import CatalogLookup
from comparador.services.vision_identifier import VisionIdentifier

logger = logging.getLogger("comparador.resolver")


class ListingNameLookup(Protocol):
    """Web-search fallback: name of the top listing for a query."""

    async def first_listing_name(self, query: str) -> str | None: ...


class IdentificationResolver:
    """Resolve barcode/photo/text input into an :class:`IdentifiedProduct`.

    Steps run strictly in order and the first acceptable answer wins:

    1. free text, used as-is after cleaning;
    2. catalog lookup by barcode;
    3. vision identification of the photo (non-LOW confidence only);
    4. web search for the barcode, taking the top listing's name.

    Every step has its own timeout.  A step that fails, times out or
    raises is logged and skipped; ``resolve`` itself never raises.
    """

    def __init__(
        self,
        catalog: CatalogLookup | None = None,
        vision: VisionIdentifier | None = None,
        web_search: ListingNameLookup | None = None,
    ) -> None:
        self.settings = Settings()
        self.catalog = catalog
        self.vision = vision
        self.web_search = web_search

    async def _catalog_step(
        self, barcode: str
    ) -> IdentifiedProduct | None:
        if self.catalog is None:
            return None
        record = await asyncio.wait_for(
            asyncio.to_thread(self.catalog.lookup_by_barcode, barcode),
            self.settings.CATALOG_TIMEOUT,
        )
        if record is None:
            return None
        return IdentifiedProduct(
            canonical_name=QueryCleaner.build_search_name(
                record.name, record.brand, record.quantity
            ),
            source_of_identification=IdentificationSource.CATALOG,
            confidence=Confidence.HIGH,
            brand=record.brand,
            category=record.category,
            barcode=barcode,
        )

    async def _vision_step(
        self, image_bytes: bytes, barcode: str | None
    ) -> IdentifiedProduct | None:
        if self.vision is None:
            return None
        result = await asyncio.wait_for(
            asyncio.to_thread(self.vision.identify, image_bytes),
            self.settings.VISION_TIMEOUT,
        )
        if result is None:
            return None
        if result.confidence <= Confidence.LOW:
            logger.info(
                "Vision answer '%s' rejected: low confidence", result.name
            )
            return None
        return IdentifiedProduct(
            canonical_name=QueryCleaner.build_search_name(
                result.name, result.brand, result.quantity
            ),
            source_of_identification=IdentificationSource.VISION,
            confidence=result.confidence,
            brand=result.brand,
            category=result.category,
            barcode=barcode,
        )

    async def _web_search_step(
        self, barcode: str
    ) -> IdentifiedProduct | None:
        if self.web_search is None:
            return None
        name = await asyncio.wait_for(
            self.web_search.first_listing_name(barcode),
            self.settings.WEB_SEARCH_TIMEOUT,
        )
        if not name:
            return None
        return IdentifiedProduct(
            canonical_name=QueryCleaner.build_search_name(name),
            source_of_identification=IdentificationSource.WEB_SEARCH,
            confidence=Confidence.MEDIUM,
            barcode=barcode,
        )

    async def resolve(
        self, identification: IdentificationInput
    ) -> IdentifiedProduct | ResolutionFailure:
        """Run the fallback chain and return the first identification."""
        if not identification.is_ambiguous:
            text = (identification.free_text or "").strip()
            return IdentifiedProduct(
                canonical_name=" ".join(text.split()),
                source_of_identification=IdentificationSource.FREE_TEXT,
                confidence=Confidence.HIGH,
                barcode=identification.barcode,
            )

        barcode = (identification.barcode or "").strip() or None
        attempted: list[IdentificationSource] = []

        steps: list[
            tuple[
                IdentificationSource,
                Callable[[], Awaitable[IdentifiedProduct | None]],
            ]
        ] = []
        if barcode:
            steps.append((
                IdentificationSource.CATALOG,
                functools.partial(self._catalog_step, barcode),
            ))
        if identification.image_bytes:
            steps.append((
                IdentificationSource.VISION,
                functools.partial(
                    self._vision_step, identification.image_bytes, barcode
                ),
            ))
        if barcode:
            steps.append((
                IdentificationSource.WEB_SEARCH,
                functools.partial(self._web_search_step, barcode),
            ))

        for source, step in steps:
            attempted.append(source)
            try:
                product = await step()
            except asyncio.TimeoutError:
                logger.warning(
                    "Identification step %s timed out", source.value
                )
                continue
            except Exception as exc:
                logger.warning(
                    "Identification step %s failed: %s",
                    source.value,
                    exc,
                    exc_info=True,
                )
                continue
            if product is not None:
                logger.info(
                    "Identified '%s' via %s (confidence=%s)",
                    product.canonical_name,
                    source.value,
                    product.confidence.label,
                )
                return product
            logger.info("Identification step %s found nothing", source.value)

        logger.warning(
            "Product could not be identified (tried: %s)",
            ", ".join(s.value for s in attempted) or "nothing",
        )
        return ResolutionFailure(
            reason="product could not be identified",
            attempted=attempted,
        )
