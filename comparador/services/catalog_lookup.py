# comparador/services/catalog_lookup.py

"""Barcode catalog collaborator backed by Open Food Facts."""

import logging
from typing import Any, Protocol, cast

from comparador.clients.http_client import RateLimitedClient
from comparador.clients.rate_limiter import RateLimiter
from comparador.models.product import CatalogProduct

logger = logging.getLogger("comparador.catalog")

# Open Food Facts category keywords -> local shelf names
_CATEGORY_MAP: dict[str, str] = {
    "yogurt": "Lácteos",
    "yoghurt": "Lácteos",
    "leche": "Lácteos",
    "milk": "Lácteos",
    "queso": "Lácteos",
    "agua": "Bebidas",
    "water": "Bebidas",
    "gaseosa": "Bebidas",
    "soda": "Bebidas",
    "jugo": "Bebidas",
    "cerveza": "Bebidas",
    "arroz": "Abarrotes",
    "pasta": "Abarrotes",
    "aceite": "Abarrotes",
    "galleta": "Snacks",
    "chocolate": "Snacks",
    "shampoo": "Cuidado Personal",
    "detergente": "Limpieza",
}


class CatalogLookup(Protocol):
    """Barcode -> product record lookup."""

    def lookup_by_barcode(self, barcode: str) -> CatalogProduct | None: ...


class OpenFoodFactsCatalog:
    """Query the Open Food Facts world database by barcode."""

    API_URL = "https://world.openfoodfacts.org/api/v2/product/{barcode}.json"
    USER_AGENT = "comparador/1.0 (price comparison)"

    def __init__(self, client: RateLimitedClient | None = None) -> None:
        self.client = client or RateLimitedClient(
            "openfoodfacts", RateLimiter(0.5, name="openfoodfacts")
        )

    @staticmethod
    def _best_name(product: dict[str, Any]) -> str | None:
        """Spanish name first, then generic fallbacks."""
        for field_name in (
            "product_name_es",
            "product_name_es_PE",
            "product_name",
            "product_name_en",
            "generic_name_es",
            "generic_name",
        ):
            value = product.get(field_name)
            if isinstance(value, str) and len(value.strip()) > 3:
                return value.strip()
        return None

    @staticmethod
    def _brand(product: dict[str, Any]) -> str | None:
        brands = str(product.get("brands") or "")
        main = brands.split(",")[0].strip()
        return main or None

    @staticmethod
    def _category(product: dict[str, Any]) -> str | None:
        categories = str(product.get("categories") or "").lower()
        if not categories:
            return None
        for keyword, shelf in _CATEGORY_MAP.items():
            if keyword in categories:
                return shelf
        return "General"

    def lookup_by_barcode(self, barcode: str) -> CatalogProduct | None:
        """Return the catalog record for ``barcode`` or ``None``."""
        data = self.client.get_json(
            self.API_URL.format(barcode=barcode),
            headers={"User-Agent": self.USER_AGENT},
        )
        if not isinstance(data, dict):
            logger.info("Catalog miss for barcode %s", barcode)
            return None
        payload = cast(dict[str, Any], data)
        product = payload.get("product")
        if payload.get("status") != 1 or not isinstance(product, dict):
            logger.info("Barcode %s not in catalog", barcode)
            return None

        record = cast(dict[str, Any], product)
        name = self._best_name(record)
        if name is None:
            logger.info("Catalog record %s has no usable name", barcode)
            return None

        quantity = record.get("quantity") or record.get("product_quantity")
        return CatalogProduct(
            barcode=barcode,
            name=name,
            brand=self._brand(record),
            category=self._category(record),
            quantity=str(quantity) if quantity else None,
            image_url=record.get("image_url") or record.get("image_front_url"),
        )
