# comparador/adapters/vtex_catalog_adapter.py

"""Structured-catalog adapter for VTEX-powered Peruvian supermarkets."""

import urllib.parse
from typing import Any, cast

from comparador.adapters.base_adapter import SourceAdapter
from comparador.models.offer import RawOffer


class VtexCatalogAdapter(SourceAdapter):
    """Query the public VTEX catalog API of one store.

    Plaza Vea, Wong and Metro all run VTEX, so a single class serves
    every one of them; the registry passes the store identity in.
    Results are a JSON list of products whose price lives in the
    nested ``items[0].sellers[0].commertialOffer`` object.
    """

    SEARCH_PATH = "/api/catalog_system/pub/products/search/{slug}"

    def __init__(
        self,
        source_id: str,
        platform: str,
        base_url: str,
    ) -> None:
        super().__init__(source_id=source_id, platform=platform)
        self.base_url = base_url.rstrip("/")

    def _get_homepage(self) -> str:
        return f"{self.base_url}/"

    def _absolute_url(self, link: str | None) -> str | None:
        """Resolve VTEX product links that may be relative."""
        if not link:
            return None
        if link.startswith(("http://", "https://")):
            return link
        if link.startswith("//"):
            return f"https:{link}"
        return urllib.parse.urljoin(f"{self.base_url}/", link)

    @staticmethod
    def _first(seq: Any) -> dict[str, Any]:
        if isinstance(seq, list) and seq and isinstance(seq[0], dict):
            return cast(dict[str, Any], seq[0])
        return {}

    def _parse_product(self, item: dict[str, Any]) -> RawOffer | None:
        """Map one catalog product to a RawOffer."""
        sku = self._first(item.get("items"))
        seller = self._first(sku.get("sellers"))
        offer: dict[str, Any] = seller.get("commertialOffer") or {}
        if not offer:
            self.logger.debug(
                "[%s] Product %s has no commercial offer",
                self.source_id,
                item.get("productId"),
            )
            return None

        image = self._first(sku.get("images"))
        available = int(offer.get("AvailableQuantity", 0) or 0) > 0
        return self._make_offer(
            name=str(item.get("productName") or "").strip(),
            price=offer.get("Price"),
            currency="PEN",
            url=self._absolute_url(item.get("link")),
            image_url=image.get("imageUrl"),
            shipping=0,
            available=available,
        )

    def search(self, canonical_name: str) -> list[RawOffer]:
        """Search the store catalog by product slug."""
        try:
            slug = urllib.parse.quote(canonical_name.strip(), safe="")
            url = self.base_url + self.SEARCH_PATH.format(slug=slug)
            headers = {
                "Referer": self._get_homepage(),
                "Origin": self.base_url,
                "X-Requested-With": "XMLHttpRequest",
            }
            self.logger.info(
                "[%s] Catalog search '%s'",
                self.source_id,
                canonical_name,
            )
            data = self.client.get_json(url, headers)
            if not isinstance(data, list):
                self.logger.warning(
                    "[%s] Empty or invalid catalog response",
                    self.source_id,
                )
                return []

            offers: list[RawOffer] = []
            for item in data[: self.settings.MAX_RESULTS_PER_SOURCE]:
                if not isinstance(item, dict):
                    continue
                parsed = self._parse_product(
                    cast(dict[str, Any], item)
                )
                if parsed is not None:
                    offers.append(parsed)

            self.logger.info(
                "[%s] %d offers found", self.source_id, len(offers)
            )
            return offers
        except Exception as exc:
            self.logger.error(
                "[%s] Search failed: %s",
                self.source_id,
                exc,
                exc_info=True,
            )
            return []
