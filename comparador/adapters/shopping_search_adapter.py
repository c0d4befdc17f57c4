# comparador/adapters/shopping_search_adapter.py

"""Market-search adapter backed by SerpAPI's Google Shopping engine."""

from decimal import Decimal
from typing import Any, cast

from comparador.adapters.base_adapter import SourceAdapter
from comparador.filters.offer_normalizer import parse_price
from comparador.models.offer import RawOffer


class ShoppingSearchAdapter(SourceAdapter):
    """One query, offers attributed to many different platforms.

    Listings are partitioned by the selling platform and only the
    cheapest listing per platform is kept, since the same store often
    appears several times with near-identical items.  Results are broad
    matches, so the engine runs them through the outlier filter.
    """

    source_id = "google_shopping"
    platform = "Google Shopping"
    noisy = True
    supports_name_lookup = True

    SEARCH_API = "https://serpapi.com/search.json"

    def __init__(self, api_key: str | None = None) -> None:
        super().__init__()
        self.api_key = (
            api_key if api_key is not None else self.settings.SERPAPI_KEY
        )

    def _get_homepage(self) -> str:
        return "https://serpapi.com/"

    def _fetch_results(self, query: str) -> list[dict[str, Any]]:
        """Return raw ``shopping_results`` in ranking order."""
        if not self.api_key:
            self.logger.warning(
                "[%s] SERPAPI_KEY not configured, skipping",
                self.source_id,
            )
            return []
        params = {
            "engine": "google_shopping",
            "q": query,
            "location": "Peru",
            "gl": "pe",
            "hl": "es",
            "api_key": self.api_key,
        }
        data = self.client.get_json(self.SEARCH_API, params=params)
        if not isinstance(data, dict):
            return []
        payload = cast(dict[str, Any], data)
        if payload.get("error"):
            self.logger.error(
                "[%s] API error: %s", self.source_id, payload["error"]
            )
            return []
        results = payload.get("shopping_results") or []
        return [r for r in results if isinstance(r, dict)]

    def _parse_item(self, item: dict[str, Any]) -> RawOffer:
        """Map one shopping result to a RawOffer."""
        delivery = str(item.get("delivery") or "").lower()
        free = "free" in delivery or "gratis" in delivery
        price: Any = item.get("extracted_price")
        if price is None:
            price = item.get("price")
        return self._make_offer(
            platform=str(item.get("source") or self.platform),
            name=str(item.get("title") or "").strip(),
            price=price,
            currency=None,
            url=item.get("product_link") or item.get("link"),
            image_url=item.get("thumbnail"),
            shipping=0 if free else self.settings.DEFAULT_SHIPPING,
        )

    @staticmethod
    def cheapest_per_platform(offers: list[RawOffer]) -> list[RawOffer]:
        """Keep the minimum-price listing for each platform."""
        best: dict[str, tuple[Decimal, RawOffer]] = {}
        for offer in offers:
            price = parse_price(offer.price)
            if price is None or price <= 0:
                continue
            current = best.get(offer.platform)
            if current is None or price < current[0]:
                best[offer.platform] = (price, offer)
        return [offer for _price, offer in best.values()]

    def search(self, canonical_name: str) -> list[RawOffer]:
        """Search Google Shopping and collapse listings per platform."""
        try:
            self.logger.info(
                "[%s] Market search '%s'",
                self.source_id,
                canonical_name,
            )
            raw = [self._parse_item(r) for r in self._fetch_results(
                canonical_name
            )]
            offers = self.cheapest_per_platform(raw)
            self.logger.info(
                "[%s] %d listings -> %d platforms",
                self.source_id,
                len(raw),
                len(offers),
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

    def top_listing_name(self, query: str) -> str | None:
        """Displayed name of the top-ranked listing for ``query``."""
        try:
            for item in self._fetch_results(query):
                title = str(item.get("title") or "").strip()
                if title:
                    return title
            return None
        except Exception as exc:
            self.logger.error(
                "[%s] Name lookup failed: %s",
                self.source_id,
                exc,
                exc_info=True,
            )
            return None
