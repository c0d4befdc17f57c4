# comparador/adapters/mercado_libre_adapter.py

"""HTML-scraping adapter for listado.mercadolibre.com.pe."""

import json
import re
from typing import Any, cast

from bs4 import BeautifulSoup, Tag

from comparador.adapters.base_adapter import SourceAdapter
from comparador.filters.offer_normalizer import parse_price
from comparador.models.offer import RawOffer


class MercadoLibreAdapter(SourceAdapter):
    """Scrape the Mercado Libre Peru listing page.

    Embedded ``application/ld+json`` metadata is read first because it
    survives markup redesigns; CSS selectors from ``selectors.json`` are
    the fallback.  Requests go through the politeness window.
    """

    source_id = "mercado_libre"
    platform = "Mercado Libre"

    LISTING_URL = "https://listado.mercadolibre.com.pe/{slug}_OrderId_PRICE"
    BASE_URL = "https://www.mercadolibre.com.pe"

    def __init__(self) -> None:
        super().__init__()
        self.selectors: dict[str, str] = self._load_selectors()

    def _get_homepage(self) -> str:
        return f"{self.BASE_URL}/"

    @staticmethod
    def _slug(query: str) -> str:
        """Listing slug: first four words, hyphen-joined."""
        cleaned = re.sub(r"[^\w\s.]", " ", query.lower())
        return "-".join(cleaned.split()[:4])

    # ------------------------------------------------------------------
    # Structured metadata extraction (primary)
    # ------------------------------------------------------------------

    @staticmethod
    def _iter_ld_nodes(soup: BeautifulSoup) -> list[dict[str, Any]]:
        """Flatten every JSON-LD block into a list of dict nodes."""
        nodes: list[dict[str, Any]] = []
        for script in soup.find_all(
            "script", attrs={"type": "application/ld+json"}
        ):
            raw = script.string or script.get_text()
            if not raw:
                continue
            try:
                data: Any = json.loads(raw)
            except (json.JSONDecodeError, TypeError):
                continue
            stack: list[Any] = [data]
            while stack:
                node = stack.pop(0)
                if isinstance(node, list):
                    stack.extend(cast(list[Any], node))
                elif isinstance(node, dict):
                    node_dict = cast(dict[str, Any], node)
                    nodes.append(node_dict)
                    for key in ("@graph", "itemListElement", "item"):
                        if key in node_dict:
                            stack.append(node_dict[key])
        return nodes

    def _parse_ld_product(self, node: dict[str, Any]) -> RawOffer | None:
        offers: Any = node.get("offers") or {}
        if isinstance(offers, list):
            offers = offers[0] if offers else {}
        if not isinstance(offers, dict):
            return None
        offer = cast(dict[str, Any], offers)
        price = offer.get("price", offer.get("lowPrice"))
        if price is None:
            return None
        image: Any = node.get("image")
        if isinstance(image, list):
            image = image[0] if image else None
        availability = str(offer.get("availability") or "")
        return self._make_offer(
            name=str(node.get("name") or "").strip(),
            price=price,
            currency=offer.get("priceCurrency"),
            url=offer.get("url") or node.get("url"),
            image_url=str(image) if image else None,
            available="OutOfStock" not in availability,
        )

    def _parse_structured(self, soup: BeautifulSoup) -> list[RawOffer]:
        offers: list[RawOffer] = []
        for node in self._iter_ld_nodes(soup):
            if node.get("@type") != "Product":
                continue
            parsed = self._parse_ld_product(node)
            if parsed is not None:
                offers.append(parsed)
        return offers

    # ------------------------------------------------------------------
    # CSS-selector fallback
    # ------------------------------------------------------------------

    def _select_text(self, card: Tag, key: str) -> str:
        selector = self.selectors.get(key, "")
        if not selector:
            return ""
        el = card.select_one(selector)
        return el.get_text(strip=True) if el else ""

    def _parse_card(self, card: Tag) -> RawOffer:
        """Parse a single listing card using CSS selectors."""
        fraction = self._select_text(card, "price").replace(".", "")
        cents = self._select_text(card, "cents")
        price = f"{fraction}.{cents}" if fraction and cents else fraction

        href = ""
        url_sel = self.selectors.get("url", "")
        url_el = card.select_one(url_sel) if url_sel else None
        if url_el is not None:
            href = str(url_el.get("href") or "")

        image_url = ""
        img_sel = self.selectors.get("image", "")
        img_el = card.select_one(img_sel) if img_sel else None
        if img_el is not None:
            image_url = str(
                img_el.get("data-src") or img_el.get("src") or ""
            )

        shipping_text = self._select_text(card, "shipping").lower()
        free = "gratis" in shipping_text or "free" in shipping_text

        return self._make_offer(
            name=self._select_text(card, "title"),
            price=price or None,
            currency="PEN",
            url=href or None,
            image_url=image_url or None,
            shipping=0 if free else None,
        )

    def _parse_products(self, soup: BeautifulSoup) -> list[RawOffer]:
        """Extract offers: JSON-LD first, then CSS selectors."""
        structured = self._parse_structured(soup)
        if structured:
            return structured

        card_sel = self.selectors.get("product_card", "")
        if not card_sel:
            return []
        cards = soup.select(card_sel)
        # Layouts nest div.poly-card inside li items; keep outermost only
        matched = {id(c) for c in cards}
        outer = [
            c for c in cards
            if not any(id(p) in matched for p in c.parents)
        ]
        return [self._parse_card(c) for c in outer]

    @staticmethod
    def _sort_key(offer: RawOffer) -> float:
        price = parse_price(offer.price)
        return float(price) if price is not None else float("inf")

    # ------------------------------------------------------------------
    # Public search entry-point
    # ------------------------------------------------------------------

    def search(self, canonical_name: str) -> list[RawOffer]:
        """Search Mercado Libre Peru for listings matching the name."""
        try:
            slug = self._slug(canonical_name)
            if not slug:
                return []
            url = self.LISTING_URL.format(slug=slug)
            self.logger.info("[%s] Fetching %s", self.source_id, url)

            soup = self.client.get_page(
                url, {"Referer": self._get_homepage()}
            )
            if soup is None:
                self.logger.warning(
                    "[%s] Failed to fetch listing page", self.source_id
                )
                return []

            offers = sorted(
                self._parse_products(soup), key=self._sort_key
            )
            limited = offers[: self.settings.MAX_RESULTS_PER_SOURCE]
            self.logger.info(
                "[%s] %d offers found", self.source_id, len(limited)
            )
            return limited
        except Exception as exc:
            self.logger.error(
                "[%s] Search failed: %s",
                self.source_id,
                exc,
                exc_info=True,
            )
            return []
