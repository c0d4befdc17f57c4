# comparador/adapters/tottus_adapter.py

"""Browser-backed scraping adapter for tottus.com.pe."""

import urllib.parse

from bs4 import BeautifulSoup, Tag

from comparador.adapters.base_adapter import SourceAdapter
from comparador.clients.browser import BrowserSession, BrowserTimeout
from comparador.filters.query_cleaner import QueryCleaner
from comparador.models.offer import RawOffer


class TottusAdapter(SourceAdapter):
    """Scrape Tottus search results through a headless browser.

    Tottus renders its result grid client-side, so plain HTTP returns an
    empty shell.  The page is rendered with Playwright inside the
    page-load budget and the resulting HTML is parsed with BeautifulSoup.
    A timeout aborts this search only.
    """

    source_id = "tottus"
    platform = "Tottus"
    uses_browser = True

    BASE_URL = "https://www.tottus.com.pe"
    SEARCH_URL = BASE_URL + "/buscar?q={query}"
    MAX_KEYWORDS = 3

    def __init__(self) -> None:
        super().__init__()
        self.selectors: dict[str, str] = self._load_selectors()

    def _get_homepage(self) -> str:
        return f"{self.BASE_URL}/"

    def _render(self, url: str) -> str:
        """Render ``url`` in a fresh browser session."""
        with BrowserSession(
            page_load_budget=self.settings.PAGE_LOAD_BUDGET
        ) as browser:
            return browser.render(
                url, wait_selector=self.selectors.get("wait_for")
            )

    def _price_text(self, card: Tag) -> str:
        """Selector price, else the first span carrying ``S/``."""
        selector = self.selectors.get("price", "")
        el = card.select_one(selector) if selector else None
        if el is not None and el.get_text(strip=True):
            return el.get_text(" ", strip=True)
        for span in card.find_all("span"):
            text = span.get_text(" ", strip=True)
            if "S/" in text:
                return text
        return ""

    def _title(self, card: Tag) -> str:
        selector = self.selectors.get("title", "")
        el = card.select_one(selector) if selector else None
        if el is not None:
            return el.get_text(strip=True)
        bold = card.find_all("b")
        if len(bold) >= 2:
            return bold[1].get_text(strip=True)
        return bold[0].get_text(strip=True) if bold else ""

    def _parse_card(self, card: Tag) -> RawOffer:
        href = str(card.get("href") or "")
        if not href:
            link = card.find("a")
            href = str(link.get("href") or "") if link else ""
        if href:
            href = urllib.parse.urljoin(self._get_homepage(), href)

        img = card.find("img")
        image_url = ""
        if img is not None:
            image_url = str(img.get("src") or img.get("data-src") or "")

        return self._make_offer(
            name=self._title(card),
            price=self._price_text(card) or None,
            currency="PEN",
            url=href or None,
            image_url=image_url or None,
            shipping=None,
        )

    def parse_results(self, html: str) -> list[RawOffer]:
        """Extract offers from a rendered results page."""
        soup = BeautifulSoup(html, "lxml")
        card_sel = self.selectors.get("product_card", "a.pod-link")
        cards = soup.select(card_sel)
        return [
            self._parse_card(card)
            for card in cards[: self.settings.MAX_RESULTS_PER_SOURCE]
        ]

    def search(self, canonical_name: str) -> list[RawOffer]:
        """Search Tottus for products matching the name."""
        try:
            keywords = QueryCleaner.keywords(
                canonical_name, max_words=self.MAX_KEYWORDS
            )
            if len(keywords) < 3:
                self.logger.info(
                    "[%s] Query '%s' too short after cleaning",
                    self.source_id,
                    canonical_name,
                )
                return []
            url = self.SEARCH_URL.format(
                query=urllib.parse.quote(keywords)
            )

            self.rate_limiter.wait()
            self.logger.info("[%s] Rendering %s", self.source_id, url)
            html = self._render(url)

            offers = self.parse_results(html)
            self.logger.info(
                "[%s] %d offers found", self.source_id, len(offers)
            )
            return offers
        except BrowserTimeout as exc:
            self.logger.warning(
                "[%s] Page load budget exceeded: %s",
                self.source_id,
                exc,
            )
            return []
        except Exception as exc:
            self.logger.error(
                "[%s] Search failed: %s",
                self.source_id,
                exc,
                exc_info=True,
            )
            return []
