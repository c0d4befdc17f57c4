# comparador/adapters/base_adapter.py

"""Abstract base class for all offer sources."""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any

from comparador.clients.http_client import RateLimitedClient
from comparador.clients.rate_limiter import RateLimiter
from comparador.config.settings import Settings
from comparador.models.offer import RawOffer


class SourceAdapter(ABC):
    """Uniform contract every data source implements.

    ``search`` runs in a worker thread and must never raise: internal
    errors are logged and an empty list is returned instead.
    """

    source_id: str = ""
    platform: str = ""
    uses_browser: bool = False
    noisy: bool = False
    supports_name_lookup: bool = False

    def __init__(
        self,
        source_id: str | None = None,
        platform: str | None = None,
    ) -> None:
        if source_id:
            self.source_id = source_id
        if platform:
            self.platform = platform
        self.logger = logging.getLogger(
            f"comparador.{self.source_id}"
        )
        self.settings = Settings()
        self.rate_limiter = RateLimiter(
            self.settings.RATE_LIMITS.get(
                self.source_id, self.settings.REQUEST_DELAY
            ),
            jitter=(
                self.settings.RATE_LIMIT_JITTER
                if self.source_id in self.settings.RATE_LIMITS
                else 0.0
            ),
            name=self.source_id,
        )
        self.client = RateLimitedClient(
            self.source_id, self.rate_limiter
        )

    @property
    def session(self) -> Any:
        """Underlying HTTP session of the adapter's client."""
        return self.client.session

    @session.setter
    def session(self, value: Any) -> None:
        self.client.session = value

    def _load_selectors(self) -> dict[str, str]:
        """Load CSS selectors for this source from selectors.json."""
        with open(self.settings.SELECTORS_PATH, encoding="utf-8") as f:
            all_selectors: dict[str, Any] = json.load(f)
        result: dict[str, str] = all_selectors.get(self.source_id, {})
        return result

    def _make_offer(self, **fields: Any) -> RawOffer:
        """Build a RawOffer stamped with this adapter's identity."""
        return RawOffer(
            source_id=self.source_id,
            platform=fields.pop("platform", None) or self.platform,
            **fields,
        )

    @abstractmethod
    def _get_homepage(self) -> str:
        """Return the homepage URL used as the request referer."""
        ...

    @abstractmethod
    def search(self, canonical_name: str) -> list[RawOffer]:
        """Search the source and return raw, unnormalised offers."""
        ...

    def top_listing_name(self, query: str) -> str | None:
        """Displayed name of the first result for ``query``, if any."""
        for offer in self.search(query):
            if offer.name and offer.name.strip():
                return offer.name.strip()
        return None

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.source_id}>"
