# comparador/filters/deduplicator.py

"""Offer deduplication across sources."""

import logging
import urllib.parse

from comparador.filters.offer_normalizer import is_absolute_url
from comparador.models.offer import Offer

logger = logging.getLogger("comparador.filters")


class OfferDeduplicator:
    """Remove duplicate offers; the first occurrence wins."""

    @staticmethod
    def _normalise_url(url: str) -> str:
        """Full URL with scheme/host lowercased and trailing slash folded.

        Query string and fragment stay part of the key: search and
        click-tracking links often differ only there.
        """
        candidate = url.strip()
        if not is_absolute_url(candidate):
            return ""
        parts = urllib.parse.urlsplit(candidate)
        return urllib.parse.urlunsplit((
            parts.scheme.lower(),
            parts.netloc.lower(),
            parts.path.rstrip("/"),
            parts.query,
            parts.fragment,
        ))

    @staticmethod
    def dedup_key(offer: Offer) -> str:
        """URL-based key, or ``platform:name`` without a product URL.

        A repaired URL is a search page built from the query and is
        shared by every unlinked offer of that platform, so it never
        identifies the offer.
        """
        norm_url = ""
        if not offer.url_repaired:
            norm_url = OfferDeduplicator._normalise_url(offer.url)
        if norm_url:
            return norm_url
        return f"{offer.platform}:{offer.name.strip().lower()}"

    @staticmethod
    def deduplicate(offers: list[Offer]) -> tuple[list[Offer], int]:
        """Drop offers whose key was already seen.

        Returns the deduplicated list (input order preserved) and the
        count of removed duplicates.
        """
        if not offers:
            return [], 0

        seen: set[str] = set()
        kept: list[Offer] = []
        removed = 0

        for offer in offers:
            key = OfferDeduplicator.dedup_key(offer)
            if key in seen:
                removed += 1
                continue
            seen.add(key)
            kept.append(offer)

        if removed:
            logger.info(
                "Deduplication removed %d duplicate offers", removed
            )

        return kept, removed
