# comparador/storage/result_cache.py

"""In-memory TTL cache for aggregated offer lists."""

import logging
import threading
import time
from dataclasses import dataclass

from comparador.config.settings import Settings
from comparador.models.offer import Offer
from comparador.models.product import normalise_key

logger = logging.getLogger("comparador.cache")


@dataclass
class CacheEntry:
    """A cached offer list for one normalised query."""

    key: str
    offers: list[Offer]
    created_at: float


class ResultCache:
    """Lazy-expiring cache keyed by normalised query text.

    Entries are evicted when read after their TTL; there is no
    background sweep.  Callers always receive a copy of the stored
    list, so mutating it never affects the cache.
    """

    def __init__(self, ttl: float | None = None) -> None:
        self._ttl: float = ttl if ttl is not None else Settings.CACHE_TTL
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    @property
    def ttl(self) -> float:
        return self._ttl

    def get(self, key: str) -> list[Offer] | None:
        """Return cached offers for ``key``, or ``None`` on miss/expiry."""
        norm = normalise_key(key)
        now = time.monotonic()
        with self._lock:
            entry = self._entries.get(norm)
            if entry is None:
                return None
            if now - entry.created_at >= self._ttl:
                del self._entries[norm]
                logger.debug("Evicted expired cache entry '%s'", norm)
                return None
            logger.info(
                "Cache hit for '%s' (%d offers)", norm, len(entry.offers)
            )
            return list(entry.offers)

    def set(self, key: str, offers: list[Offer]) -> None:
        """Store a copy of ``offers`` under ``key``."""
        norm = normalise_key(key)
        with self._lock:
            self._entries[norm] = CacheEntry(
                key=norm,
                offers=list(offers),
                created_at=time.monotonic(),
            )
        logger.info("Cached %d offers for '%s'", len(offers), norm)

    def clear(self) -> int:
        """Purge all cached entries.

        Returns the number of entries that were removed.
        """
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        logger.info("Cache manually purged (%d entries removed)", count)
        return count

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def stats(self) -> dict[str, float]:
        """Entry count and TTL in minutes."""
        return {
            "entries": len(self),
            "ttl_minutes": self._ttl / 60,
        }
