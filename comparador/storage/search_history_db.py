# comparador/storage/search_history_db.py

"""SQLite-backed record of identified products and offer snapshots."""

import logging
import sqlite3
import threading
from datetime import datetime
from pathlib import Path
from typing import Protocol

from comparador.config.settings import Settings
from comparador.models.offer import Offer
from comparador.models.product import IdentifiedProduct

logger = logging.getLogger("comparador.history")

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS searches (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    name        TEXT    NOT NULL,
    barcode     TEXT,
    brand       TEXT,
    source      TEXT    NOT NULL,
    confidence  TEXT    NOT NULL,
    searched_at TEXT    NOT NULL
);

CREATE TABLE IF NOT EXISTS offer_snapshots (
    id        INTEGER PRIMARY KEY AUTOINCREMENT,
    search_id INTEGER NOT NULL
              REFERENCES searches(id) ON DELETE CASCADE,
    platform  TEXT    NOT NULL,
    name      TEXT    NOT NULL,
    price     TEXT    NOT NULL,
    shipping  TEXT    NOT NULL,
    currency  TEXT    NOT NULL DEFAULT 'PEN',
    url       TEXT    NOT NULL
);
"""


class HistoryRecorder(Protocol):
    """Persistence collaborator invoked after a successful pricing."""

    def record(
        self, product: IdentifiedProduct, offers: list[Offer]
    ) -> int: ...


class SearchHistoryDB:
    """SQLite store for past searches and the offers they returned."""

    def __init__(
        self, db_path: Path | None = None,
    ) -> None:
        path = db_path or Settings.HISTORY_DB_PATH
        if str(path) != ":memory:":
            path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(
            str(path), check_same_thread=False,
        )
        self._lock = threading.Lock()
        self._conn.execute("PRAGMA foreign_keys=ON")
        self._conn.executescript(_SCHEMA)
        logger.debug("SearchHistoryDB opened at %s", path)

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    # ── Recording ────────────────────────────────────────

    def record(
        self,
        product: IdentifiedProduct,
        offers: list[Offer],
        searched_at: datetime | None = None,
    ) -> int:
        """Insert one search row plus a snapshot per offer.

        Returns the number of offer snapshots inserted.
        """
        ts = (searched_at or datetime.now()).isoformat()
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(
                "INSERT INTO searches "
                "(name, barcode, brand, source, confidence, searched_at) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (
                    product.canonical_name,
                    product.barcode,
                    product.brand,
                    product.source_of_identification.value,
                    product.confidence.label,
                    ts,
                ),
            )
            search_id = cur.lastrowid
            cur.executemany(
                "INSERT INTO offer_snapshots "
                "(search_id, platform, name, price, shipping, currency, url) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                [
                    (
                        search_id,
                        o.platform,
                        o.name,
                        str(o.price),
                        str(o.shipping),
                        o.currency,
                        o.url,
                    )
                    for o in offers
                ],
            )
            self._conn.commit()
        logger.info(
            "Recorded search '%s' with %d offers",
            product.canonical_name,
            len(offers),
        )
        return len(offers)
