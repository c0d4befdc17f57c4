# tests/test_search_history_db.py

"""Tests for the SQLite search history store."""

import sqlite3
import tempfile
import unittest
from datetime import datetime
from decimal import Decimal
from pathlib import Path

from comparador.models.offer import Offer
from comparador.models.product import (
    Confidence,
    IdentificationSource,
    IdentifiedProduct,
)
from comparador.storage.search_history_db import SearchHistoryDB

BARCODE = "7751271021975"


class TestSearchHistoryDB(unittest.TestCase):
    """Tests for the SearchHistoryDB class."""

    def setUp(self) -> None:
        """Create a fresh temp DB for each test."""
        self.tmp_dir = tempfile.TemporaryDirectory()
        self.db_path = Path(self.tmp_dir.name) / "nested" / "test.db"
        self.db = SearchHistoryDB(db_path=self.db_path)

    def tearDown(self) -> None:
        """Close the database."""
        self.db.close()
        self.tmp_dir.cleanup()

    def _rows(self, sql: str) -> list[tuple[object, ...]]:
        """Read back through an independent connection."""
        conn = sqlite3.connect(str(self.db_path))
        try:
            return conn.execute(sql).fetchall()
        finally:
            conn.close()

    def _product(self) -> IdentifiedProduct:
        return IdentifiedProduct(
            canonical_name="Gloria Leche Evaporada Azul 400g",
            source_of_identification=IdentificationSource.CATALOG,
            confidence=Confidence.HIGH,
            brand="Gloria",
            barcode=BARCODE,
        )

    def _offers(self) -> list[Offer]:
        return [
            Offer(
                platform="Wong",
                name="Leche Gloria Azul 400g",
                price=Decimal("4.20"),
                currency="PEN",
                url="https://www.wong.pe/leche-gloria/p",
                shipping=Decimal("5.99"),
            ),
            Offer(
                platform="Metro",
                name="Leche Gloria Azul 400g",
                price=Decimal("4.90"),
                currency="PEN",
                url="https://www.metro.pe/leche-gloria/p",
            ),
        ]

    def test_creates_parent_directory(self) -> None:
        self.assertTrue(self.db_path.exists())

    def test_record_returns_offer_count(self) -> None:
        self.assertEqual(self.db.record(self._product(), self._offers()), 2)

    def test_search_row_written(self) -> None:
        self.db.record(
            self._product(), self._offers(), datetime(2026, 1, 2, 10, 30)
        )
        rows = self._rows(
            "SELECT name, barcode, brand, source, confidence, searched_at "
            "FROM searches"
        )
        self.assertEqual(
            rows,
            [(
                "Gloria Leche Evaporada Azul 400g",
                BARCODE,
                "Gloria",
                "catalog",
                "high",
                "2026-01-02T10:30:00",
            )],
        )

    def test_offer_snapshots_keep_exact_prices(self) -> None:
        self.db.record(self._product(), self._offers())
        rows = self._rows(
            "SELECT platform, price, shipping, currency "
            "FROM offer_snapshots ORDER BY id"
        )
        self.assertEqual(
            rows,
            [
                ("Wong", "4.20", "5.99", "PEN"),
                ("Metro", "4.90", "0", "PEN"),
            ],
        )

    def test_snapshots_linked_to_their_search(self) -> None:
        self.db.record(self._product(), self._offers())
        self.db.record(self._product(), self._offers()[:1])
        rows = self._rows(
            "SELECT search_id, COUNT(*) FROM offer_snapshots "
            "GROUP BY search_id ORDER BY search_id"
        )
        self.assertEqual(rows, [(1, 2), (2, 1)])


if __name__ == "__main__":
    unittest.main()
