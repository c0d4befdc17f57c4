# tests/test_tottus_adapter.py

"""Tests for the browser-backed Tottus adapter."""

import unittest
from pathlib import Path
from unittest.mock import MagicMock, patch

from comparador.adapters.tottus_adapter import TottusAdapter
from comparador.clients.browser import BrowserTimeout

FIXTURES_DIR = Path(__file__).parent / "fixtures"


class TestTottusAdapter(unittest.TestCase):
    """Tests for the Tottus adapter with the browser mocked out."""

    def setUp(self) -> None:
        self.adapter = TottusAdapter()
        self.adapter.rate_limiter = MagicMock()
        self.html = (FIXTURES_DIR / "tottus_results.html").read_text(
            encoding="utf-8"
        )

    def test_parse_results(self) -> None:
        offers = self.adapter.parse_results(self.html)
        self.assertEqual(len(offers), 2)

        first, second = offers
        self.assertEqual(first.name, "Leche Evaporada Gloria Azul 400 g")
        self.assertEqual(first.price, "S/ 4,10")
        self.assertEqual(
            first.url,
            "https://www.tottus.com.pe/"
            "leche-evaporada-gloria-azul-400g-20194515/p/",
        )
        self.assertEqual(first.currency, "PEN")

        self.assertEqual(second.name, "Leche Gloria Light 400 g")
        self.assertEqual(second.price, "S/ 4.60 UN")
        self.assertEqual(
            second.image_url,
            "https://tottus.falabella.com/images/gloria-light.jpg",
        )

    def test_search_renders_cleaned_query(self) -> None:
        with patch.object(
            TottusAdapter, "_render", return_value=self.html
        ) as mock_render:
            offers = self.adapter.search("Leche Evaporada Gloria 400g")

        self.assertEqual(len(offers), 2)
        mock_render.assert_called_once_with(
            "https://www.tottus.com.pe/buscar?q=leche%20evaporada%20gloria"
        )
        self.adapter.rate_limiter.wait.assert_called_once()

    def test_short_query_skipped(self) -> None:
        with patch.object(TottusAdapter, "_render") as mock_render:
            self.assertEqual(self.adapter.search("de 1 kg"), [])
        mock_render.assert_not_called()

    def test_browser_timeout_returns_empty(self) -> None:
        with patch.object(
            TottusAdapter,
            "_render",
            side_effect=BrowserTimeout("budget exceeded"),
        ):
            self.assertEqual(self.adapter.search("leche gloria"), [])

    def test_unexpected_error_returns_empty(self) -> None:
        with patch.object(
            TottusAdapter, "_render", side_effect=RuntimeError("crash")
        ):
            self.assertEqual(self.adapter.search("leche gloria"), [])

    def test_uses_browser_flag(self) -> None:
        self.assertTrue(self.adapter.uses_browser)


if __name__ == "__main__":
    unittest.main()
