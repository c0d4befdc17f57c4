# tests/test_query_cleaner.py

"""Tests for search-name construction and keyword extraction."""

import unittest

from comparador.filters.query_cleaner import QueryCleaner, strip_accents


class TestStripAccents(unittest.TestCase):
    """Diacritic removal."""

    def test_spanish_accents(self) -> None:
        self.assertEqual(
            strip_accents("Atún Piña Ñandú"), "Atun Pina Nandu"
        )


class TestBuildSearchName(unittest.TestCase):
    """QueryCleaner.build_search_name."""

    def test_prefixes_brand_and_appends_quantity(self) -> None:
        self.assertEqual(
            QueryCleaner.build_search_name(
                "Leche Evaporada Azul", "Gloria", "400 g"
            ),
            "Gloria Leche Evaporada Azul 400g",
        )

    def test_brand_not_repeated(self) -> None:
        self.assertEqual(
            QueryCleaner.build_search_name("Gloria Leche", "gloria"),
            "Gloria Leche",
        )

    def test_quantity_not_repeated(self) -> None:
        self.assertEqual(
            QueryCleaner.build_search_name("Inca Kola 1.5 L", None, "1.5L"),
            "Inca Kola 1.5 L",
        )

    def test_symbols_removed_and_word_cap(self) -> None:
        result = QueryCleaner.build_search_name(
            "Galletas (Soda) - paquete familiar x6 unidades extra",
            max_words=4,
        )
        self.assertEqual(result, "Galletas Soda paquete familiar")


class TestKeywords(unittest.TestCase):
    """QueryCleaner.keywords."""

    def test_drops_units_digits_and_stop_words(self) -> None:
        self.assertEqual(
            QueryCleaner.keywords("Leche Evaporada Gloria 400 g lata"),
            "leche evaporada gloria",
        )

    def test_accents_removed(self) -> None:
        self.assertEqual(
            QueryCleaner.keywords("Atún en Aceite Florida"),
            "atun aceite florida",
        )

    def test_max_words(self) -> None:
        self.assertEqual(
            QueryCleaner.keywords("arroz costeño extra añejo", max_words=2),
            "arroz costeno",
        )


class TestClean(unittest.TestCase):
    """QueryCleaner.clean."""

    def test_separates_units(self) -> None:
        self.assertEqual(
            QueryCleaner.clean("Inca Kola 500ml"), "inca kola 500 ml"
        )

    def test_brand_moved_first(self) -> None:
        self.assertEqual(
            QueryCleaner.clean("Leche Evaporada Gloria", brand="Gloria"),
            "gloria leche evaporada",
        )

    def test_measures_do_not_count_towards_limit(self) -> None:
        self.assertEqual(
            QueryCleaner.clean("yogurt griego batido natural fresa 1 kg"),
            "yogurt griego batido natural 1 kg",
        )


if __name__ == "__main__":
    unittest.main()
