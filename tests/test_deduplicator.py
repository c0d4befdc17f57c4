# tests/test_deduplicator.py

"""Tests for cross-source offer deduplication."""

import unittest
from decimal import Decimal

from comparador.filters.deduplicator import OfferDeduplicator
from comparador.models.offer import Offer


def _offer(
    name: str,
    url: str,
    platform: str = "Wong",
    price: str = "10",
    repaired: bool = False,
) -> Offer:
    """Create a minimal Offer for testing."""
    return Offer(
        platform=platform,
        name=name,
        price=Decimal(price),
        currency="PEN",
        url=url,
        source_id=platform.lower(),
        url_repaired=repaired,
    )


class TestOfferDeduplicator(unittest.TestCase):
    """OfferDeduplicator unit tests."""

    def test_empty_input(self) -> None:
        self.assertEqual(OfferDeduplicator.deduplicate([]), ([], 0))

    def test_trailing_slash_and_host_case_collapse(self) -> None:
        offers = [
            _offer("A", "https://www.wong.pe/leche/p"),
            _offer("B", "https://www.wong.pe/leche/p/"),
            _offer("C", "HTTPS://WWW.WONG.PE/leche/p"),
        ]
        kept, removed = OfferDeduplicator.deduplicate(offers)
        self.assertEqual(removed, 2)
        self.assertEqual([o.name for o in kept], ["A"])

    def test_urls_differing_only_in_query_are_distinct(self) -> None:
        """Shopping links share a path and differ by product id."""
        base = "https://www.google.com/search?ibp=oshop&prds=pid:"
        offers = [
            _offer("Leche", base + "111", platform="Plaza Vea"),
            _offer("Leche", base + "222", platform="Rappi"),
        ]
        kept, removed = OfferDeduplicator.deduplicate(offers)
        self.assertEqual(len(kept), 2)
        self.assertEqual(removed, 0)

    def test_path_case_is_significant(self) -> None:
        offers = [
            _offer("A", "https://www.wong.pe/Leche/p"),
            _offer("B", "https://www.wong.pe/leche/p"),
        ]
        kept, _ = OfferDeduplicator.deduplicate(offers)
        self.assertEqual(len(kept), 2)

    def test_first_seen_wins(self) -> None:
        offers = [
            _offer("Caro", "https://www.wong.pe/x/p", price="20"),
            _offer("Barato", "https://www.wong.pe/x/p", price="5"),
        ]
        kept, _ = OfferDeduplicator.deduplicate(offers)
        self.assertEqual(kept[0].name, "Caro")

    def test_distinct_urls_kept(self) -> None:
        offers = [
            _offer("Leche", "https://www.wong.pe/a/p"),
            _offer("Leche", "https://www.metro.pe/a/p", platform="Metro"),
        ]
        kept, removed = OfferDeduplicator.deduplicate(offers)
        self.assertEqual(len(kept), 2)
        self.assertEqual(removed, 0)

    def test_name_key_when_url_unusable(self) -> None:
        key = OfferDeduplicator.dedup_key(
            _offer("  Leche GLORIA ", "not a url")
        )
        self.assertEqual(key, "Wong:leche gloria")

    def test_repaired_url_falls_back_to_name_key(self) -> None:
        search = "https://www.wong.pe/leche?_q=leche&map=ft"
        offers = [
            _offer("Leche Gloria 400g", search, repaired=True),
            _offer("Leche Gloria Light 400g", search, repaired=True),
            _offer("leche gloria 400g ", search, repaired=True),
        ]
        self.assertEqual(
            OfferDeduplicator.dedup_key(offers[0]), "Wong:leche gloria 400g"
        )
        kept, removed = OfferDeduplicator.deduplicate(offers)
        self.assertEqual(
            [o.name for o in kept],
            ["Leche Gloria 400g", "Leche Gloria Light 400g"],
        )
        self.assertEqual(removed, 1)

    def test_idempotent(self) -> None:
        offers = [
            _offer("A", "https://www.wong.pe/a/p"),
            _offer("A2", "https://www.wong.pe/a/p/"),
            _offer("A3", "https://www.wong.pe/a/p?x=1"),
            _offer("B", "https://www.wong.pe/b/p"),
            _offer("C", "bad"),
            _offer("c", "bad"),
        ]
        once, _ = OfferDeduplicator.deduplicate(offers)
        twice, removed = OfferDeduplicator.deduplicate(once)
        self.assertEqual(once, twice)
        self.assertEqual(removed, 0)
        self.assertEqual(len(once), 4)


if __name__ == "__main__":
    unittest.main()
