# tests/test_outlier_filter.py

"""Tests for the IQR price outlier filter."""

import unittest
from decimal import Decimal

from comparador.filters.outlier_filter import OutlierFilter
from comparador.models.offer import Offer


def _offers(*prices: str) -> list[Offer]:
    """One offer per price, each on a distinct URL."""
    return [
        Offer(
            platform=f"Tienda {i}",
            name="Leche Gloria",
            price=Decimal(p),
            currency="PEN",
            url=f"https://tienda{i}.pe/leche",
            source_id="google_shopping",
        )
        for i, p in enumerate(prices)
    ]


class TestOutlierFilter(unittest.TestCase):
    """OutlierFilter unit tests."""

    def setUp(self) -> None:
        self.filter = OutlierFilter()

    def test_four_or_fewer_is_noop(self) -> None:
        offers = _offers("2", "3", "2.5", "900")
        kept, removed = self.filter.filter(offers)
        self.assertEqual(kept, offers)
        self.assertEqual(removed, 0)

    def test_extreme_price_removed(self) -> None:
        offers = _offers("2", "2.5", "3", "2.8", "450")
        kept, removed = self.filter.filter(offers)
        self.assertEqual(removed, 1)
        self.assertEqual(
            sorted(o.price for o in kept),
            [Decimal("2"), Decimal("2.5"), Decimal("2.8"), Decimal("3")],
        )

    def test_low_outlier_removed(self) -> None:
        offers = _offers("0.05", "40", "42", "41", "39", "43")
        kept, removed = self.filter.filter(offers)
        self.assertEqual(removed, 1)
        self.assertNotIn(Decimal("0.05"), [o.price for o in kept])

    def test_tight_cluster_untouched(self) -> None:
        offers = _offers("10", "10.5", "11", "10.2", "10.8", "10.4")
        kept, removed = self.filter.filter(offers)
        self.assertEqual(removed, 0)
        self.assertEqual(len(kept), 6)

    def test_bounds_use_inclusive_quartiles(self) -> None:
        low, high = self.filter.bounds(
            [Decimal(p) for p in ("2", "2.5", "2.8", "3", "450")]
        )
        self.assertEqual(low, Decimal("1.75"))
        self.assertEqual(high, Decimal("3.75"))

    def test_custom_min_samples(self) -> None:
        strict = OutlierFilter(min_samples=3)
        kept, removed = strict.filter(_offers("1", "1.1", "1.2", "50"))
        self.assertEqual(removed, 1)
        self.assertEqual(len(kept), 3)


if __name__ == "__main__":
    unittest.main()
