# comparador/filters/outlier_filter.py

"""Interquartile-range price filter for broad market-search results."""

import logging
import statistics
from decimal import Decimal

from comparador.config.settings import Settings
from comparador.models.offer import Offer

logger = logging.getLogger("comparador.filters")


class OutlierFilter:
    """Drop offers whose price is implausible relative to the others.

    Prices outside ``[Q1 - k*IQR, Q3 + k*IQR]`` are removed.  Small
    samples are returned untouched since quartiles mean little there.
    """

    def __init__(
        self,
        min_samples: int | None = None,
        factor: Decimal | str | None = None,
    ) -> None:
        self.min_samples = (
            min_samples
            if min_samples is not None
            else Settings.OUTLIER_MIN_SAMPLES
        )
        self.factor = Decimal(
            factor if factor is not None else Settings.OUTLIER_IQR_FACTOR
        )

    def bounds(self, prices: list[Decimal]) -> tuple[Decimal, Decimal]:
        """Lower and upper acceptance bounds for ``prices``."""
        q1, _median, q3 = statistics.quantiles(
            prices, n=4, method="inclusive"
        )
        iqr = q3 - q1
        return q1 - self.factor * iqr, q3 + self.factor * iqr

    def filter(self, offers: list[Offer]) -> tuple[list[Offer], int]:
        """Return the offers within bounds and the count removed."""
        if len(offers) <= self.min_samples:
            return list(offers), 0

        low, high = self.bounds([o.price for o in offers])
        kept = [o for o in offers if low <= o.price <= high]
        removed = len(offers) - len(kept)

        if removed:
            logger.info(
                "Outlier filter removed %d offers outside [%s, %s]",
                removed,
                low,
                high,
            )

        return kept, removed
