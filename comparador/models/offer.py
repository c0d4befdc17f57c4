# comparador/models/offer.py

"""Offer data models for inter-module data flow."""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any

PriceLike = str | float | int | Decimal | None


@dataclass
class RawOffer:
    """Source-specific record emitted by one adapter before normalisation."""

    source_id: str
    platform: str
    name: str
    price: PriceLike
    currency: str | None = None
    url: str | None = None
    image_url: str | None = None
    shipping: PriceLike = None
    available: bool = True
    price_on_request: bool = False


@dataclass(frozen=True)
class Offer:
    """Normalised, validated price record for one product at one platform."""

    platform: str
    name: str
    price: Decimal
    currency: str
    url: str
    image_url: str | None = None
    shipping: Decimal = Decimal("0")
    available: bool = True
    source_id: str = ""
    # url points at a search page built from the query, not the product
    url_repaired: bool = False

    @property
    def total_price(self) -> Decimal:
        """Price including shipping, used for ranking."""
        return self.price + self.shipping

    def to_dict(self) -> dict[str, Any]:
        """Serialise to JSON-friendly primitives."""
        return {
            "platform": self.platform,
            "name": self.name,
            "price": float(self.price),
            "currency": self.currency,
            "url": self.url,
            "imageUrl": self.image_url,
            "shipping": float(self.shipping),
            "available": self.available,
        }


class SourceStatus(Enum):
    """Terminal state of one adapter call."""

    SUCCESS = "success"
    FAILURE = "failure"
    TIMEOUT = "timeout"


@dataclass
class SourceOutcome:
    """Result of one adapter call within a single aggregation."""

    source_id: str
    status: SourceStatus
    offers: list[RawOffer] = field(
        default_factory=lambda: list[RawOffer]()
    )
    error: str | None = None
    elapsed: float = 0.0
