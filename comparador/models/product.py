# comparador/models/product.py

"""Query and identification models shared by the resolver and engine."""

import re
from dataclasses import dataclass, field
from enum import Enum, IntEnum

from comparador.config.settings import Settings
from comparador.models.offer import Offer

_WHITESPACE_RE = re.compile(r"\s+")


def normalise_key(text: str) -> str:
    """Lower-case and collapse whitespace for cache/lookup keys."""
    return _WHITESPACE_RE.sub(" ", text).strip().lower()


@dataclass(frozen=True)
class ProductQuery:
    """A search string plus optional barcode and locale hints."""

    text: str
    barcode: str | None = None
    currency: str = Settings.DEFAULT_CURRENCY
    locale: str = Settings.DEFAULT_LOCALE

    @property
    def cache_key(self) -> str:
        """Normalised query string used as the cache key."""
        return normalise_key(self.text)


class Confidence(IntEnum):
    """How sure an identification step is; ordered low < medium < high."""

    LOW = 1
    MEDIUM = 2
    HIGH = 3

    @classmethod
    def from_label(cls, label: str | None) -> "Confidence":
        """Parse 'high'/'medium'/'low'; anything else is LOW."""
        try:
            return cls[str(label or "").strip().upper()]
        except KeyError:
            return cls.LOW

    @property
    def label(self) -> str:
        """Lower-case name for serialisation."""
        return self.name.lower()


class IdentificationSource(Enum):
    """Which fallback step produced an identification."""

    FREE_TEXT = "free_text"
    CATALOG = "catalog"
    VISION = "vision"
    WEB_SEARCH = "web_search"


@dataclass
class IdentificationInput:
    """Raw user input: any combination of barcode, photo and text."""

    barcode: str | None = None
    image_bytes: bytes | None = None
    free_text: str | None = None

    @property
    def is_ambiguous(self) -> bool:
        """True when no usable free text was supplied."""
        return not (self.free_text and self.free_text.strip())


@dataclass
class IdentifiedProduct:
    """Canonical product produced once per request by the resolver."""

    canonical_name: str
    source_of_identification: IdentificationSource
    confidence: Confidence
    brand: str | None = None
    category: str | None = None
    barcode: str | None = None

    def to_dict(self) -> dict[str, str | None]:
        """Serialise to JSON-friendly primitives."""
        return {
            "name": self.canonical_name,
            "brand": self.brand,
            "category": self.category,
            "barcode": self.barcode,
            "source": self.source_of_identification.value,
            "confidence": self.confidence.label,
        }


@dataclass
class CatalogProduct:
    """Product record returned by the local catalog collaborator."""

    barcode: str
    name: str
    brand: str | None = None
    category: str | None = None
    quantity: str | None = None
    image_url: str | None = None


@dataclass
class VisionResult:
    """Candidate identification returned by the vision collaborator."""

    name: str
    confidence: Confidence
    brand: str | None = None
    category: str | None = None
    quantity: str | None = None


@dataclass
class ResolutionFailure:
    """No identification step succeeded; callers map this to not-found."""

    reason: str
    attempted: list[IdentificationSource] = field(
        default_factory=lambda: list[IdentificationSource]()
    )


@dataclass
class PricingResult:
    """Identified product plus its aggregated offers."""

    product: IdentifiedProduct
    offers: list[Offer] = field(
        default_factory=lambda: list[Offer]()
    )

    @property
    def is_empty(self) -> bool:
        """True when every source came back empty (a valid outcome)."""
        return not self.offers
