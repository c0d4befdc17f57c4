# comparador/filters/offer_normalizer.py

"""Offer normalisation: turn heterogeneous raw records into Offers."""

import logging
import re
import urllib.parse
from decimal import Decimal, InvalidOperation

from comparador.config.settings import Settings
from comparador.models.offer import Offer, PriceLike, RawOffer
from comparador.models.product import ProductQuery

logger = logging.getLogger("comparador.filters")

# Currency markers seen in Peruvian listings
_CURRENCY_RE = re.compile(
    r"(S/\.?|US\$|\$|PEN|USD|soles?)", re.IGNORECASE
)
_NUMBER_RE = re.compile(r"-?[\d.,]+")
_THOUSANDS_COMMA_RE = re.compile(r"^-?\d{1,3}(,\d{3})+$")


def parse_price(value: PriceLike) -> Decimal | None:
    """Parse a loosely formatted price into a Decimal.

    Handles ``"S/ 12,90"``, ``"S/. 1.299,00"``, ``"$1,299.99"``, plain
    numbers and Decimals.  When both separators are present the
    right-most one is the decimal mark; a lone comma followed by exactly
    three digits is a thousands separator.  Returns ``None`` when no
    number can be read.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    if isinstance(value, (int, float)):
        parsed = Decimal(str(value))
        return parsed if parsed.is_finite() else None

    text = _CURRENCY_RE.sub(" ", str(value)).replace("\xa0", " ")
    match = _NUMBER_RE.search(text.replace(" ", ""))
    if not match:
        return None
    number = match.group(0).strip(".,")
    if not number or number == "-":
        return None

    if "." in number and "," in number:
        if number.rfind(",") > number.rfind("."):
            number = number.replace(".", "").replace(",", ".")
        else:
            number = number.replace(",", "")
    elif "," in number:
        if _THOUSANDS_COMMA_RE.match(number):
            number = number.replace(",", "")
        else:
            number = number.replace(",", ".")
    elif number.count(".") > 1:
        number = number.replace(".", "")

    try:
        return Decimal(number)
    except InvalidOperation:
        return None


def is_absolute_url(url: str | None) -> bool:
    """True for an http(s) URL with a host."""
    if not url:
        return False
    parsed = urllib.parse.urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


class OfferNormalizer:
    """Validate raw offers and coerce them into the common Offer shape."""

    @staticmethod
    def absolute_url(url: str | None) -> str | None:
        """``url`` as a usable absolute link, or ``None``.

        Protocol-relative links are upgraded to https.
        """
        candidate = (url or "").strip()
        if is_absolute_url(candidate):
            return candidate
        if candidate.startswith("//"):
            upgraded = f"https:{candidate}"
            if is_absolute_url(upgraded):
                return upgraded
        return None

    @staticmethod
    def repair_url(
        url: str | None, platform: str, query: ProductQuery
    ) -> str | None:
        """Return a usable absolute URL for the offer, or ``None``.

        Anything that is not absolute falls back to the platform's search
        page for the query.
        """
        absolute = OfferNormalizer.absolute_url(url)
        if absolute is not None:
            return absolute
        template = Settings.SEARCH_URL_TEMPLATES.get(platform)
        if not template:
            return None
        return template.format(query=urllib.parse.quote(query.text))

    @staticmethod
    def _shipping(value: PriceLike) -> Decimal:
        shipping = parse_price(value)
        if shipping is None or shipping < 0:
            return Decimal("0")
        return shipping

    @staticmethod
    def normalize_one(raw: RawOffer, query: ProductQuery) -> Offer | None:
        """Normalise a single record; ``None`` means it was dropped."""
        if raw.price_on_request:
            logger.debug(
                "Dropped price-on-request offer (source=%s, name=%s)",
                raw.source_id,
                raw.name,
            )
            return None

        price = parse_price(raw.price)
        if price is None or price <= 0:
            logger.debug(
                "Dropped offer with unusable price %r (source=%s, name=%s)",
                raw.price,
                raw.source_id,
                raw.name,
            )
            return None

        platform = (raw.platform or raw.source_id).strip()
        url = OfferNormalizer.repair_url(raw.url, platform, query)
        if url is None:
            logger.debug(
                "Dropped offer with unrepairable url %r (source=%s)",
                raw.url,
                raw.source_id,
            )
            return None

        image_url = raw.image_url
        if image_url and image_url.startswith("//"):
            image_url = f"https:{image_url}"

        return Offer(
            platform=platform,
            name=(raw.name or "").strip() or query.text,
            price=price,
            currency=(raw.currency or query.currency).upper(),
            url=url,
            image_url=image_url or None,
            shipping=OfferNormalizer._shipping(raw.shipping),
            available=raw.available,
            source_id=raw.source_id,
            url_repaired=OfferNormalizer.absolute_url(raw.url) is None,
        )

    @staticmethod
    def normalize(
        raw_offers: list[RawOffer],
        query: ProductQuery,
    ) -> tuple[list[Offer], int]:
        """Normalise every record, dropping the invalid ones.

        Returns the valid offers and the count of dropped records.
        """
        offers: list[Offer] = []
        dropped = 0

        for raw in raw_offers:
            offer = OfferNormalizer.normalize_one(raw, query)
            if offer is None:
                dropped += 1
                continue
            offers.append(offer)

        if dropped:
            logger.info(
                "Normalisation dropped %d invalid offers", dropped
            )

        return offers, dropped
