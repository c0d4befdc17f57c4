# comparador/filters/query_cleaner.py

"""Search-name construction and keyword extraction for product queries."""

import logging
import re
import unicodedata

from comparador.config.settings import Settings

logger = logging.getLogger("comparador.filters")

# Words that add nothing to a store search
_STOP_WORDS: frozenset[str] = frozenset({
    "sin", "con", "x", "y", "de", "del", "la", "el", "los", "las",
    "pack", "unidad", "unidades", "botella", "lata", "envase",
    "frasco", "bolsa", "caja", "paquete", "plastico", "vidrio",
    "retornable", "descartable", "oferta", "precio", "gratis",
    "ml", "gr", "kg", "lt",
})

_UNITS: frozenset[str] = frozenset({"ml", "l", "kg", "g", "gr", "oz", "lt"})


def strip_accents(text: str) -> str:
    """Remove combining diacritics (á -> a, ñ -> n)."""
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(
        ch for ch in decomposed if unicodedata.category(ch) != "Mn"
    )


class QueryCleaner:
    """Turn catalog/vision product data into search-engine-friendly names."""

    @staticmethod
    def build_search_name(
        name: str,
        brand: str | None = None,
        quantity: str | None = None,
        max_words: int | None = None,
    ) -> str:
        """Compose ``brand + name + quantity`` without repetition.

        The brand is prefixed when the name does not already mention it
        and the quantity is appended compacted (``"1 kg"`` -> ``"1kg"``).
        Symbols are dropped and the result is capped at ``max_words``.
        """
        limit = max_words or Settings.MAX_QUERY_WORDS
        search_name = name.strip()
        lowered = search_name.lower()

        if brand and brand.strip() and brand.lower() not in lowered:
            search_name = f"{brand.strip()} {search_name}"

        if quantity and quantity.strip():
            compact = re.sub(r"\s+", "", quantity).lower()
            if (
                quantity.lower() not in lowered
                and compact not in lowered.replace(" ", "")
            ):
                search_name = f"{search_name} {compact}"

        search_name = re.sub(r"[^\w\s.]", " ", search_name)
        words = search_name.split()
        result = " ".join(words[:limit])
        logger.debug(
            "Search name for '%s' (brand=%s, qty=%s): '%s'",
            name,
            brand,
            quantity,
            result,
        )
        return result

    @staticmethod
    def keywords(text: str, max_words: int = 3) -> str:
        """Reduce a product name to a few accent-free search keywords.

        Stop words, unit tokens, digits and words shorter than three
        characters are removed; used by stores whose search chokes on
        long, specific names.
        """
        normalised = strip_accents(text).lower()
        normalised = re.sub(r"[^\w\s]", " ", normalised)
        normalised = re.sub(r"\d+", " ", normalised)
        words = [
            w
            for w in normalised.split()
            if len(w) > 2 and w not in _STOP_WORDS
        ]
        return " ".join(words[:max_words])

    @staticmethod
    def clean(text: str, brand: str | None = None) -> str:
        """Tidy free text: brand first, units separated, four text words.

        Numbers and unit tokens never count against the word limit so
        sizes like ``1.5 l`` survive.
        """
        cleaned = strip_accents(text).lower()
        cleaned = re.sub(r"[^\w\s.]", " ", cleaned)
        cleaned = re.sub(r"(\d+)([a-z]+)", r"\1 \2", cleaned)
        words = [
            w
            for w in cleaned.split()
            if w not in _STOP_WORDS or w in _UNITS
            if len(w) >= 2 or w.isdigit()
        ]

        if brand and brand.strip():
            brand_clean = strip_accents(brand).lower().strip()
            words = [w for w in words if w not in brand_clean.split()]
            words.insert(0, brand_clean)

        final: list[str] = []
        text_words = 0
        for word in words:
            is_measure = bool(re.search(r"\d", word)) or word in _UNITS
            if is_measure or text_words < 4:
                final.append(word)
                if not is_measure:
                    text_words += 1
        return " ".join(final)
