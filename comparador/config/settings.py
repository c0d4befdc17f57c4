# comparador/config/settings.py

"""Central configuration for the comparador pipeline."""

import os
from pathlib import Path
from typing import Any

from curl_cffi.requests import BrowserTypeLiteral
from dotenv import load_dotenv

load_dotenv()


def _env_float(name: str, default: float) -> float:
    """Read a float override from the environment."""
    raw = os.getenv(name, "")
    try:
        return float(raw) if raw else default
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    """Read an int override from the environment."""
    raw = os.getenv(name, "")
    try:
        return int(raw) if raw else default
    except ValueError:
        return default


class Settings:
    """Central configuration for the comparador pipeline."""

    # --- Credentials ---
    SERPAPI_KEY: str = os.getenv("SERPAPI_KEY", "")
    GEMINI_API_KEY: str = os.getenv("GEMINI_API_KEY", "")
    GEMINI_MODEL: str = "gemini-1.5-flash"

    # --- Locale ---
    DEFAULT_CURRENCY: str = os.getenv("COMPARADOR_CURRENCY", "PEN")
    DEFAULT_LOCALE: str = "es-PE"
    DEFAULT_SHIPPING: str = "5.99"     # Market offers without free delivery

    # --- Scraping ---
    REQUEST_DELAY: float = _env_float(
        "COMPARADOR_REQUEST_DELAY", 2.0
    )                                   # Default politeness window (secs)
    REQUEST_TIMEOUT: int = 15           # Seconds before a request times out
    MAX_RETRIES: int = 3                # Retry count on transient failures
    MAX_RESULTS_PER_SOURCE: int = 10    # Cap per adapter
    RATE_LIMITS: dict[str, float] = {
        "mercado_libre": 3.0,
        "tottus": 6.0,
    }
    RATE_LIMIT_JITTER: float = 1.0      # Random extra wait for scrapers

    # --- Browser automation ---
    PAGE_LOAD_BUDGET: float = 30.0      # Hard wall-clock cap per page (secs)
    SELECTOR_WAIT: float = 15.0         # Wait for result cards (secs)
    VIEWPORT_BASE: tuple[int, int] = (1366, 768)
    VIEWPORT_JITTER: int = 100

    # --- Resilience ---
    CIRCUIT_BREAKER_THRESHOLD: int = 3  # Consecutive failures to trip
    CIRCUIT_BREAKER_COOLDOWN: float = 300.0
    MAX_DELAY_MULTIPLIER: int = 8       # Cap for adaptive backoff
    CAPTCHA_KEYWORDS: list[str] = [
        "captcha",
        "verify you are human",
        "unusual traffic",
        "no eres un robot",
    ]

    # --- Aggregation ---
    ADAPTER_TIMEOUT: float = _env_float(
        "COMPARADOR_ADAPTER_TIMEOUT", 45.0
    )
    MAX_BROWSER_ADAPTERS: int = _env_int(
        "COMPARADOR_MAX_BROWSER_ADAPTERS", 2
    )
    MAX_HTTP_ADAPTERS: int = _env_int(
        "COMPARADOR_MAX_HTTP_ADAPTERS", 8
    )
    CACHE_TTL: float = _env_float("COMPARADOR_CACHE_TTL", 1800.0)
    OUTLIER_MIN_SAMPLES: int = 4        # Filter only above this size
    OUTLIER_IQR_FACTOR: str = "1.5"

    # --- Identification ---
    CATALOG_TIMEOUT: float = 8.0
    VISION_TIMEOUT: float = 20.0
    WEB_SEARCH_TIMEOUT: float = 30.0
    MAX_IMAGE_BYTES: int = 5 * 1024 * 1024
    MAX_QUERY_WORDS: int = 6

    # --- Browser Impersonation ---
    IMPERSONATE_BROWSER: BrowserTypeLiteral = "chrome131"
    DEFAULT_HEADERS: dict[str, str] = {
        "Accept": (
            "text/html,application/xhtml+xml,"
            "application/xml;q=0.9,image/avif,"
            "image/webp,image/apng,*/*;q=0.8"
        ),
        "Accept-Language": "es-PE,es-419;q=0.9,es;q=0.8,en;q=0.7",
        "sec-ch-ua": (
            '"Google Chrome";v="131", '
            '"Chromium";v="131", '
            '"Not_A Brand";v="24"'
        ),
        "sec-ch-ua-mobile": "?0",
        "sec-ch-ua-platform": '"Windows"',
        "sec-fetch-dest": "document",
        "sec-fetch-mode": "navigate",
        "sec-fetch-site": "none",
        "sec-fetch-user": "?1",
        "Upgrade-Insecure-Requests": "1",
    }
    USER_AGENTS: list[str] = [
        (
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
            "AppleWebKit/537.36 (KHTML, like Gecko) "
            "Chrome/131.0.0.0 Safari/537.36"
        ),
        (
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
            "AppleWebKit/537.36 (KHTML, like Gecko) "
            "Chrome/130.0.0.0 Safari/537.36"
        ),
        (
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:132.0) "
            "Gecko/20100101 Firefox/132.0"
        ),
        (
            "Mozilla/5.0 (X11; Linux x86_64) "
            "AppleWebKit/537.36 (KHTML, like Gecko) "
            "Chrome/129.0.0.0 Safari/537.36"
        ),
    ]

    # --- Paths ---
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    SELECTORS_PATH: Path = (
        BASE_DIR / "comparador" / "config" / "selectors.json"
    )
    LOGS_DIR: Path = BASE_DIR / "logs"
    HISTORY_DB_PATH: Path = BASE_DIR / "data" / "search_history.db"

    # --- URL repair: per-platform search-results templates ---
    SEARCH_URL_TEMPLATES: dict[str, str] = {
        "Plaza Vea": "https://www.plazavea.com.pe/search/?_query={query}",
        "Wong": "https://www.wong.pe/{query}?_q={query}&map=ft",
        "Metro": "https://www.metro.pe/{query}?_q={query}&map=ft",
        "Mercado Libre": "https://listado.mercadolibre.com.pe/{query}",
        "Tottus": "https://www.tottus.com.pe/buscar?q={query}",
        "Google Shopping": (
            "https://www.google.com/search?tbm=shop&q={query}"
        ),
    }

    # --- Sources (registry populated at startup) ---
    AVAILABLE_SOURCES: list[dict[str, Any]] = [
        {
            "id": "plaza_vea",
            "label": "Plaza Vea",
            "adapter": (
                "comparador.adapters.vtex_catalog_adapter."
                "VtexCatalogAdapter"
            ),
            "kwargs": {
                "source_id": "plaza_vea",
                "platform": "Plaza Vea",
                "base_url": "https://www.plazavea.com.pe",
            },
        },
        {
            "id": "wong",
            "label": "Wong",
            "adapter": (
                "comparador.adapters.vtex_catalog_adapter."
                "VtexCatalogAdapter"
            ),
            "kwargs": {
                "source_id": "wong",
                "platform": "Wong",
                "base_url": "https://www.wong.pe",
            },
        },
        {
            "id": "metro",
            "label": "Metro",
            "adapter": (
                "comparador.adapters.vtex_catalog_adapter."
                "VtexCatalogAdapter"
            ),
            "kwargs": {
                "source_id": "metro",
                "platform": "Metro",
                "base_url": "https://www.metro.pe",
            },
        },
        {
            "id": "google_shopping",
            "label": "Google Shopping",
            "adapter": (
                "comparador.adapters.shopping_search_adapter."
                "ShoppingSearchAdapter"
            ),
        },
        {
            "id": "mercado_libre",
            "label": "Mercado Libre",
            "adapter": (
                "comparador.adapters.mercado_libre_adapter."
                "MercadoLibreAdapter"
            ),
        },
        {
            "id": "tottus",
            "label": "Tottus",
            "adapter": (
                "comparador.adapters.tottus_adapter.TottusAdapter"
            ),
        },
    ]
