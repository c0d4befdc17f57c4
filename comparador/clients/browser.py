# comparador/clients/browser.py

"""Headless browser helper for JavaScript-rendered sources.

Wraps Playwright's synchronous API so browser-backed adapters can run
in the engine's worker threads like every other adapter.  Each session
gets a randomised viewport, User-Agent and Accept-Language ordering,
and every page load is capped by ``Settings.PAGE_LOAD_BUDGET``.
"""

from __future__ import annotations

import logging
import platform
import random
from types import TracebackType

from playwright.sync_api import Browser, BrowserContext, Playwright
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeout
from playwright.sync_api import sync_playwright

from comparador.config.settings import Settings

logger = logging.getLogger("comparador.browser")

_LANGUAGE_VARIANTS: list[str] = [
    "es-PE,es-419;q=0.9,es;q=0.8,en;q=0.7",
    "es-PE,es;q=0.9,en-US;q=0.8,en;q=0.7",
    "es-419,es;q=0.9,es-PE;q=0.8,en;q=0.6",
]


class BrowserTimeout(Exception):
    """A page load exceeded the hard wall-clock budget."""


def build_launch_args() -> list[str]:
    """Chromium flags for headless runs inside containers."""
    args: list[str] = [
        "--disable-blink-features=AutomationControlled",
        "--disable-dev-shm-usage",
        "--disable-gpu",
        "--disable-extensions",
        "--no-first-run",
        "--no-default-browser-check",
    ]
    if platform.system().lower() == "linux":
        args.extend(["--no-sandbox", "--disable-setuid-sandbox"])
    return args


def random_fingerprint() -> dict[str, object]:
    """Pick a viewport, User-Agent and header set for one session."""
    width, height = Settings.VIEWPORT_BASE
    jitter = Settings.VIEWPORT_JITTER
    return {
        "viewport": {
            "width": width + random.randint(0, jitter),
            "height": height + random.randint(0, jitter),
        },
        "user_agent": random.choice(Settings.USER_AGENTS),
        "extra_http_headers": {
            "Accept-Language": random.choice(_LANGUAGE_VARIANTS),
            "Accept": Settings.DEFAULT_HEADERS["Accept"],
            "Referer": "https://www.google.com/",
        },
    }


class BrowserSession:
    """Context manager owning one Playwright browser and context."""

    def __init__(
        self,
        page_load_budget: float | None = None,
        headless: bool = True,
    ) -> None:
        self.page_load_budget = (
            page_load_budget or Settings.PAGE_LOAD_BUDGET
        )
        self.headless = headless
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None

    def __enter__(self) -> BrowserSession:
        self._playwright = sync_playwright().start()
        self._browser = self._playwright.chromium.launch(
            headless=self.headless,
            args=build_launch_args(),
            timeout=self.page_load_budget * 1000,
        )
        fingerprint = random_fingerprint()
        self._context = self._browser.new_context(
            locale=Settings.DEFAULT_LOCALE,
            **fingerprint,  # type: ignore[arg-type]
        )
        logger.debug(
            "Browser session started (viewport=%s)",
            fingerprint["viewport"],
        )
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        """Tear down context, browser and driver, ignoring close errors."""
        for closer in (self._context, self._browser):
            if closer is None:
                continue
            try:
                closer.close()
            except PlaywrightError as exc:
                logger.debug("Browser close error: %s", exc)
        if self._playwright is not None:
            try:
                self._playwright.stop()
            except PlaywrightError as exc:
                logger.debug("Playwright stop error: %s", exc)
        self._context = None
        self._browser = None
        self._playwright = None

    def render(
        self,
        url: str,
        wait_selector: str | None = None,
        wait_timeout: float | None = None,
    ) -> str:
        """Load ``url`` and return the rendered HTML.

        Navigation past the page-load budget raises
        :class:`BrowserTimeout`.  A selector that never appears is not
        an error: whatever has rendered so far is returned.
        """
        if self._context is None:
            raise RuntimeError("BrowserSession used outside 'with'")
        budget_ms = self.page_load_budget * 1000
        page = self._context.new_page()
        page.set_default_timeout(budget_ms)
        try:
            try:
                page.goto(
                    url,
                    wait_until="domcontentloaded",
                    timeout=budget_ms,
                )
            except PlaywrightTimeout as exc:
                raise BrowserTimeout(
                    f"Page load exceeded {self.page_load_budget:.0f}s: {url}"
                ) from exc

            if wait_selector:
                selector_ms = min(
                    (wait_timeout or Settings.SELECTOR_WAIT) * 1000,
                    budget_ms,
                )
                try:
                    page.wait_for_selector(
                        wait_selector, timeout=selector_ms
                    )
                except PlaywrightTimeout:
                    logger.info(
                        "Selector '%s' not found within %.0fms, "
                        "returning partial page",
                        wait_selector,
                        selector_ms,
                    )
            # Trigger lazy-loaded cards
            page.mouse.wheel(0, 1500 + random.randint(0, 1000))
            page.wait_for_timeout(500 + random.randint(0, 500))
            return page.content()
        finally:
            page.close()
