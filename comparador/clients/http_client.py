# comparador/clients/http_client.py

"""Rate-limited HTTP client shared by the plain-HTTP adapters."""

import json
import logging
import time
from typing import Any

import cloudscraper  # type: ignore[import-untyped]
from bs4 import BeautifulSoup
from curl_cffi import requests as curl_requests

from comparador.clients.rate_limiter import RateLimiter
from comparador.config.settings import Settings


class RateLimitedClient:
    """curl_cffi session with politeness, retries and a circuit breaker.

    Every request first passes through the owning adapter's
    :class:`RateLimiter`.  HTML pages fall back to cloudscraper when
    the impersonated session is exhausted.
    """

    # Challenge page markers (checked before the keyword scan)
    _CHALLENGE_MARKERS: list[str] = [
        "challenges.cloudflare.com",
        "cdn-cgi/challenge-platform",
        "just a moment",
        "cf-turnstile",
        "cf_chl_opt",
    ]

    def __init__(
        self,
        source_id: str,
        rate_limiter: RateLimiter | None = None,
        timeout: int | None = None,
    ) -> None:
        self.source_id = source_id
        self.logger = logging.getLogger(f"comparador.{source_id}")
        self.settings = Settings()
        self.rate_limiter = rate_limiter or RateLimiter(
            0.0, name=source_id
        )
        self.session = curl_requests.Session(
            impersonate=self.settings.IMPERSONATE_BROWSER
        )
        self._request_timeout: int = (
            timeout or self.settings.REQUEST_TIMEOUT
        )
        self._backoff: float = self.settings.REQUEST_DELAY
        self._consecutive_failures: int = 0
        self._circuit_open: bool = False
        self._circuit_opened_at: float = 0.0

    # ── Response validation ──────────────────────────────

    def _validate_response(
        self, resp: curl_requests.Response,
    ) -> bool:
        """Reject challenge pages and CAPTCHA interstitials."""
        text = resp.text
        if text.lstrip().startswith(("{", "[")):
            return True
        lower = text.lower()

        for marker in self._CHALLENGE_MARKERS:
            if marker in lower:
                self.logger.warning(
                    "[%s] Challenge page detected (marker: '%s')",
                    self.source_id,
                    marker,
                )
                return False

        # Real result pages are large; only scan small bodies
        has_body_content = "<body" in lower and len(text) > 5000
        if not has_body_content:
            for keyword in self.settings.CAPTCHA_KEYWORDS:
                if keyword in lower:
                    self.logger.warning(
                        "[%s] CAPTCHA keyword '%s' detected",
                        self.source_id,
                        keyword,
                    )
                    return False
        return True

    # ── Circuit breaker ──────────────────────────────────

    @property
    def circuit_open(self) -> bool:
        """Whether the breaker is currently tripped."""
        return self._circuit_open

    def _check_circuit(self) -> bool:
        """Return True if the circuit breaker blocks this request.

        After CIRCUIT_BREAKER_COOLDOWN seconds the breaker half-opens
        and lets a single probe request through.
        """
        if not self._circuit_open:
            return False
        elapsed = time.monotonic() - self._circuit_opened_at
        if elapsed >= self.settings.CIRCUIT_BREAKER_COOLDOWN:
            self.logger.info(
                "[%s] Circuit breaker half-open after %.0fs",
                self.source_id,
                elapsed,
            )
            self._circuit_open = False
            return False
        return True

    def _record_success(self) -> None:
        self._consecutive_failures = 0
        self._circuit_open = False
        self._circuit_opened_at = 0.0
        self._backoff = self.settings.REQUEST_DELAY

    def _record_failure(self) -> None:
        self._consecutive_failures += 1
        if (
            self._consecutive_failures
            >= self.settings.CIRCUIT_BREAKER_THRESHOLD
        ):
            self._circuit_open = True
            self._circuit_opened_at = time.monotonic()
            self.logger.error(
                "[%s] Circuit breaker opened after %d "
                "consecutive failures",
                self.source_id,
                self._consecutive_failures,
            )

    def _escalate_delay(self) -> None:
        """Double the backoff up to the configured max."""
        max_delay = (
            self.settings.REQUEST_DELAY
            * self.settings.MAX_DELAY_MULTIPLIER
        )
        self._backoff = min(self._backoff * 2, max_delay)
        self.logger.warning(
            "[%s] Rate-limited, backoff escalated to %.1fs",
            self.source_id,
            self._backoff,
        )

    # ── Fetching ─────────────────────────────────────────

    def get(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
    ) -> curl_requests.Response | None:
        """GET with politeness, retries and circuit breaker.

        Returns ``None`` when every attempt failed; never raises.
        """
        if self._check_circuit():
            self.logger.debug(
                "[%s] Circuit open, skipping %s", self.source_id, url
            )
            return None
        merged = {**self.settings.DEFAULT_HEADERS, **(headers or {})}
        for attempt in range(self.settings.MAX_RETRIES):
            self.rate_limiter.wait()
            try:
                resp = self.session.get(
                    url,
                    headers=merged,
                    params=params,
                    timeout=self._request_timeout,
                )
                if resp.status_code == 200:
                    if not self._validate_response(resp):
                        self._escalate_delay()
                        time.sleep(self._backoff)
                        continue
                    self._record_success()
                    return resp
                self.logger.warning(
                    "[%s] HTTP %d on attempt %d",
                    self.source_id,
                    resp.status_code,
                    attempt + 1,
                )
                if resp.status_code == 404:
                    # Not-found is an answer, not a source failure
                    return None
                if resp.status_code in (429, 403):
                    self._escalate_delay()
                    time.sleep(self._backoff)
            except Exception as exc:
                self.logger.warning(
                    "[%s] Request error on attempt %d: %s",
                    self.source_id,
                    attempt + 1,
                    exc,
                    exc_info=True,
                )
                time.sleep(self._backoff * (attempt + 1))
        self._record_failure()
        return None

    def get_json(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
    ) -> Any | None:
        """GET and decode a JSON body; ``None`` on any failure."""
        json_headers = {"Accept": "application/json", **(headers or {})}
        resp = self.get(url, json_headers, params)
        if resp is None:
            return None
        try:
            return json.loads(resp.text)
        except (json.JSONDecodeError, TypeError) as exc:
            self.logger.warning(
                "[%s] Invalid JSON from %s: %s",
                self.source_id,
                url,
                exc,
            )
            return None

    def get_page(
        self,
        url: str,
        headers: dict[str, str] | None = None,
    ) -> BeautifulSoup | None:
        """Fetch an HTML page, falling back to cloudscraper on failure."""
        if self._check_circuit():
            return None

        resp = self.get(url, headers)
        if resp is not None:
            return BeautifulSoup(resp.text, "lxml")

        self.logger.info(
            "[%s] curl_cffi exhausted, falling back to cloudscraper",
            self.source_id,
        )
        self.rate_limiter.wait()
        try:
            _cs: Any = cloudscraper
            scraper: Any = _cs.create_scraper()
            fallback_resp: Any = scraper.get(
                url,
                headers={
                    **self.settings.DEFAULT_HEADERS,
                    **(headers or {}),
                },
                timeout=self._request_timeout,
            )
            if fallback_resp.status_code == 200:
                return BeautifulSoup(str(fallback_resp.text), "lxml")
            self.logger.warning(
                "[%s] cloudscraper HTTP %d",
                self.source_id,
                fallback_resp.status_code,
            )
        except Exception as exc:
            self.logger.error(
                "[%s] cloudscraper fallback also failed: %s",
                self.source_id,
                exc,
                exc_info=True,
            )
        return None
