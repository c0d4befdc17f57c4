# tests/test_http_client.py

"""Tests for the rate-limited HTTP client."""

import unittest
from unittest.mock import MagicMock, patch

from comparador.clients.http_client import RateLimitedClient
from comparador.clients.rate_limiter import RateLimiter

SESSION = "comparador.clients.http_client.curl_requests.Session"


def _resp(status: int = 200, text: str = "{}") -> MagicMock:
    """Build a mock curl_cffi response."""
    resp = MagicMock()
    resp.status_code = status
    resp.text = text
    return resp


class TestRateLimitedClient(unittest.TestCase):
    """RateLimitedClient unit tests."""

    @patch(SESSION)
    def test_consults_rate_limiter_before_each_attempt(
        self, mock_session_cls: MagicMock
    ) -> None:
        session = mock_session_cls.return_value
        session.get.side_effect = [_resp(500), _resp(200, "[1, 2]")]
        limiter = MagicMock(spec=RateLimiter)

        client = RateLimitedClient("test", limiter)
        self.assertEqual(client.get_json("https://x.pe/api"), [1, 2])
        self.assertEqual(limiter.wait.call_count, 2)

    @patch(SESSION)
    def test_404_returns_none_without_failure(
        self, mock_session_cls: MagicMock
    ) -> None:
        session = mock_session_cls.return_value
        session.get.return_value = _resp(404)

        client = RateLimitedClient("test")
        self.assertIsNone(client.get("https://x.pe/missing"))
        self.assertEqual(session.get.call_count, 1)
        self.assertEqual(client._consecutive_failures, 0)

    @patch(SESSION)
    def test_default_headers_merged(
        self, mock_session_cls: MagicMock
    ) -> None:
        session = mock_session_cls.return_value
        session.get.return_value = _resp(200, "{}")

        client = RateLimitedClient("test")
        client.get("https://x.pe", headers={"Referer": "https://x.pe/"})
        headers = session.get.call_args.kwargs["headers"]
        self.assertEqual(headers["Referer"], "https://x.pe/")
        self.assertIn("es-PE", headers["Accept-Language"])

    @patch(SESSION)
    def test_circuit_opens_after_threshold(
        self, mock_session_cls: MagicMock
    ) -> None:
        session = mock_session_cls.return_value
        session.get.return_value = _resp(500)

        client = RateLimitedClient("test")
        threshold = client.settings.CIRCUIT_BREAKER_THRESHOLD
        for _ in range(threshold):
            self.assertIsNone(client.get("https://x.pe"))
        self.assertTrue(client.circuit_open)

        calls = session.get.call_count
        self.assertIsNone(client.get("https://x.pe"))
        self.assertEqual(session.get.call_count, calls)

    @patch(SESSION)
    def test_success_resets_failures(
        self, mock_session_cls: MagicMock
    ) -> None:
        session = mock_session_cls.return_value
        session.get.return_value = _resp(500)
        client = RateLimitedClient("test")
        client.get("https://x.pe")
        self.assertEqual(client._consecutive_failures, 1)

        session.get.return_value = _resp(200, "{}")
        client.get("https://x.pe")
        self.assertEqual(client._consecutive_failures, 0)

    @patch(SESSION)
    def test_429_escalates_backoff(
        self, mock_session_cls: MagicMock
    ) -> None:
        session = mock_session_cls.return_value
        session.get.side_effect = [_resp(429), _resp(200, "{}")]
        client = RateLimitedClient("test")
        start = client._backoff
        self.assertIsNotNone(client.get("https://x.pe"))
        # success resets the backoff after the escalation
        self.assertEqual(client._backoff, start)

    @patch(SESSION)
    def test_challenge_page_rejected(
        self, mock_session_cls: MagicMock
    ) -> None:
        session = mock_session_cls.return_value
        challenge = _resp(
            200, "<html><title>Just a moment...</title></html>"
        )
        session.get.return_value = challenge
        client = RateLimitedClient("test")
        self.assertIsNone(client.get("https://x.pe"))
        self.assertEqual(
            session.get.call_count, client.settings.MAX_RETRIES
        )

    @patch(SESSION)
    def test_invalid_json_returns_none(
        self, mock_session_cls: MagicMock
    ) -> None:
        session = mock_session_cls.return_value
        session.get.return_value = _resp(200, "{not json")
        client = RateLimitedClient("test")
        self.assertIsNone(client.get_json("https://x.pe/api"))

    @patch("comparador.clients.http_client.cloudscraper")
    @patch(SESSION)
    def test_get_page_falls_back_to_cloudscraper(
        self, mock_session_cls: MagicMock, mock_cs: MagicMock
    ) -> None:
        session = mock_session_cls.return_value
        session.get.return_value = _resp(503, "")
        fallback = MagicMock()
        fallback.status_code = 200
        fallback.text = "<html><body><p>ok</p></body></html>"
        mock_cs.create_scraper.return_value.get.return_value = fallback

        client = RateLimitedClient("test")
        soup = client.get_page("https://x.pe")
        self.assertIsNotNone(soup)
        assert soup is not None
        self.assertEqual(soup.p.get_text(), "ok")  # type: ignore[union-attr]


if __name__ == "__main__":
    unittest.main()
