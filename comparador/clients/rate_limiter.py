# comparador/clients/rate_limiter.py

"""Per-adapter politeness window."""

import logging
import random
import threading
import time

logger = logging.getLogger("comparador.rate_limiter")


class RateLimiter:
    """Enforce a minimum interval between consecutive requests.

    Each adapter owns its own instance, so a slow source never throttles
    a fast one.  The lock only serialises callers sharing this instance.
    """

    def __init__(
        self,
        min_interval: float,
        jitter: float = 0.0,
        name: str = "",
    ) -> None:
        self.min_interval = max(0.0, min_interval)
        self.jitter = max(0.0, jitter)
        self.name = name
        self._last_request: float | None = None
        self._lock = threading.Lock()

    @property
    def last_request(self) -> float | None:
        """Monotonic timestamp of the previous request, if any."""
        return self._last_request

    def _target_interval(self) -> float:
        if self.jitter:
            return self.min_interval + random.uniform(0, self.jitter)
        return self.min_interval

    def wait(self) -> float:
        """Sleep until the window has elapsed, then stamp the request.

        Returns the number of seconds slept.
        """
        with self._lock:
            slept = 0.0
            if self._last_request is not None:
                elapsed = time.monotonic() - self._last_request
                remaining = self._target_interval() - elapsed
                if remaining > 0:
                    logger.debug(
                        "[%s] Politeness wait %.2fs",
                        self.name,
                        remaining,
                    )
                    time.sleep(remaining)
                    slept = remaining
            self._last_request = time.monotonic()
            return slept
