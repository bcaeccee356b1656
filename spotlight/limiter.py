# spotlight/limiter.py
# Purpose: Space outbound Finnhub calls (free tier: 60/min -> 1 call/sec).
# Pitfalls: Blocks the calling thread; there is no way to abort a wait.

from __future__ import annotations

import threading
import time
from collections.abc import Callable


class RateLimiter:
    """Blocks callers so permitted calls are at least ``interval`` seconds apart."""

    def __init__(
        self,
        interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.interval = float(interval)
        self._clock = clock
        self._sleep = sleep
        self._last_request_at: float | None = None
        self._lock = threading.Lock()

    def wait(self) -> None:
        with self._lock:
            if self._last_request_at is not None:
                elapsed = self._clock() - self._last_request_at
                if elapsed < self.interval:
                    self._sleep(self.interval - elapsed)
            self._last_request_at = self._clock()

    @property
    def last_request_at(self) -> float | None:
        return self._last_request_at
