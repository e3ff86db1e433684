"""
services/rate_limiter.py — Fixed-window request counter.

One RateLimiter instance is created per Flask app (see create_app) and stored
in app.extensions["rate_limiter"]; there is no module-level state.

  - The clock is injected (defaults to time.monotonic) so tests control time.
  - The store is bounded by max_keys. When it is full, expired windows are
    pruned first, then the least recently started window is evicted.
"""

from __future__ import annotations

import math
import threading
import time
from collections import OrderedDict
from typing import Callable


class RateLimiter:

    def __init__(
            self,
            limit: int,
            window_seconds: float,
            max_keys: int = 10000,
            clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if limit <= 0:
            raise ValueError("limit must be a positive integer")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        if max_keys <= 0:
            raise ValueError("max_keys must be a positive integer")

        self.limit = limit
        self.window_seconds = window_seconds
        self.max_keys = max_keys
        self._clock = clock
        # key -> [count, reset_at]; ordered by window start.
        self._windows: OrderedDict[str, list] = OrderedDict()
        self._lock = threading.Lock()

    def hit(self, key: str) -> bool:
        """
        Records one request for `key`.

        Returns True if the key is over its limit for the current window.
        The first request after a window expires opens a new window.
        """
        with self._lock:
            now = self._clock()
            window = self._windows.get(key)

            if window is None or window[1] <= now:
                if window is not None:
                    del self._windows[key]
                self._make_room(now)
                self._windows[key] = [1, now + self.window_seconds]
                return False

            window[0] += 1
            return window[0] > self.limit

    def remaining(self, key: str) -> int:
        """Requests still allowed for `key` in its current window."""
        with self._lock:
            window = self._windows.get(key)
            if window is None or window[1] <= self._clock():
                return self.limit
            return max(0, self.limit - window[0])

    def retry_after(self, key: str) -> int:
        """Whole seconds until `key`'s window closes; 0 when it has none."""
        with self._lock:
            window = self._windows.get(key)
            if window is None:
                return 0
            return max(0, math.ceil(window[1] - self._clock()))

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()

    def _make_room(self, now: float) -> None:
        if len(self._windows) < self.max_keys:
            return

        expired = [key for key, (_, reset_at) in self._windows.items() if reset_at <= now]
        for key in expired:
            del self._windows[key]

        while len(self._windows) >= self.max_keys:
            self._windows.popitem(last=False)
