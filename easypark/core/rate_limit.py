"""In-process fixed-window rate limiter."""

import time
from collections import namedtuple
from threading import Lock
from typing import Dict, Optional

from fastapi import Request

from easypark.config import settings

Window = namedtuple("Window", ["count", "reset_at"])


class RateLimiter:
    """Counts hits per key inside a fixed window.

    State lives in process memory, so limits are per worker and are lost on
    restart. Expired windows are dropped whenever the table reaches
    ``max_keys``; if it is still full, the oldest windows go first.
    """

    def __init__(self, max_keys: int = 10000):
        self.max_keys = max_keys
        self._windows: Dict[str, Window] = {}
        self._lock = Lock()

    def consume(self, key: str, limit: int, window_seconds: int, now: Optional[float] = None) -> bool:
        """Record a hit for ``key``; False once the limit is exceeded."""
        now = time.monotonic() if now is None else now
        with self._lock:
            window = self._windows.get(key)
            if window is None or window.reset_at <= now:
                self._windows.pop(key, None)
                if len(self._windows) >= self.max_keys:
                    self._prune(now)
                self._windows[key] = Window(1, now + window_seconds)
                return True
            if window.count >= limit:
                return False
            self._windows[key] = Window(window.count + 1, window.reset_at)
            return True

    def _prune(self, now: float):
        for key in [key for key, window in self._windows.items() if window.reset_at <= now]:
            del self._windows[key]
        while len(self._windows) >= self.max_keys:
            del self._windows[next(iter(self._windows))]

    def reset(self):
        with self._lock:
            self._windows.clear()


rate_limiter = RateLimiter(settings.RATE_LIMIT_MAX_KEYS)


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("x-real-ip")
    if real_ip and real_ip.strip():
        return real_ip.strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"
