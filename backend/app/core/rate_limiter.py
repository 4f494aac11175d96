"""In-memory sliding-window rate limiter."""

import math
import time
from collections import defaultdict
from threading import Lock


class RateLimiter:
    """Sliding-window rate limiter keyed by an arbitrary string.

    Keeps the timestamps of accepted calls per key and rejects a call once
    ``max_requests`` fall inside the trailing ``window_seconds``.
    """

    def __init__(self, max_requests: int, window_seconds: int = 60):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._requests: dict[str, list[float]] = defaultdict(list)
        self._lock = Lock()

    def _prune(self, key: str, now: float) -> list[float]:
        cutoff = now - self.window_seconds
        self._requests[key] = [t for t in self._requests[key] if t > cutoff]
        return self._requests[key]

    def is_allowed(self, key: str) -> bool:
        """Record the call and return True if it is within the limit."""
        now = time.monotonic()
        with self._lock:
            timestamps = self._prune(key, now)
            if len(timestamps) >= self.max_requests:
                return False
            timestamps.append(now)
            return True

    def retry_after(self, key: str) -> int:
        """Seconds until ``key`` may call again; 0 if it may call now."""
        now = time.monotonic()
        with self._lock:
            timestamps = self._prune(key, now)
            if len(timestamps) < self.max_requests:
                return 0
            return max(1, math.ceil(timestamps[0] + self.window_seconds - now))

    def reset(self, key: str | None = None) -> None:
        """Clear tracked calls for ``key``, or for every key."""
        with self._lock:
            if key is None:
                self._requests.clear()
            else:
                self._requests.pop(key, None)
