"""Per-operator, per-action sliding-window limits for troubleshooter requests."""

import time
from collections import defaultdict
from threading import Lock


def rate_limit_key(action: str, operator_id: object) -> str:
    """Build the limiter key for one operator performing one action."""
    return f"{action}:{operator_id}"


class RateLimiter:
    """In-memory sliding window: at most ``max_requests`` hits per key.

    A hit is forgotten ``window_seconds`` after it was recorded. State is
    process-local, so every worker process keeps its own counts.
    """

    def __init__(self, max_requests: int, window_seconds: int = 60):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._hits: dict[str, list[float]] = defaultdict(list)
        self._lock = Lock()

    def _live_hits(self, key: str, now: float) -> list[float]:
        # Caller holds the lock
        cutoff = now - self.window_seconds
        hits = [t for t in self._hits.get(key, ()) if t > cutoff]
        if hits:
            self._hits[key] = hits
        else:
            self._hits.pop(key, None)
        return hits

    def is_allowed(self, key: str) -> bool:
        """Record a hit for ``key`` unless the window is already full."""
        now = time.monotonic()
        with self._lock:
            hits = self._live_hits(key, now)
            if len(hits) >= self.max_requests:
                return False
            self._hits[key] = [*hits, now]
            return True

    def remaining(self, key: str) -> int:
        """Number of requests still allowed for ``key`` in the current window."""
        with self._lock:
            used = len(self._live_hits(key, time.monotonic()))
        return max(self.max_requests - used, 0)

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()
