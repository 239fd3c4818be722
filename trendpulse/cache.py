"""Short-TTL result memoization keyed by (source, region, view, scope)."""

import threading
import time

from .config import CACHE_TTL_SECONDS, GLOBAL_REGION


def cache_key(source_id: str, region=None, view: str = "trending", scope: str = "") -> tuple:
    return (source_id, region or GLOBAL_REGION, view, scope)


class ResultCache:
    """key -> (value, stored_at) map with a fixed TTL.

    Concurrent misses on the same key are not coordinated: both callers fetch
    and the last write wins.
    """

    def __init__(self, ttl: float = CACHE_TTL_SECONDS, clock=time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._entries = {}
        self._lock = threading.Lock()

    def get(self, key):
        """Cached list for key, or None when absent or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, stored_at = entry
            if self._clock() - stored_at >= self.ttl:
                del self._entries[key]
                return None
            return list(value)

    def set(self, key, value: list):
        """Store a non-empty result; empty results are never cached."""
        if not value:
            return
        with self._lock:
            self._entries[key] = (list(value), self._clock())

    def clear(self):
        with self._lock:
            self._entries.clear()

    def __len__(self):
        return len(self._entries)
