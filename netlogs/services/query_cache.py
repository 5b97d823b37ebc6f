import logging
import time

from netlogs.core.config import settings


class QueryCache:
    """
    Short-lived cache of /api/logs results keyed by limit.

    Entries are only ever replaced whole, so a plain dict is enough: readers see
    either the previous or the new list. Stale reads up to ``ttl_seconds`` are accepted.
    """
    def __init__(self, ttl_seconds=None, max_entries=128, clock=time.monotonic):
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.QUERY_CACHE_TTL_SECONDS
        self.max_entries = max_entries
        self._clock = clock
        self._cache = {}  # limit -> (expires_at, rows)

    def get(self, limit: int):
        hit = self._cache.get(limit)
        if hit is None:
            return None
        expires_at, rows = hit
        if self._clock() >= expires_at:
            self._cache.pop(limit, None)
            return None
        return rows

    def put(self, limit: int, rows: list):
        if self.ttl_seconds <= 0:
            return
        if len(self._cache) >= self.max_entries and limit not in self._cache:
            # Drop the entry closest to expiry
            oldest = min(self._cache, key=lambda k: self._cache[k][0])
            self._cache.pop(oldest, None)
            logging.debug(f"Query cache full, evicted limit={oldest}")
        self._cache[limit] = (self._clock() + self.ttl_seconds, rows)

    def clear(self):
        self._cache.clear()

    def __len__(self):
        return len(self._cache)
