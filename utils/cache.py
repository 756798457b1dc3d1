"""Lightweight in-memory TTL cache for the analysis tools.

Provides a simple TTLCache class used as the memory layer of the per-run
obligation cache, with configurable expiry.
"""

import time
import threading
from typing import Any


class TTLCache:
    """Thread-safe in-memory cache with time-to-live (TTL) expiry.

    Entries expire after ``ttl_seconds`` seconds. A maximum of ``maxsize``
    entries are retained; when the cache is full the entry expiring soonest
    is evicted.

    Usage::

        cache = TTLCache(maxsize=32, ttl_seconds=86400)
        cache.set(2024, {"CA": 1.0e11})
        value = cache.get(2024)  # returns dict or None if expired/missing
    """

    def __init__(self, maxsize: int = 128, ttl_seconds: float = 300.0) -> None:
        """Initialise the cache.

        Args:
            maxsize: Maximum number of entries to store (default 128).
            ttl_seconds: Seconds before a cached entry expires (default 300).
        """
        self._maxsize = maxsize
        self._ttl = ttl_seconds
        # key -> (value, expires_at)
        self._store: dict[Any, tuple[Any, float]] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def get(self, key: Any) -> Any | None:
        """Return cached value for *key*, or ``None`` if absent or expired."""
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                self._misses += 1
                return None
            value, expires_at = entry
            if time.monotonic() > expires_at:
                del self._store[key]
                self._misses += 1
                return None
            self._hits += 1
            return value

    def set(self, key: Any, value: Any) -> None:
        """Store *value* under *key* with the configured TTL.

        Writing an existing key replaces it (last write wins).
        """
        expires_at = time.monotonic() + self._ttl
        with self._lock:
            if key not in self._store and len(self._store) >= self._maxsize:
                oldest_key = min(self._store, key=lambda k: self._store[k][1])
                del self._store[oldest_key]
            self._store[key] = (value, expires_at)

    def clear(self) -> None:
        """Remove all entries and reset statistics."""
        with self._lock:
            self._store.clear()
            self._hits = 0
            self._misses = 0

    def stats(self) -> dict[str, int]:
        """Return cache statistics.

        Returns:
            Dict with keys ``hits``, ``misses``, and ``size``.
        """
        with self._lock:
            now = time.monotonic()
            expired = [k for k, (_, exp) in self._store.items() if now > exp]
            for k in expired:
                del self._store[k]
            return {
                "hits": self._hits,
                "misses": self._misses,
                "size": len(self._store),
            }
