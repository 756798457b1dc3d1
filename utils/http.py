"""HTTP utilities for the spending/elections analysis.

Provides reusable pieces for:
- HTTP sessions with connection pooling and transport-level retries
- File-based caching of API responses with a freshness window
"""

import json
import logging
import math
import time
from pathlib import Path
from datetime import datetime, timedelta, timezone
from typing import Optional, List, Any

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry as URLRetry

logger = logging.getLogger(__name__)

USER_AGENT = "spending-elections-analysis/1.0"

# Numeric cache timestamps above this are epoch milliseconds, below it seconds
_EPOCH_MS_THRESHOLD = 1e11


class RetryStrategy:
    """Defines retry behavior for HTTP requests."""

    def __init__(self, max_retries: int = 3, backoff_factor: float = 2.0,
                 status_forcelist: Optional[List[int]] = None,
                 allowed_methods: Optional[List[str]] = None):
        """Initialize retry strategy.

        Args:
            max_retries: Maximum number of retry attempts (default: 3)
            backoff_factor: Exponential backoff multiplier (default: 2.0)
            status_forcelist: HTTP status codes to retry on
                            (default: [429, 500, 502, 503, 504])
            allowed_methods: Methods eligible for retry (default: GET, HEAD).
                            The geography search is a POST, so it is not
                            retried unless POST is listed here explicitly.
        """
        self.max_retries = max_retries
        self.backoff_factor = backoff_factor
        self.status_forcelist = status_forcelist or [429, 500, 502, 503, 504]
        self.allowed_methods = allowed_methods or ["GET", "HEAD"]

    def get_retry_object(self) -> URLRetry:
        """Get urllib3 Retry object configured with this strategy."""
        return URLRetry(
            total=self.max_retries,
            backoff_factor=self.backoff_factor,
            status_forcelist=self.status_forcelist,
            allowed_methods=self.allowed_methods,
            raise_on_status=False,
        )


class SessionManager:
    """Manages HTTP sessions with connection pooling and retries."""

    def __init__(self, retry_strategy: Optional[RetryStrategy] = None,
                 pool_connections: int = 10, pool_maxsize: int = 20):
        """Initialize session manager.

        Args:
            retry_strategy: RetryStrategy to use (default: standard strategy)
            pool_connections: Number of connection pools to cache
            pool_maxsize: Maximum number of connections per pool
        """
        self.retry_strategy = retry_strategy or RetryStrategy()
        self.pool_connections = pool_connections
        self.pool_maxsize = pool_maxsize
        self._session: Optional[requests.Session] = None

    @property
    def session(self) -> requests.Session:
        """Get or create the pooled HTTP session."""
        if self._session is None:
            self._session = requests.Session()
            self._session.headers.update({
                "User-Agent": USER_AGENT,
                "Content-Type": "application/json",
            })

            adapter = HTTPAdapter(
                max_retries=self.retry_strategy.get_retry_object(),
                pool_connections=self.pool_connections,
                pool_maxsize=self.pool_maxsize
            )
            self._session.mount("http://", adapter)
            self._session.mount("https://", adapter)

        return self._session

    def close(self) -> None:
        """Close the session and release resources."""
        if self._session:
            self._session.close()
            self._session = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class CacheManager:
    """Manages file-based caching of HTTP responses.

    Stores responses as JSON files of the form
    ``{"timestamp": <iso8601>, "data": <payload>}``.  Entries older than the
    TTL, or files that cannot be read, are treated as misses.  Timestamps
    written by other tools as epoch numbers (seconds or milliseconds) or as
    offset-aware ISO strings are read too.
    """

    def __init__(self, cache_dir: Path, ttl_hours: float = 24):
        """Initialize cache manager.

        Args:
            cache_dir: Directory to store cached files
            ttl_hours: Time-to-live for cached items in hours
        """
        self.cache_dir = Path(cache_dir)
        self.ttl_hours = ttl_hours
        self.cache_dir.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def _safe_key(key: str) -> str:
        return "".join(c if c.isalnum() or c in '._-' else '_' for c in key)

    def _get_cache_path(self, key: str) -> Path:
        return self.cache_dir / f"{self._safe_key(key)}.json"

    def _is_fresh(self, timestamp: Any) -> bool:
        """True when *timestamp* is within the TTL; unrecognised values are stale."""
        ttl = timedelta(hours=self.ttl_hours)
        if isinstance(timestamp, bool) or not timestamp:
            return False
        if isinstance(timestamp, (int, float)):
            if not math.isfinite(timestamp):
                return False
            seconds = timestamp / 1000 if timestamp > _EPOCH_MS_THRESHOLD else timestamp
            return time.time() - seconds <= ttl.total_seconds()
        if not isinstance(timestamp, str):
            return False
        try:
            stamp = datetime.fromisoformat(timestamp)
        except ValueError:
            return False
        if stamp.tzinfo is None:
            return datetime.now() - stamp <= ttl
        return datetime.now(timezone.utc) - stamp <= ttl

    def get(self, key: str) -> Optional[Any]:
        """Get cached item if fresh.

        Returns:
            Cached data if fresh, None if expired, missing or unreadable
        """
        cache_file = self._get_cache_path(key)

        if not cache_file.exists():
            return None

        try:
            with open(cache_file, "r") as f:
                data = json.load(f)
            if not self._is_fresh(data.get("timestamp")):
                return None
            return data.get("data")

        except (json.JSONDecodeError, OSError, ValueError, TypeError, AttributeError):
            logger.debug("Ignoring unreadable cache file %s", cache_file)
            return None

    def put(self, key: str, data: Any) -> None:
        """Store item in cache.  Write failures are logged, not raised."""
        cache_file = self._get_cache_path(key)

        cache_data = {
            "timestamp": datetime.now().isoformat(),
            "data": data
        }

        try:
            with open(cache_file, "w") as f:
                json.dump(cache_data, f, indent=2)
        except OSError as e:
            logger.warning("Failed to write cache file %s: %s", cache_file, e)

    def clear(self, prefix: str = "") -> int:
        """Remove cached items whose key starts with *prefix* (all when empty).

        Returns:
            Number of files removed
        """
        removed = 0
        for cache_file in self.cache_dir.glob(f"{self._safe_key(prefix)}*.json"):
            try:
                cache_file.unlink()
                removed += 1
            except OSError as e:
                logger.warning("Failed to remove cache file %s: %s", cache_file, e)
        return removed
