"""
USAspending geographic obligation fetcher.

Pulls total federal obligations per state for one fiscal year from the
``spending_by_geography`` search endpoint, scoped to place of performance at
the state geo layer.  A fiscal year runs Oct 1 of the prior calendar year
through Sep 30 of the named year.

Results are kept in an explicit ObligationCache that the caller constructs
for each analysis run (memory layer, optionally backed by JSON files with a
24-hour freshness window).  A cache hit never touches the network.

A failed fetch raises RemoteServiceError; it is never replaced by an empty
or zero-filled mapping.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Any, Iterable

import requests

from pipeline.logging import StepReport
from utils.cache import TTLCache
from utils.config import (
    GEOGRAPHY_ENDPOINT,
    OBLIGATION_CACHE_PREFIX,
    USASPENDING_BASE_URL,
    FetchConfig,
)
from utils.errors import RemoteServiceError
from utils.http import CacheManager, RetryStrategy, SessionManager
from utils.strings import safe_float

logger = logging.getLogger(__name__)

# Maximum characters of an error response body echoed into the exception
_ERROR_BODY_CHARS = 200


# ── Request/response shaping ──────────────────────────────────────────────────


def fiscal_year_window(fiscal_year: int) -> tuple[str, str]:
    """Return the (start_date, end_date) ISO strings covering *fiscal_year*."""
    fy = int(fiscal_year)
    return f"{fy - 1}-10-01", f"{fy}-09-30"


def build_request_body(fiscal_year: int, scope: str = "place_of_performance") -> dict[str, Any]:
    """Build the JSON body for a state-level geography search."""
    start_date, end_date = fiscal_year_window(fiscal_year)
    return {
        "scope": scope,
        "geo_layer": "state",
        "filters": {
            "time_period": [{"start_date": start_date, "end_date": end_date}],
        },
    }


def parse_geography_response(payload: dict[str, Any]) -> dict[str, float]:
    """Map ``results[].shape_code`` (upper-cased) to ``aggregated_amount``.

    Rows without a shape code are dropped; a missing amount counts as 0.
    """
    out: dict[str, float] = {}
    for row in payload.get("results") or []:
        state = str(row.get("shape_code") or "").strip().upper()
        if not state:
            continue
        out[state] = safe_float(row.get("aggregated_amount"), default=0.0)
    return out


def cache_key(fiscal_year: int) -> str:
    return f"{OBLIGATION_CACHE_PREFIX}{int(fiscal_year)}"


# ── Cache ─────────────────────────────────────────────────────────────────────


class ObligationCache:
    """Per-run cache of state obligation mappings keyed by fiscal year.

    The memory layer is a TTLCache; when *cache_dir* is given, entries are
    also persisted as ``usaspending_oblig_{fy}.json`` holding
    ``{"timestamp": ..., "data": [[state, amount], ...]}``.  Expired or
    unreadable entries are misses.  Writes are last-write-wins; two
    concurrent writers of the same year store the same mapping.

    Usage::

        with ObligationCache(cache_dir=Path(".usaspending_cache")) as cache:
            fetcher = ObligationFetcher(cache=cache)
            ...
    """

    def __init__(self, ttl_hours: float = 24, cache_dir: Path | str | None = None,
                 maxsize: int = 64) -> None:
        self.ttl_hours = ttl_hours
        self._memory = TTLCache(maxsize=maxsize, ttl_seconds=ttl_hours * 3600)
        self._disk = CacheManager(Path(cache_dir), ttl_hours=ttl_hours) if cache_dir else None

    def get(self, fiscal_year: int) -> dict[str, float] | None:
        fy = int(fiscal_year)
        hit = self._memory.get(fy)
        if hit is not None:
            return dict(hit)
        if self._disk is None:
            return None
        stored = self._disk.get(cache_key(fy))
        if not isinstance(stored, list):
            return None
        try:
            mapping = {str(state): float(amount) for state, amount in stored}
        except (TypeError, ValueError):
            logger.debug("Discarding malformed cache entry for FY%d", fy)
            return None
        self._memory.set(fy, mapping)
        return dict(mapping)

    def put(self, fiscal_year: int, mapping: dict[str, float]) -> None:
        fy = int(fiscal_year)
        self._memory.set(fy, dict(mapping))
        if self._disk is not None:
            self._disk.put(cache_key(fy), [[state, amount] for state, amount in mapping.items()])

    def clear(self) -> int:
        """Drop the memory layer and persisted obligation entries.

        Only ``usaspending_oblig_*`` files are removed; anything else in the
        cache directory is left alone.  Returns the number of files removed.
        """
        self._memory.clear()
        if self._disk is None:
            return 0
        return self._disk.clear(prefix=OBLIGATION_CACHE_PREFIX)

    def stats(self) -> dict[str, int]:
        return self._memory.stats()

    def close(self) -> None:
        """Release the memory layer; persisted files are left in place."""
        self._memory.clear()

    def __enter__(self) -> "ObligationCache":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


# ── Fetcher ───────────────────────────────────────────────────────────────────


class ObligationFetcher:
    """Fetches per-state obligation totals for fiscal years.

    Args:
        base_url: Service root (default https://api.usaspending.gov).
        session_manager: Pooled session provider; one is created if omitted.
        cache: ObligationCache for this run, or None to always hit the network.
        timeout: Per-request timeout in seconds.
        scope: Geography scope sent to the endpoint.
    """

    def __init__(self, base_url: str = USASPENDING_BASE_URL,
                 session_manager: SessionManager | None = None,
                 cache: ObligationCache | None = None,
                 timeout: float = 60,
                 scope: str = "place_of_performance") -> None:
        self.base_url = base_url.rstrip("/")
        self.session_manager = session_manager or SessionManager()
        self.cache = cache
        self.timeout = timeout
        self.scope = scope

    @classmethod
    def from_config(cls, config: FetchConfig, use_cache: bool = True) -> "ObligationFetcher":
        """Build a fetcher (with session and cache) from a FetchConfig."""
        retry = RetryStrategy(max_retries=config.max_retries,
                              backoff_factor=config.backoff_factor)
        session_manager = SessionManager(retry_strategy=retry,
                                         pool_connections=config.pool_connections,
                                         pool_maxsize=config.pool_maxsize)
        cache = None
        if use_cache:
            cache = ObligationCache(ttl_hours=config.cache_ttl_hours,
                                    cache_dir=config.cache_dir)
        return cls(base_url=config.base_url, session_manager=session_manager,
                   cache=cache, timeout=config.timeout_seconds, scope=config.scope)

    @property
    def url(self) -> str:
        return f"{self.base_url}{GEOGRAPHY_ENDPOINT}"

    def fetch_year(self, fiscal_year: int, report: StepReport | None = None) -> dict[str, float]:
        """Return ``{state: obligations}`` for *fiscal_year*.

        A cache hit is recorded on *report* (category ``cache_hit``).

        Raises:
            RemoteServiceError: non-2xx response, timeout or connection failure.
        """
        fy = int(fiscal_year)
        if self.cache is not None:
            cached = self.cache.get(fy)
            if cached is not None:
                logger.debug("FY%d served from cache (%d states)", fy, len(cached))
                if report is not None:
                    report.add_skip("cache_hit", "served from cache", item=f"FY{fy}")
                return cached

        body = build_request_body(fy, scope=self.scope)
        logger.info("Fetching USAspending obligations for FY%d", fy)
        try:
            resp = self.session_manager.session.post(self.url, json=body, timeout=self.timeout)
        except requests.RequestException as e:
            raise RemoteServiceError(
                f"USAspending request for FY{fy} failed: {e}", fiscal_year=fy,
            ) from e

        if not resp.ok:
            snippet = (resp.text or "")[:_ERROR_BODY_CHARS]
            raise RemoteServiceError(
                f"USAspending error {resp.status_code} for FY{fy}: {snippet}",
                fiscal_year=fy, status_code=resp.status_code,
            )

        try:
            payload = resp.json()
        except ValueError as e:
            raise RemoteServiceError(
                f"USAspending returned invalid JSON for FY{fy}",
                fiscal_year=fy, status_code=resp.status_code,
            ) from e

        mapping = parse_geography_response(payload)
        logger.info("FY%d: %d states, total %.0f", fy, len(mapping), sum(mapping.values()))
        if self.cache is not None:
            self.cache.put(fy, mapping)
        return mapping

    def fetch_years(self, fiscal_years: Iterable[int], max_workers: int = 4,
                    report: StepReport | None = None) -> dict[int, dict[str, float]]:
        """Fetch several fiscal years concurrently and wait for all of them.

        The first failure is re-raised once it is observed; pending fetches
        are cancelled.  No partial result is returned.
        """
        years = list(dict.fromkeys(int(fy) for fy in fiscal_years))
        if not years:
            return {}

        results: dict[int, dict[str, float]] = {}
        n_workers = max(1, min(max_workers, len(years)))
        with ThreadPoolExecutor(max_workers=n_workers,
                                thread_name_prefix="usaspending") as pool:
            futures = {pool.submit(self.fetch_year, fy, report): fy for fy in years}
            try:
                for future in as_completed(futures):
                    results[futures[future]] = future.result()
            except RemoteServiceError:
                for future in futures:
                    future.cancel()
                raise
        return results

    def close(self) -> None:
        self.session_manager.close()
        if self.cache is not None:
            self.cache.close()

    def __enter__(self) -> "ObligationFetcher":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
