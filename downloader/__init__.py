"""
USAspending obligation downloader.

Fetches total federal obligations per state and fiscal year from the
USAspending.gov geography search, with an explicit per-run cache.
"""

from downloader.usaspending import (
    ObligationCache,
    ObligationFetcher,
    build_request_body,
    cache_key,
    fiscal_year_window,
    parse_geography_response,
)

__all__ = [
    "ObligationCache",
    "ObligationFetcher",
    "build_request_body",
    "cache_key",
    "fiscal_year_window",
    "parse_geography_response",
]
