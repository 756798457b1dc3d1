"""
Results-file access for the API.

Provides a get_results() dependency that returns the parsed results JSON
written by ``run_analysis.py``.  The path is resolved once at startup from
APP_RESULTS_PATH (default: analysis_results.json).  The parsed document is
reused until the file's mtime or size changes, so a re-run of the analysis
is picked up without restarting the server.

A missing or unreadable file raises HTTP 503 instead of a traceback.
"""

import json
import logging
import threading
from pathlib import Path

from fastapi import HTTPException

from utils.config import AppConfig

logger = logging.getLogger(__name__)

_RESULTS_PATH: Path = AppConfig.from_env().results_path

_lock = threading.Lock()
_cached: dict | None = None
_cached_sig: tuple[float, int] | None = None


def get_results_path() -> Path:
    """Return the configured results path."""
    return _RESULTS_PATH


def set_results_path(path: Path) -> None:
    """Point the API at a different results file (drops the parsed copy)."""
    global _RESULTS_PATH, _cached, _cached_sig
    with _lock:
        _RESULTS_PATH = Path(path)
        _cached = None
        _cached_sig = None


def _read(path: Path) -> dict:
    global _cached, _cached_sig
    stat = path.stat()
    sig = (stat.st_mtime, stat.st_size)
    with _lock:
        if _cached is not None and _cached_sig == sig:
            return _cached
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        _cached, _cached_sig = data, sig
        return data


def get_results() -> dict:
    """FastAPI dependency: the parsed results document.

    Usage in a route::

        from api.results import get_results
        from fastapi import Depends

        @router.get("/example")
        def example(results: dict = Depends(get_results)):
            ...
    """
    path = _RESULTS_PATH
    if not path.exists():
        raise HTTPException(
            status_code=503,
            detail=(
                f"Results file not found at '{path}'. "
                "Run 'python run_analysis.py' to produce it."
            ),
        )
    try:
        return _read(path)
    except (OSError, json.JSONDecodeError) as e:
        logger.error("Could not read results file %s: %s", path, e)
        raise HTTPException(
            status_code=503,
            detail=f"Results file at '{path}' is unreadable: {e}",
        ) from e
