"""
FastAPI application factory.

Serves the chart views from the results JSON written by run_analysis.py.
The API is read-only; it never fetches from USAspending itself.

Usage:
    python -m api.app                    # Dev server on port 8000
    APP_RESULTS_PATH=out/analysis_results.json python -m api.app

OpenAPI docs available at http://localhost:8000/docs after starting.

Structured JSON logging when APP_LOG_FORMAT=json.
CORS middleware with configurable origins via APP_CORS_ORIGINS.
"""

import json
import logging
import time
import uuid
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api import results as results_store
from api.models import HealthOut
from api.routes import metadata, views
from utils.config import AppConfig

# ── Configuration ─────────────────────────────────────────────────────────────
_cfg = AppConfig.from_env()

# ── Structured JSON logging ───────────────────────────────────────────────────


class _JsonFormatter(logging.Formatter):
    """Emit log records as newline-delimited JSON."""

    def format(self, record: logging.LogRecord) -> str:
        data: dict = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        # Merge extra fields added via logger.info("...", extra={...})
        for key in ("method", "path", "status", "duration_ms", "request_id"):
            if hasattr(record, key):
                data[key] = getattr(record, key)
        if record.exc_info:
            data["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(data)


_logger = logging.getLogger("spending_elections_api")


def _configure_logging(log_format: str) -> None:
    handler = logging.StreamHandler()
    if log_format == "json":
        handler.setFormatter(_JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
        )
    logging.basicConfig(handlers=[handler], level=logging.INFO, force=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Warn on startup when there is no results file yet."""
    path = results_store.get_results_path()
    if not path.exists():
        import warnings
        warnings.warn(
            f"Results file not found at {path}. "
            "Run 'python run_analysis.py' first.",
            stacklevel=2,
        )
    yield


def create_app(results_path: Path | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        results_path: Override the results file (useful for testing).

    Returns:
        Configured FastAPI application instance.
    """
    if results_path is not None:
        results_store.set_results_path(results_path)

    app = FastAPI(
        title="Spending vs. Elections API",
        summary="Chart views joining federal obligations per capita with election margins.",
        description=(
            "## Spending vs. Elections\n\n"
            "Read-only access to one analysis run: USAspending obligations per "
            "state, normalised by Census population, compared across a baseline "
            "and a current window of fiscal years and set against 2024 "
            "two-party margins.\n\n"
            "### Key concepts\n"
            "- **Fiscal year** runs October 1 – September 30 "
            "(FY2024 = Oct 2023 – Sep 2024).\n"
            "- **Δ per capita** = mean(current window) − mean(baseline window); "
            "a year with no data counts as 0.\n"
            "- **Margin** = (Dem − GOP) / (Dem + GOP).\n"
            "- A trend is **relevant** when p < 0.05 and R² ≥ 0.10. The p-value "
            "uses a normal approximation and is observational only."
        ),
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        license_info={
            "name": "Public Domain (government data)",
            "url": "https://creativecommons.org/publicdomain/zero/1.0/",
        },
        openapi_tags=[
            {
                "name": "views",
                "description": "Chart-ready payloads: per-capita, delta, scatter, IIJA.",
            },
            {
                "name": "meta",
                "description": "Health check and run summary.",
            },
        ],
    )

    # ── CORS middleware ───────────────────────────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cfg.cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "HEAD", "OPTIONS"],
        allow_headers=["*"],
    )

    # ── Request logging middleware ────────────────────────────────────────────

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log each request with its duration and a short request ID."""
        request_id = str(uuid.uuid4())[:8]
        start = time.monotonic()
        path = request.url.path

        response = await call_next(request)
        duration_ms = (time.monotonic() - start) * 1000
        response.headers["X-Request-ID"] = request_id

        if path.startswith("/api/v1/views"):
            response.headers.setdefault("Cache-Control", "public, max-age=300")

        if _cfg.log_format == "json":
            _logger.info(
                "request",
                extra={
                    "method": request.method,
                    "path": path,
                    "status": response.status_code,
                    "duration_ms": round(duration_ms, 1),
                    "request_id": request_id,
                },
            )
        else:
            _logger.info(
                "method=%s path=%s status=%d duration_ms=%.1f rid=%s",
                request.method, path, response.status_code, duration_ms, request_id,
            )
        return response

    # ── Error handling ────────────────────────────────────────────────────────

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """Catch unhandled exceptions and return JSON instead of HTML traceback."""
        _logger.exception("unhandled error on %s", request.url.path)
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal server error",
                "detail": str(exc),
                "status_code": 500,
            },
        )

    # ── Health check ──────────────────────────────────────────────────────────

    @app.get("/health", tags=["meta"], summary="Health check", response_model=HealthOut)
    def health():
        """Return 200 OK if a readable results file is present, else 503."""
        path = results_store.get_results_path()
        if not path.exists():
            return JSONResponse(
                status_code=503,
                content={"status": "no_results", "results_path": str(path)},
            )
        try:
            data = results_store.get_results()
        except Exception as e:
            return JSONResponse(
                status_code=503,
                content={"status": "degraded", "results_path": str(path),
                         "error": str(getattr(e, "detail", e))},
            )
        return {"status": "ok", "results_path": str(path),
                "state_count": len(data.get("states") or [])}

    # ── Register routers ──────────────────────────────────────────────────────

    prefix = "/api/v1"
    app.include_router(views.router,    prefix=prefix)
    app.include_router(metadata.router, prefix=prefix)

    return app


_configure_logging(_cfg.log_format)

# Singleton instance for uvicorn
app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "api.app:app",
        host=_cfg.api_host,
        port=_cfg.api_port,
        reload=True,
        log_level="info",
    )
