#!/usr/bin/env python3
"""
Spending vs. Elections -- launch the read-only results API.

Usage:
    python main.py                                  # http://localhost:8000
    python main.py --port 9000                      # http://localhost:9000
    python main.py --host 0.0.0.0                   # listen on all interfaces
    python main.py --results out/analysis_results.json
    python main.py --reload                         # auto-reload on code changes
"""

from __future__ import annotations

import argparse
import os
from pathlib import Path

import uvicorn


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Serve chart views from an analysis results file.",
    )
    parser.add_argument(
        "--host", default=os.getenv("APP_HOST", "127.0.0.1"),
        help="Bind address (default: 127.0.0.1 or APP_HOST env var)",
    )
    parser.add_argument(
        "--port", type=int, default=int(os.getenv("APP_PORT", "8000")),
        help="Port to listen on (default: 8000 or APP_PORT env var)",
    )
    parser.add_argument(
        "--results", type=Path, default=None,
        help="Results JSON (default: analysis_results.json or APP_RESULTS_PATH env var)",
    )
    parser.add_argument(
        "--reload", action="store_true",
        help="Enable auto-reload on file changes (development mode)",
    )
    args = parser.parse_args()

    # The app reads its results path from the environment at import time
    if args.results is not None:
        os.environ["APP_RESULTS_PATH"] = str(args.results)

    results_path = Path(os.getenv("APP_RESULTS_PATH", "analysis_results.json"))
    if not results_path.exists():
        print(f"Warning: results file not found at {results_path}")
        print("  Run 'python run_analysis.py' first to produce it,")
        print("  or pass --results /path/to/analysis_results.json")
        print()

    host_label = "localhost" if args.host == "0.0.0.0" else args.host
    print(f"Starting Spending vs. Elections API at http://{host_label}:{args.port}/docs")
    print(f"Results: {results_path}")
    print()

    uvicorn.run(
        "api.app:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level="info",
    )


if __name__ == "__main__":
    main()
