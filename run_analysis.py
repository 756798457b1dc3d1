"""
Analysis runner -- fetches obligations, joins reference data, writes results JSON.

Steps (in order):
  0. census   -- rebuild population_by_state_fy.csv from Census estimates
                 (optional, --census)
  1. load     -- population, state list, 2020 winners, 2024 margins, IIJA
  2. fetch    -- USAspending obligations for every fiscal year of both windows
  3. analyze  -- per-capita, window averages, deltas, scatter sets, regressions

Features:
  - Explicit per-run obligation cache (memory + 24h JSON files under --cache-dir)
  - Per-step log files under logs/analysis/<run-id>/ with skip accounting
  - Aborts with exit code 1 on a service failure, a malformed or unreadable
    input file; the results file is only written when every step succeeded

Usage:
    python run_analysis.py                                   # defaults, data/ dir
    python run_analysis.py --data-dir data --output out.json
    python run_analysis.py --baseline-years 2017 2018 2019 2020 \\
                           --current-years 2021 2022 2023 2024
    python run_analysis.py --no-cache --verbose
    python run_analysis.py --clear-cache                     # refetch every year
    python run_analysis.py --census NST-EST2020-alldata.csv NST-EST2024-ALLDATA.csv
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from pathlib import Path

from downloader.usaspending import ObligationCache, ObligationFetcher
from pipeline.analysis import AnalysisResult, load_inputs, run_analysis
from pipeline.census import build_population_table, write_population_csv
from pipeline.logging import PipelineLogger
from pipeline.regression import is_relevant
from utils.config import BASELINE_YEARS, CURRENT_YEARS, DataPaths, FetchConfig, WindowConfig
from utils.errors import AnalysisError
from utils.formatting import (
    TableFormatter,
    format_amount,
    format_dollars,
    format_p_value,
    format_percent,
)

logger = logging.getLogger(__name__)


# ── Helpers ───────────────────────────────────────────────────────────────────


def _banner(text: str) -> None:
    bar = "=" * 60
    print(f"\n{bar}")
    print(f"  {text}")
    print(f"{bar}\n", flush=True)


def _write_results(result: AnalysisResult, path: Path) -> Path:
    """Write the results JSON atomically (temp file, then rename)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    with open(tmp, "w", encoding="utf-8") as f:
        json.dump(result.to_dict(), f, indent=2)
    tmp.replace(path)
    return path


def _print_summary(result: AnalysisResult, top: int = 10) -> None:
    """Console tables: largest deltas and one trend line per scatter."""
    print(f"Top {top} states by Δ obligations per capita:")
    table = TableFormatter(["State", "Winner 2020", "Baseline avg", "Current avg", "Δ"],
                           align=["l", "l", "r", "r", "r"])
    for row in result.delta_view()[:top]:
        st = row["state"]
        table.add_row([st, row["winner"], format_dollars(result.baseline_avg[st]),
                       format_dollars(result.current_avg[st]), format_dollars(row["delta"])])
    print(table.render())

    print("\nTrend lines:")
    reg = TableFormatter(["Scatter", "n", "Slope", "R²", "p", "Relevant"],
                         align=["l", "r", "r", "r", "r", "l"])
    for kind, r in result.regressions.items():
        if r is None:
            reg.add_row([kind, len(result.scatter[kind]), "-", "-", "-", "no (insufficient data)"])
            continue
        reg.add_row([kind, r.n, f"{r.slope:.3g}", format_percent(r.r2),
                     format_p_value(r.p_value), "yes" if is_relevant(r) else "no"])
    print(reg.render())

    if result.obligation_totals:
        totals = ", ".join(f"FY{fy} {format_amount(amt)}"
                           for fy, amt in sorted(result.obligation_totals.items()))
        print(f"\nObligation totals: {totals}")


def _parse_years(values: list[str] | None, default: tuple[int, ...]) -> tuple[int, ...]:
    if not values:
        return default
    return tuple(int(v) for v in values)


# ── CLI ───────────────────────────────────────────────────────────────────────


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        description=(
            "Compare per-capita federal obligations (USAspending) across two "
            "fiscal-year windows against 2024 election margins"
        ),
    )
    p.add_argument(
        "--data-dir", default="data",
        help="Directory holding the reference tables (default: data)",
    )
    p.add_argument(
        "--baseline-years", nargs="+", default=None, metavar="FY",
        help="Baseline window (default: 2017 2018 2019 2020)",
    )
    p.add_argument(
        "--current-years", nargs="+", default=None, metavar="FY",
        help="Current window (default: 2021 2022 2023 2024)",
    )
    p.add_argument(
        "--reference-year", type=int, default=None, metavar="FY",
        help="Single year compared to the baseline in the per-capita view "
             "(default: last current year)",
    )
    p.add_argument(
        "--cache-dir", default=".usaspending_cache",
        help="Directory for cached obligation responses (default: .usaspending_cache)",
    )
    p.add_argument(
        "--no-cache", action="store_true",
        help="Always query USAspending; do not read or write the cache",
    )
    p.add_argument(
        "--clear-cache", action="store_true",
        help="Delete cached obligation files under --cache-dir before fetching",
    )
    p.add_argument(
        "--output", default="analysis_results.json",
        help="Results JSON path (default: analysis_results.json)",
    )
    p.add_argument(
        "--workers", type=int, default=4,
        help="Concurrent fiscal-year fetches (default: 4)",
    )
    p.add_argument(
        "--base-url", default=None,
        help="USAspending API root (default: https://api.usaspending.gov)",
    )
    p.add_argument(
        "--timeout", type=float, default=None,
        help="Per-request timeout in seconds (default: 60)",
    )
    p.add_argument(
        "--census", nargs="+", default=None, metavar="CSV",
        help="Census NST-EST ALLDATA files; rebuilds the population table "
             "before loading (later files win on overlapping years)",
    )
    p.add_argument(
        "--logs-dir", default="logs/analysis",
        help="Root directory for per-run step logs (default: logs/analysis)",
    )
    p.add_argument(
        "--verbose", "-v", action="store_true",
        help="Debug logging (shows each skipped row)",
    )
    return p.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(message)s",
        force=True,
    )

    try:
        windows = WindowConfig(
            baseline_years=_parse_years(args.baseline_years, BASELINE_YEARS),
            current_years=_parse_years(args.current_years, CURRENT_YEARS),
            reference_year=args.reference_year,
        )
    except ValueError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2

    overrides = {"cache_dir": args.cache_dir, "workers": max(1, args.workers)}
    if args.base_url:
        overrides["base_url"] = args.base_url
    if args.timeout:
        overrides["timeout_seconds"] = args.timeout
    fetch_config = FetchConfig.from_dict(overrides)

    paths = DataPaths(args.data_dir)
    output = Path(args.output)

    pl = PipelineLogger(logs_dir=args.logs_dir)
    pl.args_dict = {
        k: v for k, v in vars(args).items()
        if v is not None and v is not False
    }
    pl.args_dict["windows"] = windows.to_dict()
    start = time.monotonic()

    print("\nSpending vs. Elections Analysis")
    print(f"  Data dir : {paths.data_dir}")
    print(f"  Baseline : FY{windows.baseline_years[0]}-FY{windows.baseline_years[-1]}")
    print(f"  Current  : FY{windows.current_years[0]}-FY{windows.current_years[-1]}")
    print(f"  Cache    : {'disabled' if args.no_cache else fetch_config.cache_dir}")
    print(f"  Output   : {output}")

    step = "census"
    try:
        if args.census:
            _banner("Step 0 -- Build population table")
            with pl.step(step) as report:
                years = sorted({*windows.all_years, windows.iija_population_year})
                rows = build_population_table([(Path(p), years) for p in args.census],
                                              report=report)
                write_population_csv(rows, paths.population)
                report.items_processed = len(rows)

        step = "load"
        _banner("Step 1 -- Load reference data")
        with pl.step(step) as report:
            inputs = load_inputs(paths, report=report)

        step = "fetch"
        _banner(f"Step 2 -- Fetch obligations ({len(windows.all_years)} fiscal years)")
        with pl.step(step) as report:
            if args.clear_cache and not args.no_cache:
                removed = ObligationCache(ttl_hours=fetch_config.cache_ttl_hours,
                                          cache_dir=fetch_config.cache_dir).clear()
                logger.info("Cleared %d cached obligation file(s)", removed)
            with ObligationFetcher.from_config(fetch_config,
                                               use_cache=not args.no_cache) as fetcher:
                result = run_analysis(inputs, fetcher, windows, report=report,
                                      max_workers=fetch_config.workers)
    except (AnalysisError, OSError) as e:
        logger.error("%s failed: %s", step, e)
        print(f"\n[{step}] FAILED: {e}", file=sys.stderr, flush=True)
        print("No results written.", file=sys.stderr, flush=True)
        pl.write_summary()
        return 1

    _banner("Step 3 -- Results")
    with pl.step("analyze") as report:
        _print_summary(result)
        written = _write_results(result, output)
        report.items_processed = len(result.states)
        report.detail = f"wrote {written}"

    summary_path = pl.write_summary()
    _banner(f"Analysis complete -- {time.monotonic() - start:.1f}s total")
    print(f"  Results  : {written.resolve()}", flush=True)
    print(f"  Run logs : {pl.run_dir}", flush=True)
    print(f"  Summary  : {summary_path}", flush=True)
    return 0


if __name__ == "__main__":
    sys.exit(main())
