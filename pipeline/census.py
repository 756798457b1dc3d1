"""
Build ``population_by_state_fy.csv`` from Census Bureau state estimates.

Input files are the Census ``NST-EST20xx-ALLDATA`` CSVs: one row per
geography, a ``SUMLEV`` summary-level code, a ``NAME`` column and one
``POPESTIMATE{year}`` column per vintage year.  Only ``SUMLEV == 40`` rows
(the 50 states and DC; Puerto Rico appears under a separate file) are kept.

The estimate for calendar-year July 1 is used as the population for the
fiscal year of the same number.

Usage::

    rows = build_population_table([
        (Path("NST-EST2020-alldata.csv"), range(2017, 2021)),
        (Path("NST-EST2024-ALLDATA.csv"), range(2021, 2025)),
    ])
    write_population_csv(rows, Path("data/population_by_state_fy.csv"))
"""

from __future__ import annotations

import csv
import logging
from pathlib import Path
from typing import Iterable, NamedTuple

from pipeline.logging import StepReport
from pipeline.reference import header_index, parse_csv, read_text, state_name_to_abbr
from utils.errors import SkippableRowError
from utils.patterns import POPESTIMATE_COLUMN
from utils.strings import normalize_header, parse_number

logger = logging.getLogger(__name__)

STATE_SUMLEV = 40


class PopulationRow(NamedTuple):
    state: str
    fiscal_year: int
    pop: int


def _estimate_columns(header: list[str]) -> dict[int, int]:
    """``{year: column_index}`` for every POPESTIMATE{year} header."""
    cols: dict[int, int] = {}
    for i, h in enumerate(header):
        m = POPESTIMATE_COLUMN.match(normalize_header(h))
        if m:
            cols[int(m.group(1))] = i
    return cols


def parse_census_estimates(text: str, years: Iterable[int] | None = None,
                           report: StepReport | None = None,
                           source: str = "census") -> list[PopulationRow]:
    """Extract state population rows from one NST-EST CSV.

    Args:
        text: CSV text.
        years: Years to emit; all POPESTIMATE years in the file when None.
            A requested year with no column in this file is skipped.
        report: Optional StepReport for skip accounting.
        source: Label used in log and error messages.

    Raises:
        MalformedInputError: SUMLEV or NAME column missing.
    """
    rows = parse_csv(text)
    if not rows:
        return []
    header = rows[0]
    cols = header_index(header, ("SUMLEV", "NAME"), source)
    estimates = _estimate_columns(header)

    wanted = sorted(estimates) if years is None else [int(y) for y in years]
    for fy in wanted:
        if fy not in estimates:
            logger.info("%s: no POPESTIMATE%d column, skipping that year", source, fy)
            if report is not None:
                report.add_skip("missing_data", f"no POPESTIMATE{fy} column", item=source)
    wanted = [fy for fy in wanted if fy in estimates]

    out: list[PopulationRow] = []
    for row_number, row in enumerate(rows[1:], start=2):
        sumlev = parse_number(row[cols["SUMLEV"]] if cols["SUMLEV"] < len(row) else "")
        if sumlev is None or int(sumlev) != STATE_SUMLEV:
            continue
        name = row[cols["NAME"]] if cols["NAME"] < len(row) else ""
        try:
            state = state_name_to_abbr(name, include_territories=False)
            if state is None:
                raise SkippableRowError(f"unknown state name {name!r}", row_number)
            state_rows = []
            for fy in wanted:
                idx = estimates[fy]
                pop = parse_number(row[idx] if idx < len(row) else "")
                if pop is None or pop <= 0:
                    raise SkippableRowError(f"no usable POPESTIMATE{fy} for {state}", row_number)
                state_rows.append(PopulationRow(state, fy, int(round(pop))))
        except SkippableRowError as e:
            logger.debug("%s: skipping %s", source, e)
            if report is not None:
                report.add_skip("error_skip", str(e), item=source)
            continue
        out.extend(state_rows)
        if report is not None:
            report.items_processed += 1
    return out


def build_population_table(sources: Iterable[tuple[Path | str, Iterable[int] | None]],
                           report: StepReport | None = None) -> list[PopulationRow]:
    """Union several estimate files; a later file wins for the same (state, year)."""
    merged: dict[tuple[str, int], PopulationRow] = {}
    for path, years in sources:
        path = Path(path)
        for r in parse_census_estimates(read_text(path), years, report=report, source=path.name):
            merged[(r.state, r.fiscal_year)] = r
    return sorted(merged.values(), key=lambda r: (r.state, r.fiscal_year))


def write_population_csv(rows: Iterable[PopulationRow], path: Path | str) -> Path:
    """Write ``state,fiscal_year,pop`` rows; returns the written path."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    count = 0
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(["state", "fiscal_year", "pop"])
        for r in rows:
            writer.writerow([r.state, r.fiscal_year, r.pop])
            count += 1
    logger.info("Wrote %d population rows to %s", count, path)
    return path
