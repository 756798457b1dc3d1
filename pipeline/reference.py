"""
Reference data loaders: population, state lists, 2020 winners and vote shares,
2024 election results and the IIJA funding snapshot.

All tabular inputs are CSV with a header row.  Columns are resolved by header
name, never by position; a missing required column raises
MalformedInputError for that file.  Individual unusable rows raise
SkippableRowError internally, are logged at DEBUG and recorded on the
optional StepReport, and processing continues with the next row.
"""

from __future__ import annotations

import csv
import io
import json
import logging
import zipfile
from collections import Counter
from pathlib import Path
from typing import Iterable, Sequence

from pipeline.aggregation import (
    VoteTotals,
    aggregate_districts_to_state,
    margins_from_totals,
    shares_from_totals,
)
from pipeline.logging import StepReport
from utils.config import KnownValues
from utils.errors import MalformedInputError, SkippableRowError
from utils.patterns import FISCAL_YEAR, STATE_CODE
from utils.strings import normalize_header, normalize_state_name, parse_number, safe_float

logger = logging.getLogger(__name__)

# Column names in the 2024 electoral files (state- and district-level)
STATE_COLUMN = "ST"
DEM_VOTES_COLUMN = "Votes_Dem_2024"
OPP_VOTES_COLUMN = "Votes_GOP_2024"

# 2020 presidential results (one row per state)
DEM_VOTES_2020_COLUMN = "Votes_Dem_2020"
OPP_VOTES_2020_COLUMN = "Votes_GOP_2020"


# ── CSV primitives ────────────────────────────────────────────────────────────


def read_text(path: Path | str) -> str:
    """Read a UTF-8 text file (a leading BOM is dropped).

    Raises:
        MalformedInputError: the file is not valid UTF-8.
    """
    path = Path(path)
    try:
        return path.read_text(encoding="utf-8-sig")
    except UnicodeDecodeError as e:
        raise MalformedInputError(f"{path.name}: not UTF-8 text ({e.reason})",
                                  source=path.name) from e


def _load_json(path: Path | str):
    path = Path(path)
    try:
        return json.loads(read_text(path))
    except json.JSONDecodeError as e:
        raise MalformedInputError(
            f"{path.name}: invalid JSON at line {e.lineno} column {e.colno}: {e.msg}",
            source=path.name,
        ) from e


def parse_csv(text: str) -> list[list[str]]:
    """Split CSV text into rows of string cells.

    Standard quoting: a doubled quote inside a quoted field is a literal
    quote, and separators or newlines inside quotes belong to the field.
    Blank lines produce no row.
    """
    reader = csv.reader(io.StringIO(text, newline=""))
    return [row for row in reader if row]


def header_index(header: Sequence[str], names: Iterable[str], source: str = "") -> dict[str, int]:
    """Resolve required columns by header name (case/whitespace-insensitive).

    Returns:
        ``{requested_name: column_index}``

    Raises:
        MalformedInputError: if any requested column is absent.
    """
    positions = {normalize_header(h): i for i, h in enumerate(header)}
    found: dict[str, int] = {}
    missing: list[str] = []
    for name in names:
        idx = positions.get(normalize_header(name))
        if idx is None:
            missing.append(name)
        else:
            found[name] = idx
    if missing:
        label = source or "input"
        raise MalformedInputError(
            f"{label}: missing required column(s): {', '.join(missing)}",
            source=source, missing=missing,
        )
    return found


def _cell(row: Sequence[str], idx: int) -> str:
    return row[idx].strip() if idx < len(row) and row[idx] is not None else ""


def _record_skip(report: StepReport | None, err: SkippableRowError, source: str) -> None:
    logger.debug("%s: skipping %s", source or "input", err)
    if report is not None:
        report.add_skip("error_skip", str(err), item=source)


# ── Population ────────────────────────────────────────────────────────────────


def population_key(state: str, fiscal_year: int) -> str:
    return f"{state}-{int(fiscal_year)}"


def parse_population_csv(text: str, report: StepReport | None = None,
                         source: str = "population") -> dict[str, float]:
    """Parse ``state,fiscal_year,pop`` rows into ``{"CA-2020": 39538223.0}``.

    Rows missing a state or year, or with a non-numeric population, are
    skipped.  A later duplicate key overwrites an earlier one.
    """
    rows = parse_csv(text)
    if not rows:
        raise MalformedInputError(f"{source}: empty file (header row required)",
                                  source=source, missing=["state", "fiscal_year", "pop"])
    cols = header_index(rows[0], ("state", "fiscal_year", "pop"), source)

    out: dict[str, float] = {}
    for row_number, row in enumerate(rows[1:], start=2):
        try:
            state = _cell(row, cols["state"]).upper()
            fy_raw = _cell(row, cols["fiscal_year"])
            if not state or not fy_raw:
                raise SkippableRowError("missing state or fiscal_year", row_number)
            fy_match = FISCAL_YEAR.fullmatch(fy_raw)
            if fy_match is None:
                raise SkippableRowError(f"unparseable fiscal_year {fy_raw!r}", row_number)
            pop = parse_number(_cell(row, cols["pop"]))
            if pop is None:
                raise SkippableRowError(f"unparseable population for {state}", row_number)
        except SkippableRowError as e:
            _record_skip(report, e, source)
            continue
        out[population_key(state, int(fy_match.group(1)))] = pop
        if report is not None:
            report.items_processed += 1
    return out


def load_population(path: Path | str, report: StepReport | None = None) -> dict[str, float]:
    return parse_population_csv(read_text(path), report=report, source=Path(path).name)


# ── Election results ──────────────────────────────────────────────────────────


def parse_vote_rows(text: str, state_col: str = STATE_COLUMN,
                    dem_col: str = DEM_VOTES_COLUMN, opp_col: str = OPP_VOTES_COLUMN,
                    report: StepReport | None = None,
                    source: str = "elections") -> list[dict[str, str]]:
    """Read ``{state, dem, opp}`` rows from an election results file.

    Vote cells are passed through as text; rows without a state code are
    skipped and recorded.
    """
    rows = parse_csv(text)
    if not rows:
        raise MalformedInputError(f"{source}: empty file (header row required)",
                                  source=source, missing=[state_col, dem_col, opp_col])
    cols = header_index(rows[0], (state_col, dem_col, opp_col), source)

    out: list[dict[str, str]] = []
    for row_number, row in enumerate(rows[1:], start=2):
        state = _cell(row, cols[state_col]).upper()
        if not state:
            _record_skip(report, SkippableRowError("missing state code", row_number), source)
            continue
        out.append({"state": state, "dem": _cell(row, cols[dem_col]),
                    "opp": _cell(row, cols[opp_col])})
    if report is not None:
        report.items_processed += len(out)
    return out


def parse_vote_totals(text: str, state_col: str = STATE_COLUMN,
                      dem_col: str = DEM_VOTES_COLUMN, opp_col: str = OPP_VOTES_COLUMN,
                      report: StepReport | None = None,
                      source: str = "elections") -> dict[str, VoteTotals]:
    """Sum Democratic and opposing-party votes per state.

    Non-numeric vote cells count as 0.
    """
    return aggregate_districts_to_state(
        parse_vote_rows(text, state_col, dem_col, opp_col, report=report, source=source))


def parse_state_margins(text: str, report: StepReport | None = None,
                        source: str = "state elections", **columns) -> dict[str, float]:
    """Two-party margins from a state-level file.

    A state-level file should hold one row per state; repeated codes are
    summed like districts but logged as a warning.
    """
    rows = parse_vote_rows(text, report=report, source=source, **columns)
    repeated = sorted(st for st, n in Counter(r["state"] for r in rows).items() if n > 1)
    if repeated:
        logger.warning("%s: state code(s) appear on more than one row, votes summed: %s",
                       source, ", ".join(repeated))
    return margins_from_totals(aggregate_districts_to_state(rows))


def parse_district_margins(text: str, report: StepReport | None = None,
                           source: str = "district elections", **columns) -> dict[str, float]:
    """Two-party margins from a district-level file, districts summed to state first."""
    return margins_from_totals(parse_vote_totals(text, report=report, source=source, **columns))


def parse_dem_shares_2020(text: str, report: StepReport | None = None,
                          source: str = "2020 president", **columns) -> dict[str, float]:
    """Biden's 2020 two-party vote share per state, from the ``Votes_Dem_2020`` and
    ``Votes_GOP_2020`` columns."""
    columns.setdefault("dem_col", DEM_VOTES_2020_COLUMN)
    columns.setdefault("opp_col", OPP_VOTES_2020_COLUMN)
    return shares_from_totals(parse_vote_totals(text, report=report, source=source, **columns))


# ── State list, winners ───────────────────────────────────────────────────────


def load_state_list(source: Path | str | Sequence[str]) -> list[str]:
    """Load the analysed state codes from a JSON array file or a sequence.

    Codes are upper-cased and de-duplicated in order.  Entries that are not
    two-letter codes raise MalformedInputError.
    """
    if isinstance(source, (str, Path)):
        label = Path(source).name
        data = _load_json(source)
    else:
        label = "state list"
        data = list(source)
    if not isinstance(data, list):
        raise MalformedInputError(f"{label}: expected a JSON list of state codes",
                                  source=label)
    states = [str(s).strip().upper() for s in data]
    bad = [s for s in states if not STATE_CODE.fullmatch(s)]
    if bad:
        raise MalformedInputError(f"{label}: invalid state codes: {bad[:5]}", source=label)
    return list(dict.fromkeys(states))


def load_winner_map(path: Path | str) -> dict[str, str]:
    """Load ``{state: "Biden" | "Trump"}``; unrecognised labels become "Unknown"."""
    data = _load_json(path)
    if not isinstance(data, dict):
        raise MalformedInputError(f"{Path(path).name}: expected a JSON object",
                                  source=str(path))
    out: dict[str, str] = {}
    for state, label in data.items():
        label = str(label).strip().title()
        out[str(state).strip().upper()] = (
            label if label in KnownValues.WINNER_LABELS else KnownValues.UNKNOWN_WINNER
        )
    return out


def state_name_to_abbr(name: str, include_territories: bool = True) -> str | None:
    """Map a state/territory name to its postal code (None if unknown)."""
    return KnownValues.abbr_for_name(normalize_state_name(name), include_territories)


# ── IIJA snapshot ─────────────────────────────────────────────────────────────


def _iija_rows(path: Path) -> list[list[str]]:
    if path.suffix.lower() in (".xlsx", ".xlsm"):
        import openpyxl
        from openpyxl.utils.exceptions import InvalidFileException

        try:
            wb = openpyxl.load_workbook(str(path), read_only=True, data_only=True)
        except (InvalidFileException, zipfile.BadZipFile) as e:
            raise MalformedInputError(f"{path.name}: not a readable workbook ({e})",
                                      source=path.name) from e
        try:
            ws = wb.worksheets[0]
            return [["" if v is None else str(v) for v in row]
                    for row in ws.iter_rows(values_only=True)
                    if any(v is not None for v in row)]
        finally:
            wb.close()
    return parse_csv(read_text(path))


def parse_iija_rows(rows: list[list[str]], report: StepReport | None = None,
                    source: str = "iija") -> dict[str, float]:
    """Total IIJA funding in dollars per state code.

    The state column is the first header containing "state"; the amount is
    the first header containing "total", expressed in billions.
    """
    if not rows:
        raise MalformedInputError(f"{source}: empty file", source=source,
                                  missing=["state", "total"])
    header = [normalize_header(h) for h in rows[0]]
    idx_name = next((i for i, h in enumerate(header) if "state" in h), None)
    idx_total = next((i for i, h in enumerate(header) if "total" in h), None)
    missing = [n for n, i in (("state", idx_name), ("total", idx_total)) if i is None]
    if missing:
        raise MalformedInputError(f"{source}: missing required column(s): {', '.join(missing)}",
                                  source=source, missing=missing)

    out: dict[str, float] = {}
    for row_number, row in enumerate(rows[1:], start=2):
        name = _cell(row, idx_name)
        abbr = state_name_to_abbr(name)
        if abbr is None:
            _record_skip(report, SkippableRowError(f"unknown state name {name!r}", row_number),
                         source)
            continue
        out[abbr] = safe_float(_cell(row, idx_total), default=0.0) * 1e9
        if report is not None:
            report.items_processed += 1
    return out


def parse_iija_snapshot(path: Path | str, report: StepReport | None = None) -> dict[str, float]:
    """Load the IIJA funding snapshot from ``.csv`` or ``.xlsx``."""
    path = Path(path)
    return parse_iija_rows(_iija_rows(path), report=report, source=path.name)
