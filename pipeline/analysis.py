"""
Analysis orchestration: load reference tables, fetch obligations, build views.

The pipeline is computed once per run and every chart view is a pure
function of the resulting tables:

    inputs = load_inputs(DataPaths("data"))
    with ObligationFetcher.from_config(FetchConfig()) as fetcher:
        result = run_analysis(inputs, fetcher, WindowConfig())
    result.scatter_view("president")

Scatter kinds are "president" and "house" (delta against 2024 margin) and,
when 2020 presidential results are loaded, "reward" (Biden's 2020 share
against delta).

Every fiscal year of both windows is fetched before any aggregation starts.
A failed fetch or a malformed input file propagates; no partial result is
produced.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Protocol

from pipeline.aggregation import (
    ScatterPoint,
    compute_deltas,
    group_by_winner,
    group_means,
    scatter_points,
    window_averages,
)
from pipeline.logging import StepReport
from pipeline.per_capita import per_capita, per_capita_table
from pipeline.reference import (
    load_population,
    load_state_list,
    load_winner_map,
    parse_dem_shares_2020,
    parse_district_margins,
    parse_iija_snapshot,
    parse_state_margins,
    population_key,
    read_text,
)
from pipeline.regression import RegressionResult, fit, is_relevant, trend_style
from utils.config import DataPaths, KnownValues, WindowConfig
from utils.errors import RemoteServiceError

logger = logging.getLogger(__name__)

_DELTA_LABEL = "Δ obligations per capita (current avg − baseline avg)"

# kind -> (x axis, y axis)
_SCATTER_AXES = {
    "president": (_DELTA_LABEL, "2024 presidential two-party margin"),
    "house": (_DELTA_LABEL, "2024 House two-party margin (districts summed to state)"),
    "reward": ("Biden 2020 two-party vote share", _DELTA_LABEL),
}


class ObligationSource(Protocol):
    def fetch_years(self, fiscal_years, max_workers: int = 4,
                    report: StepReport | None = None) -> dict[int, dict[str, float]]:
        ...


@dataclass
class AnalysisInputs:
    """Reference tables for one run."""

    population: dict[str, float]
    states: list[str]
    winners: dict[str, str]
    state_margins: dict[str, float]
    district_margins: dict[str, float]
    iija: dict[str, float] | None = None
    dem_share_2020: dict[str, float] | None = None


def _optional_table(path, label: str, loader, report: StepReport | None):
    """Load an optional input, or record a dependency skip when its file is absent."""
    if path is not None and path.exists():
        return loader(path)
    logger.info("No %s at %s; its view is disabled", label, path)
    if report is not None:
        report.add_skip("dependency_skip", f"{label} not found", item=str(path))
    return None


def load_inputs(paths: DataPaths, report: StepReport | None = None) -> AnalysisInputs:
    """Load every reference table named by *paths*.

    The IIJA snapshot and the 2020 presidential results are optional; when
    a file is absent the view built from it is simply unavailable.

    Raises:
        MalformedInputError: a table is missing a required column, or a file
            is not valid JSON / UTF-8 text.
        FileNotFoundError: a required file does not exist.
    """
    population = load_population(paths.population, report=report)
    states = load_state_list(paths.states)
    winners = load_winner_map(paths.winners)
    state_margins = parse_state_margins(read_text(paths.state_elections), report=report,
                                        source=paths.state_elections.name)
    district_margins = parse_district_margins(read_text(paths.district_elections),
                                              report=report,
                                              source=paths.district_elections.name)
    iija = _optional_table(paths.iija_snapshot, "IIJA snapshot",
                           lambda p: parse_iija_snapshot(p, report=report), report)
    dem_share = _optional_table(
        paths.president_2020, "2020 presidential results",
        lambda p: parse_dem_shares_2020(read_text(p), report=report, source=p.name), report)

    logger.info("Loaded %d population rows, %d states, %d/%d state/district margins",
                len(population), len(states), len(state_margins), len(district_margins))
    if report is not None:
        report.metrics.update({
            "population_rows": len(population),
            "states": len(states),
            "state_margins": len(state_margins),
            "district_margins": len(district_margins),
        })
    return AnalysisInputs(population=population, states=states, winners=winners,
                          state_margins=state_margins, district_margins=district_margins,
                          iija=iija, dem_share_2020=dem_share)


# ── Result ────────────────────────────────────────────────────────────────────


@dataclass
class AnalysisResult:
    """Computed tables for one run, plus the chart views derived from them."""

    baseline_years: tuple[int, ...]
    current_years: tuple[int, ...]
    reference_year: int
    states: list[str]
    winners: dict[str, str]
    baseline_avg: dict[str, float]
    current_avg: dict[str, float]
    reference_values: dict[str, float | None]
    deltas: dict[str, float]
    scatter: dict[str, list[ScatterPoint]]
    regressions: dict[str, RegressionResult | None]
    iija_per_capita: dict[str, float] | None = None
    iija_population_year: int | None = None
    obligation_totals: dict[int, float] = field(default_factory=dict)

    def winner(self, state: str) -> str:
        return self.winners.get(state, KnownValues.UNKNOWN_WINNER)

    def per_capita_view(self) -> list[dict]:
        """Baseline average vs. the reference year, sorted by the larger value."""
        rows = []
        for st in self.states:
            ref = self.reference_values.get(st)
            rows.append({
                "state": st,
                "baseline_avg": self.baseline_avg[st],
                "reference": ref,
                "winner": self.winner(st),
            })
        rows.sort(key=lambda r: (-max(r["baseline_avg"], r["reference"] or 0.0), r["state"]))
        return rows

    def delta_view(self) -> list[dict]:
        rows = [{"state": st, "delta": self.deltas[st], "winner": self.winner(st)}
                for st in self.states]
        rows.sort(key=lambda r: (-r["delta"], r["state"]))
        return rows

    def scatter_view(self, kind: str) -> dict:
        """Points grouped by 2020 winner, with the fitted trend line.

        ``group_means`` holds the mean y per winner group, which for the
        reward scatter compares spending change in Biden-won states with
        the rest.

        Raises:
            ValueError: *kind* was not computed for this run.
        """
        if kind not in self.scatter:
            raise ValueError(f"unknown scatter kind {kind!r}; "
                             f"available: {', '.join(self.scatter)}")
        points = self.scatter[kind]
        result = self.regressions.get(kind)
        groups = group_by_winner(points, self.winners)
        x_label, y_label = _SCATTER_AXES[kind]
        return {
            "kind": kind,
            "x_label": x_label,
            "y_label": y_label,
            "n": len(points),
            "groups": {label: [p.to_dict() for p in pts] for label, pts in groups.items()},
            "group_means": group_means(groups),
            "regression": result.to_dict() if result is not None else None,
            "relevant": is_relevant(result),
            "trend_style": trend_style(result),
        }

    def iija_view(self) -> list[dict] | None:
        """IIJA dollars per resident, sorted descending; None without a snapshot."""
        if self.iija_per_capita is None:
            return None
        rows = [{"state": st, "per_capita": self.iija_per_capita[st], "winner": self.winner(st)}
                for st in self.states if st in self.iija_per_capita]
        rows.sort(key=lambda r: (-r["per_capita"], r["state"]))
        return rows

    def to_dict(self) -> dict:
        return {
            "windows": {
                "baseline_years": list(self.baseline_years),
                "current_years": list(self.current_years),
                "reference_year": self.reference_year,
                "iija_population_year": self.iija_population_year,
            },
            "states": list(self.states),
            "obligation_totals": {str(fy): amt for fy, amt in sorted(self.obligation_totals.items())},
            "per_capita": self.per_capita_view(),
            "delta": self.delta_view(),
            "scatter": {kind: self.scatter_view(kind) for kind in self.scatter},
            "iija": self.iija_view(),
        }


# ── Orchestration ─────────────────────────────────────────────────────────────


def run_analysis(inputs: AnalysisInputs, fetcher: ObligationSource, windows: WindowConfig,
                 report: StepReport | None = None, max_workers: int = 4) -> AnalysisResult:
    """Fetch every needed fiscal year, then compute all tables.

    Raises:
        RemoteServiceError: any fiscal year could not be fetched, or the
            fetcher returned no mapping for it.
    """
    years = windows.all_years
    obligations = fetcher.fetch_years(years, max_workers=max_workers, report=report)
    missing_years = [fy for fy in years if fy not in obligations]
    if missing_years:
        raise RemoteServiceError(
            f"no obligations returned for FY{', FY'.join(map(str, missing_years))}",
            fiscal_year=missing_years[0],
        )

    states = list(inputs.states)
    table = per_capita_table(states, years, obligations, inputs.population)

    def lookup(state: str, fy: int) -> float | None:
        return table.get(state, {}).get(fy)

    baseline_avg = window_averages(states, windows.baseline_years, lookup)
    current_avg = window_averages(states, windows.current_years, lookup)
    deltas = compute_deltas(states, windows.baseline_years, windows.current_years, lookup)
    reference_values = {st: lookup(st, windows.reference_year) for st in states}

    for st in states:
        undefined = [fy for fy in years if fy not in table[st]]
        if undefined and report is not None:
            report.add_skip("missing_data",
                            f"per-capita undefined for FY{', FY'.join(map(str, undefined))}; "
                            "counted as 0", item=st)

    scatter = {
        "president": scatter_points(deltas, inputs.state_margins, states),
        "house": scatter_points(deltas, inputs.district_margins, states),
    }
    if inputs.dem_share_2020 is not None:
        # x is 2020 support, y is the spending change it might have bought
        scatter["reward"] = scatter_points(inputs.dem_share_2020, deltas, states)

    regressions: dict[str, RegressionResult | None] = {}
    for kind, points in scatter.items():
        regressions[kind] = fit(points)
        dropped = len(states) - len(points)
        if dropped and report is not None:
            report.add_skip("missing_data", f"{dropped} state(s) missing from the {kind} scatter",
                            item=kind)
        r = regressions[kind]
        if r is None:
            logger.warning("%s scatter: not enough varied points for a trend line (%d)",
                           kind, len(points))
        else:
            logger.info("%s scatter: n=%d slope=%.6g r2=%.3f p=%.4f relevant=%s",
                        kind, r.n, r.slope, r.r2, r.p_value, is_relevant(r))

    iija_pc = None
    if inputs.iija is not None:
        iija_pc = {}
        for st, amount in inputs.iija.items():
            value = per_capita(amount, inputs.population.get(
                population_key(st, windows.iija_population_year)))
            if value is not None:
                iija_pc[st] = value

    if report is not None:
        report.items_processed += len(states)
        report.metrics.update({
            f"{kind}_points": len(points) for kind, points in scatter.items()
        })

    return AnalysisResult(
        baseline_years=tuple(windows.baseline_years),
        current_years=tuple(windows.current_years),
        reference_year=windows.reference_year,
        states=states,
        winners=dict(inputs.winners),
        baseline_avg=baseline_avg,
        current_avg=current_avg,
        reference_values=reference_values,
        deltas=deltas,
        scatter=scatter,
        regressions=regressions,
        iija_per_capita=iija_pc,
        iija_population_year=windows.iija_population_year if iija_pc is not None else None,
        obligation_totals={fy: sum(obligations[fy].values()) for fy in years},
    )
