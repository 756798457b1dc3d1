"""
Delta and aggregation engine.

Window averages of per-capita obligations, the current-minus-baseline delta,
district-to-state vote roll-ups, two-party margins and shares, and the
scatter inputs.

A fiscal year whose per-capita value is undefined contributes 0 to the
window average rather than being excluded, and the divisor is always the
full window length.  Downstream numbers depend on this convention.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Callable, Iterable, Mapping, Optional, Sequence

from utils.config import KnownValues
from utils.strings import safe_float

logger = logging.getLogger(__name__)

# (state, fiscal_year) -> per-capita value, or None when undefined
PerCapitaLookup = Callable[[str, int], Optional[float]]


@dataclass
class VoteTotals:
    """Two-party vote totals for one state."""

    dem: float = 0.0
    opp: float = 0.0

    @property
    def total(self) -> float:
        return self.dem + self.opp


@dataclass(frozen=True)
class ScatterPoint:
    """One state's point on a scatter chart."""

    state: str
    x: float
    y: float

    def to_dict(self) -> dict:
        return {"state": self.state, "x": self.x, "y": self.y}


# ── Windows and deltas ────────────────────────────────────────────────────────


def window_average(state: str, years: Sequence[int], lookup: PerCapitaLookup) -> float:
    """Mean per-capita value for *state* over *years*; missing years count as 0.

    Raises:
        ValueError: if *years* is empty.
    """
    if not years:
        raise ValueError("window_average requires at least one fiscal year")
    total = 0.0
    for fy in years:
        value = lookup(state, fy)
        total += value if value is not None else 0.0
    return total / len(years)


def delta(state: str, baseline_years: Sequence[int], current_years: Sequence[int],
          lookup: PerCapitaLookup) -> float:
    """``window_average(current) - window_average(baseline)`` for *state*."""
    return (window_average(state, current_years, lookup)
            - window_average(state, baseline_years, lookup))


def window_averages(states: Iterable[str], years: Sequence[int],
                    lookup: PerCapitaLookup) -> dict[str, float]:
    return {st: window_average(st, years, lookup) for st in states}


def compute_deltas(states: Iterable[str], baseline_years: Sequence[int],
                   current_years: Sequence[int], lookup: PerCapitaLookup) -> dict[str, float]:
    """Delta for every state in *states*, in input order."""
    return {st: delta(st, baseline_years, current_years, lookup) for st in states}


# ── Votes and margins ─────────────────────────────────────────────────────────


def aggregate_districts_to_state(rows: Iterable[Mapping]) -> dict[str, VoteTotals]:
    """Sum per-district ``{state, dem, opp}`` rows into per-state totals.

    Non-numeric vote values count as 0; rows without a state are skipped.
    """
    totals: dict[str, VoteTotals] = {}
    for row in rows:
        state = str(row.get("state") or "").strip().upper()
        if not state:
            logger.debug("Skipping district row without a state: %r", row)
            continue
        entry = totals.setdefault(state, VoteTotals())
        entry.dem += vote_count(row.get("dem"))
        entry.opp += vote_count(row.get("opp"))
    return totals


def vote_count(value) -> float:
    """Parse a vote cell; blank, non-numeric or NaN values count as 0."""
    n = safe_float(value, default=0.0)
    return n if math.isfinite(n) else 0.0


def two_party_margin(dem: float, opp: float) -> float | None:
    """``(dem - opp) / (dem + opp)``, or None when there are no votes."""
    total = dem + opp
    if total == 0:
        return None
    return (dem - opp) / total


def two_party_share(dem: float, opp: float) -> float | None:
    """``dem / (dem + opp)``, or None when there are no votes."""
    total = dem + opp
    if total == 0:
        return None
    return dem / total


def _by_state(totals: Mapping[str, VoteTotals],
              measure: Callable[[float, float], Optional[float]]) -> dict[str, float]:
    out: dict[str, float] = {}
    for state, t in totals.items():
        value = measure(t.dem, t.opp)
        if value is not None:
            out[state] = value
    return out


def margins_from_totals(totals: Mapping[str, VoteTotals]) -> dict[str, float]:
    """Two-party margin per state; zero-vote states are left out."""
    return _by_state(totals, two_party_margin)


def shares_from_totals(totals: Mapping[str, VoteTotals]) -> dict[str, float]:
    """Democratic two-party vote share per state; zero-vote states are left out."""
    return _by_state(totals, two_party_share)


# ── Scatter inputs ────────────────────────────────────────────────────────────


def scatter_points(xs: Mapping[str, float], ys: Mapping[str, float],
                   states: Iterable[str] | None = None) -> list[ScatterPoint]:
    """Pair each state's x value (usually its delta) with its y value.

    Only states with both a finite x and a finite y are kept.  Order
    follows *states* when given, otherwise *xs*.
    """
    order = list(states) if states is not None else list(xs)
    points: list[ScatterPoint] = []
    for st in order:
        x = xs.get(st)
        y = ys.get(st)
        if x is None or y is None or not (math.isfinite(x) and math.isfinite(y)):
            continue
        points.append(ScatterPoint(state=st, x=x, y=y))
    return points


def group_by_winner(points: Iterable[ScatterPoint],
                    winners: Mapping[str, str]) -> dict[str, list[ScatterPoint]]:
    """Split points by the state's 2020 presidential winner.

    Every label in KnownValues.WINNER_LABELS is present in the result, even
    when empty.
    """
    groups: dict[str, list[ScatterPoint]] = {label: [] for label in KnownValues.WINNER_LABELS}
    for p in points:
        label = winners.get(p.state, KnownValues.UNKNOWN_WINNER)
        groups.setdefault(label, []).append(p)
    return groups


def group_means(groups: Mapping[str, list[ScatterPoint]]) -> dict[str, float | None]:
    """Mean y per winner group (None for an empty group)."""
    return {label: (sum(p.y for p in pts) / len(pts) if pts else None)
            for label, pts in groups.items()}
