"""
Tests for pipeline/aggregation.py -- window averages, deltas, margins, scatter inputs.
"""
import math
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from pipeline.aggregation import (
    ScatterPoint,
    VoteTotals,
    aggregate_districts_to_state,
    compute_deltas,
    delta,
    group_by_winner,
    group_means,
    margins_from_totals,
    scatter_points,
    shares_from_totals,
    two_party_margin,
    two_party_share,
    window_average,
)

BASELINE = (2017, 2018, 2019, 2020)
CURRENT = (2021, 2022, 2023, 2024)


def _lookup(table):
    return lambda state, fy: table.get((state, fy))


class TestWindowAverage:
    def test_missing_year_counts_as_zero(self):
        lookup = _lookup({("CA", 2017): 10.0, ("CA", 2018): 20.0, ("CA", 2020): 30.0})
        assert window_average("CA", BASELINE, lookup) == pytest.approx(15.0)

    def test_divides_by_full_window(self):
        lookup = _lookup({("CA", 2017): 40.0})
        assert window_average("CA", BASELINE, lookup) == pytest.approx(10.0)

    def test_all_missing_is_zero(self):
        assert window_average("CA", BASELINE, _lookup({})) == 0.0

    def test_empty_years_raises(self):
        with pytest.raises(ValueError):
            window_average("CA", (), _lookup({}))


class TestDelta:
    def test_current_minus_baseline(self):
        table = {("CA", fy): 15.0 for fy in BASELINE}
        table.update({("CA", fy): 25.0 for fy in CURRENT})
        assert delta("CA", BASELINE, CURRENT, _lookup(table)) == pytest.approx(10.0)

    def test_negative_delta(self):
        table = {("WY", fy): 30.0 for fy in BASELINE}
        assert delta("WY", BASELINE, CURRENT, _lookup(table)) == pytest.approx(-30.0)

    def test_compute_deltas_preserves_state_order(self):
        deltas = compute_deltas(["TX", "AK", "CA"], BASELINE, CURRENT, _lookup({}))
        assert list(deltas) == ["TX", "AK", "CA"]

    def test_identical_inputs_identical_output(self):
        table = {("CA", fy): float(fy % 7) for fy in BASELINE + CURRENT}
        first = compute_deltas(["CA"], BASELINE, CURRENT, _lookup(table))
        second = compute_deltas(["CA"], BASELINE, CURRENT, _lookup(table))
        assert first == second


class TestMargins:
    def test_two_party_margin(self):
        assert two_party_margin(60, 40) == pytest.approx(0.2)

    def test_negative_margin(self):
        assert two_party_margin(40, 60) == pytest.approx(-0.2)

    def test_zero_votes_undefined(self):
        assert two_party_margin(0, 0) is None

    def test_margins_exclude_zero_vote_states(self):
        totals = {"CA": VoteTotals(60, 40), "VT": VoteTotals(0, 0)}
        assert margins_from_totals(totals) == {"CA": pytest.approx(0.2)}

    def test_vote_totals_total(self):
        assert VoteTotals(3, 4).total == 7

    def test_two_party_share(self):
        assert two_party_share(60, 40) == pytest.approx(0.6)
        assert two_party_share(0, 0) is None

    def test_shares_exclude_zero_vote_states(self):
        totals = {"CA": VoteTotals(60, 40), "VT": VoteTotals(0, 0)}
        assert shares_from_totals(totals) == {"CA": pytest.approx(0.6)}


class TestAggregateDistricts:
    def test_sums_by_state(self):
        rows = [
            {"state": "CA", "dem": 30, "opp": 20},
            {"state": "ca", "dem": "30", "opp": "20"},
            {"state": "TX", "dem": 10, "opp": 5},
        ]
        totals = aggregate_districts_to_state(rows)
        assert totals["CA"].dem == 60
        assert totals["CA"].opp == 40
        assert totals["TX"].total == 15

    def test_non_numeric_votes_are_zero(self):
        totals = aggregate_districts_to_state([
            {"state": "OH", "dem": "n/a", "opp": float("nan")},
            {"state": "OH", "dem": 4, "opp": None},
        ])
        assert totals["OH"].dem == 4
        assert totals["OH"].opp == 0

    def test_missing_state_skipped(self):
        totals = aggregate_districts_to_state([{"dem": 1, "opp": 2}, {"state": "", "dem": 1}])
        assert totals == {}


class TestScatterPoints:
    def test_only_states_with_both_values(self):
        deltas = {"CA": 4.0, "TX": 1.0, "VT": 2.0}
        margins = {"CA": 0.2, "TX": -0.1, "NY": 0.1}
        points = scatter_points(deltas, margins)
        assert [p.state for p in points] == ["CA", "TX"]

    def test_non_finite_dropped(self):
        points = scatter_points({"CA": math.inf, "TX": 1.0}, {"CA": 0.2, "TX": math.nan})
        assert points == []

    def test_explicit_state_order(self):
        points = scatter_points({"CA": 1.0, "TX": 2.0}, {"CA": 0.1, "TX": 0.2},
                                states=["TX", "CA"])
        assert [p.state for p in points] == ["TX", "CA"]

    def test_point_fields(self):
        (p,) = scatter_points({"CA": 4.0}, {"CA": 0.2})
        assert p == ScatterPoint("CA", 4.0, 0.2)
        assert p.to_dict() == {"state": "CA", "x": 4.0, "y": 0.2}


class TestGroupByWinner:
    def test_groups_and_unknown(self):
        points = [ScatterPoint("CA", 1, 1), ScatterPoint("TX", 2, 2), ScatterPoint("PR", 3, 3)]
        groups = group_by_winner(points, {"CA": "Biden", "TX": "Trump"})
        assert [p.state for p in groups["Biden"]] == ["CA"]
        assert [p.state for p in groups["Trump"]] == ["TX"]
        assert [p.state for p in groups["Unknown"]] == ["PR"]

    def test_all_labels_present_when_empty(self):
        groups = group_by_winner([], {})
        assert set(groups) == {"Biden", "Trump", "Unknown"}


class TestGroupMeans:
    def test_mean_y_per_group(self):
        groups = group_by_winner(
            [ScatterPoint("CA", 0, 4.0), ScatterPoint("NY", 0, 2.0), ScatterPoint("TX", 0, 1.0)],
            {"CA": "Biden", "NY": "Biden", "TX": "Trump"})
        assert group_means(groups) == {"Biden": pytest.approx(3.0), "Trump": pytest.approx(1.0),
                                       "Unknown": None}
