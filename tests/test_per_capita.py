"""Tests for pipeline/per_capita.py."""
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from pipeline.per_capita import per_capita, per_capita_for, per_capita_table


class TestPerCapita:
    def test_exact_division(self):
        assert per_capita(1_000_000.0, 250_000) == pytest.approx(4.0)

    def test_zero_population_undefined(self):
        assert per_capita(100.0, 0) is None

    def test_negative_population_undefined(self):
        assert per_capita(100.0, -5) is None

    def test_missing_population_undefined(self):
        assert per_capita(100.0, None) is None

    def test_missing_obligation_undefined_not_zero(self):
        assert per_capita(None, 1000) is None

    def test_zero_obligation_is_zero(self):
        assert per_capita(0.0, 1000) == 0.0


class TestPerCapitaFor:
    OBLIGATIONS = {2020: {"CA": 5000.0, "TX": 100.0}, 2021: {"CA": 6000.0}}
    POPULATION = {"CA-2020": 1000.0, "CA-2021": 1000.0, "TX-2020": 0.0}

    def test_lookup(self):
        assert per_capita_for("CA", 2021, self.OBLIGATIONS, self.POPULATION) == pytest.approx(6.0)

    def test_year_not_fetched(self):
        assert per_capita_for("CA", 2019, self.OBLIGATIONS, self.POPULATION) is None

    def test_state_absent_from_year(self):
        assert per_capita_for("TX", 2021, self.OBLIGATIONS, self.POPULATION) is None

    def test_zero_population(self):
        assert per_capita_for("TX", 2020, self.OBLIGATIONS, self.POPULATION) is None

    def test_table_holds_only_defined_values(self):
        table = per_capita_table(["CA", "TX"], [2020, 2021],
                                 self.OBLIGATIONS, self.POPULATION)
        assert table == {"CA": {2020: 5.0, 2021: 6.0}, "TX": {}}
