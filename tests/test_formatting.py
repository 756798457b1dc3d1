"""
Unit tests for utils/formatting.py -- console output of the analysis summary.
"""
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from utils.formatting import (
    TableFormatter,
    format_amount,
    format_dollars,
    format_p_value,
    format_percent,
)


class TestFormatDollars:
    @pytest.mark.parametrize("value,expected", [
        (1234.6, "$1,235"),
        (0.0, "$0"),
        (-52.2, "-$52"),
        (14210.49, "$14,210"),
    ])
    def test_values(self, value, expected):
        assert format_dollars(value) == expected

    def test_none_and_nan(self):
        assert format_dollars(None) == ""
        assert format_dollars(float("nan")) == ""


class TestFormatAmount:
    @pytest.mark.parametrize("value,expected", [
        (1_234_567_890, "$1.2B"),
        (5_600_000, "$5.6M"),
        (999_999, "$999,999"),
        (-2_500_000_000, "-$2.5B"),
    ])
    def test_values(self, value, expected):
        assert format_amount(value) == expected

    def test_none(self):
        assert format_amount(None) == "-"


class TestFormatPercent:
    def test_fraction(self):
        assert format_percent(0.2) == "20.0%"

    def test_negative(self):
        assert format_percent(-0.25) == "-25.0%"

    def test_precision(self):
        assert format_percent(0.12346, precision=2) == "12.35%"

    def test_none(self):
        assert format_percent(None) == ""


class TestFormatPValue:
    def test_tiny(self):
        assert format_p_value(0.0) == "<0.001"
        assert format_p_value(0.0004) == "<0.001"

    def test_regular(self):
        assert format_p_value(0.0512) == "0.051"

    def test_none(self):
        assert format_p_value(None) == "-"


class TestTableFormatter:
    def test_render_alignment(self):
        t = TableFormatter(["State", "Δ"], align=["l", "r"])
        t.add_row(["WY", "$10"])
        t.add_row(["CA", "$4"])
        lines = t.render().splitlines()
        assert lines[0] == "State    Δ"
        assert lines[1] == "-----  ---"
        assert lines[2] == "WY     $10"
        assert lines[3] == "CA      $4"

    def test_none_cell_blank(self):
        t = TableFormatter(["a", "b"])
        t.add_row([None, 1])
        assert t.render().splitlines()[2] == "   1"

    def test_headers_only(self):
        assert TableFormatter(["x"]).render() == "x\n-"
