"""
Pytest fixtures for the spending/elections analysis tests.

Provides a small, deterministic five-state world:

    state  pop   baseline $/cap  current $/cap  delta  margin  2020 winner
    CA     1000        10             14           4     0.2    Biden
    TX      500         8              9           1    -0.1    Trump
    NY      800        12             15           3     0.1    Biden
    WY      100        20             30          10    -0.4    Trump
    VT      200         5              7           2     0.3    Biden

Population is constant across FY2017-FY2024.  The district-level file gives
the same margins except VT, whose districts have no votes (so the House
scatter has four points).  Biden's 2020 two-party share is CA 0.60, TX 0.45,
NY 0.60, WY 0.25 and VT 0.70.

Fixtures:
    data_dir       -- tmp directory with every reference table DataPaths expects
    data_paths     -- DataPaths pointing at data_dir
    fake_fetcher   -- in-memory stand-in for ObligationFetcher
    analysis_result -- run_analysis() over the above with default windows
"""

import json
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from utils.config import BASELINE_YEARS, CURRENT_YEARS, DataPaths, WindowConfig  # noqa: E402

STATES = ["CA", "TX", "NY", "WY", "VT"]
POPULATION = {"CA": 1000, "TX": 500, "NY": 800, "WY": 100, "VT": 200}
BASELINE_RATE = {"CA": 10.0, "TX": 8.0, "NY": 12.0, "WY": 20.0, "VT": 5.0}
CURRENT_RATE = {"CA": 14.0, "TX": 9.0, "NY": 15.0, "WY": 30.0, "VT": 7.0}
WINNERS = {"CA": "Biden", "TX": "Trump", "NY": "Biden", "WY": "Trump", "VT": "Biden"}

STATE_ELECTIONS_CSV = (
    "ST,State,Votes_Dem_2024,Votes_GOP_2024,Votes_Other_2024\n"
    "CA,California,60,40,3\n"
    "TX,Texas,45,55,1\n"
    "NY,\"New York\",55,45,0\n"
    "WY,Wyoming,30,70,2\n"
    "VT,Vermont,65,35,4\n"
)

DISTRICT_ELECTIONS_CSV = (
    "ST,District,Votes_Dem_2024,Votes_GOP_2024\n"
    "CA,1,30,20\n"
    "CA,2,30,20\n"
    "TX,1,20,30\n"
    "TX,2,25,25\n"
    "NY,1,55,45\n"
    "WY,AL,30,70\n"
    "VT,AL,,\n"
)

IIJA_CSV = (
    "State,Total (Billions)\n"
    "California,2.0\n"
    "Texas,1.0\n"
    "New York,0.8\n"
    "Wyoming,0.5\n"
    "Vermont,0.2\n"
    "Puerto Rico,0.1\n"
    "Atlantis,9.9\n"
)

PRESIDENT_2020_CSV = (
    "ST,Votes_Dem_2020,Votes_GOP_2020\n"
    "CA,60,40\n"
    "TX,45,55\n"
    "NY,60,40\n"
    "WY,25,75\n"
    "VT,70,30\n"
)


def population_csv(years=range(2017, 2025)) -> str:
    lines = ["state,fiscal_year,pop"]
    for st in STATES:
        for fy in years:
            lines.append(f"{st},{fy},{POPULATION[st]}")
    return "\n".join(lines) + "\n"


def obligations_for_year(fy: int) -> dict[str, float]:
    rate = BASELINE_RATE if fy in BASELINE_YEARS else CURRENT_RATE
    return {st: rate[st] * POPULATION[st] for st in STATES}


class FakeFetcher:
    """Returns deterministic obligations; records each fetch_years call."""

    def __init__(self, fail_year: int | None = None):
        self.fail_year = fail_year
        self.calls: list[list[int]] = []

    def fetch_years(self, fiscal_years, max_workers: int = 4, report=None):
        from utils.errors import RemoteServiceError

        years = list(fiscal_years)
        self.calls.append(years)
        if self.fail_year in years:
            raise RemoteServiceError("USAspending error 500 for FY%d" % self.fail_year,
                                     fiscal_year=self.fail_year, status_code=500)
        return {fy: obligations_for_year(fy) for fy in years}


@pytest.fixture()
def data_dir(tmp_path) -> Path:
    d = tmp_path / "data"
    d.mkdir()
    paths = DataPaths(d)
    paths.population.write_text(population_csv(), encoding="utf-8")
    paths.states.write_text(json.dumps(STATES), encoding="utf-8")
    paths.winners.write_text(json.dumps(WINNERS), encoding="utf-8")
    paths.state_elections.write_text(STATE_ELECTIONS_CSV, encoding="utf-8")
    paths.district_elections.write_text(DISTRICT_ELECTIONS_CSV, encoding="utf-8")
    paths.iija_snapshot.write_text(IIJA_CSV, encoding="utf-8")
    paths.president_2020.write_text(PRESIDENT_2020_CSV, encoding="utf-8")
    return d


@pytest.fixture()
def data_paths(data_dir) -> DataPaths:
    return DataPaths(data_dir)


@pytest.fixture()
def fake_fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture()
def windows() -> WindowConfig:
    return WindowConfig(BASELINE_YEARS, CURRENT_YEARS)


@pytest.fixture()
def analysis_result(data_paths, fake_fetcher, windows):
    from pipeline.analysis import load_inputs, run_analysis

    inputs = load_inputs(data_paths)
    return run_analysis(inputs, fake_fetcher, windows)
