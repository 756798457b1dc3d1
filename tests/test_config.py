"""
Tests for utils/config.py -- run windows, data paths, API settings and known values.
"""
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from utils.config import (
    BASELINE_YEARS,
    CURRENT_YEARS,
    AppConfig,
    DataPaths,
    FetchConfig,
    KnownValues,
    WindowConfig,
)


class TestWindowConfig:
    def test_defaults(self):
        w = WindowConfig()
        assert w.baseline_years == BASELINE_YEARS == (2017, 2018, 2019, 2020)
        assert w.current_years == CURRENT_YEARS == (2021, 2022, 2023, 2024)
        assert w.reference_year == 2024
        assert w.iija_population_year == 2023

    def test_all_years_deduplicated(self):
        w = WindowConfig((2019, 2020), (2020, 2021), reference_year=2017)
        assert w.all_years == (2019, 2020, 2021, 2017)

    def test_years_coerced_to_int(self):
        w = WindowConfig(["2018"], ["2022"])
        assert w.baseline_years == (2018,)
        assert w.reference_year == 2022

    @pytest.mark.parametrize("baseline,current", [((), (2021,)), ((2017,), ())])
    def test_empty_window_rejected(self, baseline, current):
        with pytest.raises(ValueError):
            WindowConfig(baseline, current)

    def test_to_dict_round_trip(self):
        w = WindowConfig((2016, 2017), (2022, 2023), reference_year=2023)
        data = w.to_dict()
        assert data["baseline_years"] == (2016, 2017)
        loaded = WindowConfig.from_dict({**data, "current_years": [2022, 2023]})
        assert loaded.current_years == (2022, 2023)
        assert loaded.reference_year == 2023


class TestFetchConfig:
    def test_defaults(self):
        cfg = FetchConfig()
        assert cfg.base_url == "https://api.usaspending.gov"
        assert cfg.scope == "place_of_performance"
        assert cfg.cache_ttl_hours == 24
        assert cfg.cache_dir == Path(".usaspending_cache")

    def test_from_dict_restores_path(self):
        cfg = FetchConfig.from_dict({"cache_dir": "/tmp/x", "timeout_seconds": 5})
        assert cfg.cache_dir == Path("/tmp/x")
        assert cfg.timeout_seconds == 5


class TestDataPaths:
    def test_file_names(self, tmp_path):
        p = DataPaths(tmp_path)
        assert p.population == tmp_path / "population_by_state_fy.csv"
        assert p.states.name == "states_50.json"
        assert p.winners.name == "winner_2020.json"
        assert p.state_elections.name == "2024-electoral-states.csv"
        assert p.district_elections.name == "2024-electoral-districts.csv"
        assert p.iija_snapshot.name == "iija_funding_march_2023.csv"
        assert p.president_2020.name == "2020-president-states.csv"


class TestAppConfig:
    def test_defaults(self, monkeypatch):
        for var in ("APP_RESULTS_PATH", "APP_PORT", "APP_HOST", "APP_LOG_FORMAT",
                    "APP_CORS_ORIGINS"):
            monkeypatch.delenv(var, raising=False)
        cfg = AppConfig.from_env()
        assert cfg.results_path == Path("analysis_results.json")
        assert cfg.api_port == 8000
        assert cfg.log_format == "text"
        assert cfg.cors_origins == ["*"]

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("APP_RESULTS_PATH", "/srv/results.json")
        monkeypatch.setenv("APP_PORT", "9001")
        monkeypatch.setenv("APP_CORS_ORIGINS", "https://a.example, https://b.example,")
        cfg = AppConfig.from_env()
        assert cfg.results_path == Path("/srv/results.json")
        assert cfg.api_port == 9001
        assert cfg.cors_origins == ["https://a.example", "https://b.example"]


class TestKnownValues:
    def test_fifty_states_plus_dc(self):
        assert len(set(KnownValues.STATE_NAMES.values())) == 51
        assert "DC" in KnownValues.STATE_NAMES.values()
        assert "PR" not in KnownValues.STATE_NAMES.values()

    def test_abbr_for_name(self):
        assert KnownValues.abbr_for_name("NEW YORK") == "NY"
        assert KnownValues.abbr_for_name("PUERTO RICO") == "PR"
        assert KnownValues.abbr_for_name("PUERTO RICO", include_territories=False) is None
        assert KnownValues.abbr_for_name("ATLANTIS") is None

    def test_winner_labels(self):
        assert KnownValues.WINNER_LABELS == ("Biden", "Trump", "Unknown")
