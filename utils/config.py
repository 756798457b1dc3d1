"""Configuration management utilities for the spending/elections analysis.

Provides:
- A Config base class with dict round-tripping
- Fetch, window and data-path settings for an analysis run
- Environment-driven settings for the read-only API
- Known values: state names and codes, 2020 winner labels
"""

from pathlib import Path
from typing import Dict, Optional, Any
import os as _os


USASPENDING_BASE_URL = "https://api.usaspending.gov"
GEOGRAPHY_ENDPOINT = "/api/v2/search/spending_by_geography/"
OBLIGATION_CACHE_PREFIX = "usaspending_oblig_"

BASELINE_YEARS = (2017, 2018, 2019, 2020)
CURRENT_YEARS = (2021, 2022, 2023, 2024)


class Config:
    """Base configuration class for organizing application settings."""

    def __init__(self):
        pass

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary (private attributes excluded)."""
        return {k: v for k, v in self.__dict__.items() if not k.startswith("_")}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Config":
        """Create config from dictionary, starting from the class defaults."""
        config = cls()
        for key, value in data.items():
            current = getattr(config, key, None)
            if isinstance(current, Path) and value is not None:
                value = Path(value)
            elif isinstance(current, tuple) and isinstance(value, list):
                value = tuple(value)
            setattr(config, key, value)
        return config


class FetchConfig(Config):
    """Configuration for USAspending fetches."""

    def __init__(self):
        super().__init__()
        self.base_url = USASPENDING_BASE_URL
        self.scope = "place_of_performance"
        self.timeout_seconds = 60
        self.cache_dir: Optional[Path] = Path(".usaspending_cache")
        self.cache_ttl_hours = 24
        self.workers = 4
        self.max_retries = 3
        self.backoff_factor = 2.0
        self.pool_connections = 10
        self.pool_maxsize = 20


class WindowConfig(Config):
    """The pair of fiscal-year windows compared by the delta."""

    def __init__(self, baseline_years=BASELINE_YEARS, current_years=CURRENT_YEARS,
                 reference_year: Optional[int] = None):
        super().__init__()
        self.baseline_years = tuple(int(y) for y in baseline_years)
        self.current_years = tuple(int(y) for y in current_years)
        if not self.baseline_years or not self.current_years:
            raise ValueError("both fiscal-year windows must contain at least one year")
        # Single year compared against the baseline average in the per-capita view
        self.reference_year = int(reference_year or self.current_years[-1])
        self.iija_population_year = 2023

    @property
    def all_years(self) -> tuple[int, ...]:
        """Every fiscal year either window needs, in first-seen order."""
        seen: dict[int, None] = {}
        for fy in (*self.baseline_years, *self.current_years, self.reference_year):
            seen.setdefault(fy, None)
        return tuple(seen)


class DataPaths(Config):
    """Locations of the reference tables for an analysis run."""

    def __init__(self, data_dir: Path | str = "data"):
        super().__init__()
        data_dir = Path(data_dir)
        self.data_dir = data_dir
        self.population = data_dir / "population_by_state_fy.csv"
        self.states = data_dir / "states_50.json"
        self.winners = data_dir / "winner_2020.json"
        self.state_elections = data_dir / "2024-electoral-states.csv"
        self.district_elections = data_dir / "2024-electoral-districts.csv"
        self.iija_snapshot: Optional[Path] = data_dir / "iija_funding_march_2023.csv"
        self.president_2020: Optional[Path] = data_dir / "2020-president-states.csv"


class AppConfig(Config):
    """API configuration loaded from environment variables.

    Environment variables:
        APP_RESULTS_PATH: Results JSON written by run_analysis.py
                          (default: analysis_results.json)
        APP_PORT: API server port (default: 8000)
        APP_HOST: API server bind address (default: 127.0.0.1)
        APP_LOG_FORMAT: Logging format, "text" or "json" (default: text)
        APP_CORS_ORIGINS: Comma-separated allowed origins (default: *)
    """

    def __init__(self) -> None:
        super().__init__()
        self.results_path = Path(_os.getenv("APP_RESULTS_PATH", "analysis_results.json"))
        self.api_port = int(_os.getenv("APP_PORT", "8000"))
        self.api_host = _os.getenv("APP_HOST", "127.0.0.1")
        self.log_format = _os.getenv("APP_LOG_FORMAT", "text")
        raw_origins = _os.getenv("APP_CORS_ORIGINS", "*")
        self.cors_origins: list[str] = (
            ["*"] if raw_origins == "*"
            else [o.strip() for o in raw_origins.split(",") if o.strip()]
        )

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Create an AppConfig instance populated from environment variables."""
        return cls()


class KnownValues:
    """Container for known state codes, names and winner labels."""

    STATE_NAMES = {
        "ALABAMA": "AL", "ALASKA": "AK", "ARIZONA": "AZ", "ARKANSAS": "AR",
        "CALIFORNIA": "CA", "COLORADO": "CO", "CONNECTICUT": "CT",
        "DELAWARE": "DE", "FLORIDA": "FL", "GEORGIA": "GA", "HAWAII": "HI",
        "IDAHO": "ID", "ILLINOIS": "IL", "INDIANA": "IN", "IOWA": "IA",
        "KANSAS": "KS", "KENTUCKY": "KY", "LOUISIANA": "LA", "MAINE": "ME",
        "MARYLAND": "MD", "MASSACHUSETTS": "MA", "MICHIGAN": "MI",
        "MINNESOTA": "MN", "MISSISSIPPI": "MS", "MISSOURI": "MO",
        "MONTANA": "MT", "NEBRASKA": "NE", "NEVADA": "NV",
        "NEW HAMPSHIRE": "NH", "NEW JERSEY": "NJ", "NEW MEXICO": "NM",
        "NEW YORK": "NY", "NORTH CAROLINA": "NC", "NORTH DAKOTA": "ND",
        "OHIO": "OH", "OKLAHOMA": "OK", "OREGON": "OR", "PENNSYLVANIA": "PA",
        "RHODE ISLAND": "RI", "SOUTH CAROLINA": "SC", "SOUTH DAKOTA": "SD",
        "TENNESSEE": "TN", "TEXAS": "TX", "UTAH": "UT", "VERMONT": "VT",
        "VIRGINIA": "VA", "WASHINGTON": "WA", "WEST VIRGINIA": "WV",
        "WISCONSIN": "WI", "WYOMING": "WY",
        "DISTRICT OF COLUMBIA": "DC",
    }

    TERRITORY_NAMES = {
        "PUERTO RICO": "PR",
        "GUAM": "GU",
        "U.S. VIRGIN ISLANDS": "VI",
        "VIRGIN ISLANDS": "VI",
        "AMERICAN SAMOA": "AS",
        "NORTHERN MARIANA ISLANDS": "MP",
    }

    WINNER_LABELS = ("Biden", "Trump", "Unknown")
    UNKNOWN_WINNER = "Unknown"

    @classmethod
    def abbr_for_name(cls, name: str, include_territories: bool = True) -> Optional[str]:
        """Return the postal code for an upper-cased, normalised name."""
        code = cls.STATE_NAMES.get(name)
        if code is None and include_territories:
            code = cls.TERRITORY_NAMES.get(name)
        return code

