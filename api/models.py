"""
Pydantic response models for the API.

Per-capita values are dollars per resident; margins are fractions in
[-1, 1] (positive = Democratic lead).  Optional fields default to None so
that views with undefined values still validate.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


# ── Chart view rows ───────────────────────────────────────────────────────────

class PerCapitaRow(BaseModel):
    """Baseline-window average vs. the reference fiscal year for one state."""
    state: str = Field(..., description="Two-letter state code", examples=["AK"])
    baseline_avg: float = Field(..., description="Mean obligations per capita over the baseline window", examples=[14210.5])
    reference: float | None = Field(None, description="Obligations per capita in the reference fiscal year", examples=[19875.2])
    winner: str = Field(..., description="2020 presidential winner: Biden | Trump | Unknown", examples=["Trump"])


class DeltaRow(BaseModel):
    """Change in obligations per capita between the two windows."""
    state: str = Field(..., description="Two-letter state code", examples=["NM"])
    delta: float = Field(..., description="Current-window average minus baseline-window average", examples=[3120.8])
    winner: str = Field(..., description="2020 presidential winner", examples=["Biden"])


class ScatterPointOut(BaseModel):
    """One state's point; axes depend on the scatter kind."""
    state: str = Field(..., description="Two-letter state code", examples=["OH"])
    x: float = Field(..., description="Δ per capita (president, house) or Biden 2020 share (reward)", examples=[1840.3])
    y: float = Field(..., description="Two-party margin (president, house) or Δ per capita (reward)", examples=[-0.112])


class RegressionOut(BaseModel):
    """Ordinary least-squares fit of y on x."""
    slope: float = Field(..., description="Change in y per unit of x")
    intercept: float = Field(..., description="y at x = 0")
    r2: float = Field(..., description="Coefficient of determination", examples=[0.04])
    p_value: float = Field(..., description="Two-sided p-value (normal approximation)", examples=[0.18])
    n: int = Field(..., description="Number of states in the fit", examples=[51])
    line: list[list[float]] = Field(..., description="Trend segment [[min_x, y], [max_x, y]]")


class ScatterViewOut(BaseModel):
    """Scatter data grouped by 2020 winner, with the trend line."""
    kind: str = Field(..., description="president | house | reward", examples=["president"])
    x_label: str
    y_label: str
    n: int = Field(..., description="States with both an x and a y value", examples=[51])
    groups: dict[str, list[ScatterPointOut]] = Field(..., description="Points keyed by 2020 winner")
    group_means: dict[str, float | None] = Field(default_factory=dict, description="Mean y per 2020 winner group")
    regression: RegressionOut | None = Field(None, description="None when fewer than 3 varied points")
    relevant: bool = Field(..., description="p < 0.05 and R² >= 0.10")
    trend_style: str = Field(..., description="solid when relevant, dashed otherwise", examples=["dashed"])


class IijaRow(BaseModel):
    """IIJA funding snapshot per resident for one state."""
    state: str = Field(..., description="Two-letter state code", examples=["WY"])
    per_capita: float = Field(..., description="IIJA dollars per resident", examples=[4415.7])
    winner: str = Field(..., description="2020 presidential winner", examples=["Trump"])


# ── Summary / meta ────────────────────────────────────────────────────────────

class WindowsOut(BaseModel):
    baseline_years: list[int] = Field(..., examples=[[2017, 2018, 2019, 2020]])
    current_years: list[int] = Field(..., examples=[[2021, 2022, 2023, 2024]])
    reference_year: int = Field(..., examples=[2024])
    iija_population_year: int | None = Field(None, examples=[2023])


class TrendSummary(BaseModel):
    n: int
    r2: float | None = None
    p_value: float | None = None
    relevant: bool


class SummaryOut(BaseModel):
    """Run-level overview of a results file."""
    windows: WindowsOut
    state_count: int = Field(..., examples=[51])
    obligation_totals: dict[str, float] = Field(..., description="Total obligations by fiscal year")
    trends: dict[str, TrendSummary] = Field(..., description="Regression summary per scatter kind")
    iija_available: bool


class HealthOut(BaseModel):
    status: str = Field(..., examples=["ok"])
    results_path: str
    state_count: int | None = None
