"""
Ordinary least-squares fit of margin on delta, with a significance test.

The p-value treats the slope's t statistic as standard normal (two-sided)
and evaluates the normal CDF with the Zelen & Severo (1964) polynomial.
This is not a Student-t test; the approximation is kept so published
numbers stay reproducible.

A trend line is "relevant" when p < 0.05 and R² >= 0.10.  No correction for
multiple comparisons is applied.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Sequence

RELEVANCE_P_THRESHOLD = 0.05
RELEVANCE_R2_THRESHOLD = 0.10

# Zelen & Severo (Abramowitz & Stegun 26.2.17)
_ZS_P = 0.2316419
_ZS_D = 0.3989423
_ZS_COEFFS = (0.3193815, -0.3565638, 1.781478, -1.821256, 1.330274)


@dataclass(frozen=True)
class RegressionResult:
    slope: float
    intercept: float
    r2: float
    p_value: float
    n: int
    line: tuple[tuple[float, float], tuple[float, float]]

    def to_dict(self) -> dict:
        return {
            "slope": self.slope,
            "intercept": self.intercept,
            "r2": self.r2,
            "p_value": self.p_value,
            "n": self.n,
            "line": [list(self.line[0]), list(self.line[1])],
        }


def normal_cdf(z: float) -> float:
    """Standard normal CDF, Zelen–Severo approximation (|error| < 7.5e-8)."""
    t = 1.0 / (1.0 + _ZS_P * abs(z))
    d = _ZS_D * math.exp(-z * z / 2.0)
    poly = 0.0
    for c in reversed(_ZS_COEFFS):
        poly = t * (c + poly)
    prob = d * poly
    return 1.0 - prob if z > 0 else prob


def _xy(point) -> tuple[float, float]:
    if isinstance(point, Sequence):
        return float(point[0]), float(point[1])
    return float(point.x), float(point.y)


def fit(points: Iterable) -> RegressionResult | None:
    """Fit ``y = slope * x + intercept`` by least squares.

    *points* are ``(x, y)`` pairs or objects with ``.x`` and ``.y``.

    Returns None when there are fewer than 3 points or when x or y has no
    variance.  A perfect fit (zero residuals) reports p = 0.
    """
    pairs = [_xy(p) for p in points]
    n = len(pairs)
    if n < 3:
        return None

    xs = [x for x, _ in pairs]
    ys = [y for _, y in pairs]
    mean_x = sum(xs) / n
    mean_y = sum(ys) / n

    ss_x = sum((x - mean_x) ** 2 for x in xs)
    ss_y = sum((y - mean_y) ** 2 for y in ys)
    if ss_x == 0 or ss_y == 0:
        return None
    s_xy = sum((x - mean_x) * (y - mean_y) for x, y in pairs)

    slope = s_xy / ss_x
    intercept = mean_y - slope * mean_x

    sse = sum((y - (slope * x + intercept)) ** 2 for x, y in pairs)
    r2 = 1.0 - sse / ss_y

    se = math.sqrt((sse / (n - 2)) / ss_x)
    if se == 0:
        # Zero residuals: the slope is exact
        p_value = 0.0
    else:
        t_stat = slope / se
        p_value = 2.0 * (1.0 - normal_cdf(abs(t_stat)))
    p_value = min(1.0, max(0.0, p_value))

    min_x, max_x = min(xs), max(xs)
    line = (
        (min_x, slope * min_x + intercept),
        (max_x, slope * max_x + intercept),
    )
    return RegressionResult(slope=slope, intercept=intercept, r2=r2,
                            p_value=p_value, n=n, line=line)


def is_relevant(result: RegressionResult | None) -> bool:
    if result is None:
        return False
    return result.p_value < RELEVANCE_P_THRESHOLD and result.r2 >= RELEVANCE_R2_THRESHOLD


def trend_style(result: RegressionResult | None) -> str:
    """Line style for a trend: solid when relevant, dashed otherwise."""
    return "solid" if is_relevant(result) else "dashed"
