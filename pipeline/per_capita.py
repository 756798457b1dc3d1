"""Per-capita normalisation of obligations by state population."""

from __future__ import annotations

from typing import Iterable, Mapping

from pipeline.reference import population_key


def per_capita(obligations: float | None, population: float | None) -> float | None:
    """Obligations divided by population, or None when either is unusable.

    Population must be strictly positive; a missing obligation is undefined,
    not zero.
    """
    if obligations is None or population is None or population <= 0:
        return None
    return obligations / population


def per_capita_for(state: str, fiscal_year: int,
                   obligations_by_year: Mapping[int, Mapping[str, float]],
                   population: Mapping[str, float]) -> float | None:
    """Per-capita value for one (state, fiscal year) from the fetched tables."""
    year_map = obligations_by_year.get(int(fiscal_year)) or {}
    return per_capita(year_map.get(state), population.get(population_key(state, fiscal_year)))


def per_capita_table(states: Iterable[str], years: Iterable[int],
                     obligations_by_year: Mapping[int, Mapping[str, float]],
                     population: Mapping[str, float]) -> dict[str, dict[int, float]]:
    """``{state: {fy: value}}`` holding only the defined values."""
    years = list(years)
    table: dict[str, dict[int, float]] = {}
    for st in states:
        row: dict[int, float] = {}
        for fy in years:
            value = per_capita_for(st, fy, obligations_by_year, population)
            if value is not None:
                row[fy] = value
        table[st] = row
    return table
