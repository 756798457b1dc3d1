"""
Chart view endpoints.

GET /api/v1/views/per-capita       → baseline avg vs. reference year, per state
GET /api/v1/views/delta            → Δ per capita, sorted descending
GET /api/v1/views/scatter/{kind}   → president | house | reward scatter with trend line
GET /api/v1/views/iija             → IIJA snapshot per capita (404 if not loaded)
"""

from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query

from api.models import DeltaRow, IijaRow, PerCapitaRow, ScatterViewOut
from api.results import get_results

router = APIRouter(prefix="/views", tags=["views"])


@router.get(
    "/per-capita",
    response_model=list[PerCapitaRow],
    summary="Per-capita obligations: baseline average vs. reference year",
)
def per_capita_view(results: dict = Depends(get_results)) -> list[dict]:
    """States ordered by the larger of their two values, descending."""
    return results["per_capita"]


@router.get(
    "/delta",
    response_model=list[DeltaRow],
    summary="Change in obligations per capita",
)
def delta_view(
    winner: str | None = Query(None, description="Only states won by this 2020 candidate"),
    results: dict = Depends(get_results),
) -> list[dict]:
    rows = results["delta"]
    if winner:
        rows = [r for r in rows if r["winner"].lower() == winner.lower()]
    return rows


@router.get(
    "/scatter/{kind}",
    response_model=ScatterViewOut,
    summary="Scatter set with its trend line",
)
def scatter_view(kind: str, results: dict = Depends(get_results)) -> dict:
    """Return one scatter set (president, house or reward) with its regression."""
    scatter = results.get("scatter") or {}
    if kind not in scatter:
        raise HTTPException(
            status_code=404,
            detail=f"Unknown scatter kind '{kind}'. Expected one of: {', '.join(sorted(scatter))}",
        )
    return scatter[kind]


@router.get(
    "/iija",
    response_model=list[IijaRow],
    summary="IIJA funding per capita",
)
def iija_view(
    order: Literal["desc", "state"] = Query("desc", description="desc = by value, state = alphabetical"),
    results: dict = Depends(get_results),
) -> list[dict]:
    rows = results.get("iija")
    if rows is None:
        raise HTTPException(status_code=404, detail="No IIJA snapshot was loaded for this run.")
    if order == "state":
        rows = sorted(rows, key=lambda r: r["state"])
    return rows
