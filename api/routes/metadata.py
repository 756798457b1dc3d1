"""GET /api/v1/summary endpoint.

Returns an overview of the loaded results file: windows, state count,
obligation totals per fiscal year and the trend-line verdict for each scatter.
"""

from fastapi import APIRouter, Depends

from api.models import SummaryOut
from api.results import get_results

router = APIRouter(tags=["meta"])


def summarize(results: dict) -> dict:
    trends = {}
    for kind, view in (results.get("scatter") or {}).items():
        reg = view.get("regression") or {}
        trends[kind] = {
            "n": view.get("n", 0),
            "r2": reg.get("r2"),
            "p_value": reg.get("p_value"),
            "relevant": bool(view.get("relevant")),
        }
    return {
        "windows": results["windows"],
        "state_count": len(results.get("states") or []),
        "obligation_totals": results.get("obligation_totals") or {},
        "trends": trends,
        "iija_available": results.get("iija") is not None,
    }


@router.get(
    "/summary",
    response_model=SummaryOut,
    summary="Results overview",
    response_description="Windows, totals and trend verdicts for the current results file",
)
def get_summary(results: dict = Depends(get_results)) -> dict:
    return summarize(results)
