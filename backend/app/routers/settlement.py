"""
backend/app/routers/settlement.py

Purpose:
    Operator endpoints for the settlement run and the pre-game odds refresh.
    Both jobs are stateless and parameterless; each returns its structured
    summary.

Dependencies:
    - app.workers.settlement_job
    - app.workers.odds_poller
    - app.workers._state
"""

import logging

from fastapi import APIRouter, HTTPException, status
from fastapi.responses import JSONResponse

from app.workers import settlement_job
from app.workers import odds_poller
from app.workers._state import get_state

router = APIRouter(tags=["settlement"])
logger = logging.getLogger("sharpledger.settlement_router")


@router.post("/api/settle-bets")
async def settle_bets():
    """Run settlement over the lookback window and return the run summary."""
    try:
        summary = await settlement_job.run_settlement()
    except Exception as exc:
        logger.exception("Settlement run failed")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "error": str(exc)},
        )
    return summary.model_dump(mode="json", by_alias=True)


@router.get("/api/settle-bets/last")
async def last_settlement():
    doc = await get_state(settlement_job.STATE_KEY)
    if not doc or not doc.get("last_metrics"):
        raise HTTPException(status.HTTP_404_NOT_FOUND, "No settlement run recorded yet.")
    return {"synced_at": doc.get("synced_at"), "summary": doc["last_metrics"]}


@router.post("/api/odds/refresh")
async def refresh_odds():
    """Refresh pre-game odds for all leagues, ignoring the smart-sleep window."""
    try:
        summary = await odds_poller.poll_odds(force=True)
    except Exception as exc:
        logger.exception("Odds refresh failed")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "error": str(exc)},
        )
    return summary.model_dump(mode="json", by_alias=True)
