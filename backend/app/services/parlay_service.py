"""
backend/app/services/parlay_service.py

Purpose:
    Derive a parlay's status from its individually evaluated legs.

    any leg lost          -> lost
    any leg pending       -> pending (leg statuses are still persisted)
    all legs won          -> won at the parlay's own odds
    all legs void         -> void
    won + void mix        -> won, odds recomputed over the won legs only

Dependencies:
    - app.utils.odds_utils (American/decimal conversion)
"""

import math
from dataclasses import dataclass
from typing import Optional

from app.models.bet import BetStatus
from app.utils.odds_utils import american_to_decimal, decimal_to_american, to_float


@dataclass(frozen=True)
class ParlayResolution:
    status: BetStatus
    reason: str
    odds: Optional[float] = None    # set when the payout price differs from the parlay's own
    blocked: bool = False           # decided but cannot be priced


def combined_american_odds(leg_odds: list[float]) -> float:
    """American odds of a parlay built from the given leg prices."""
    decimal = math.prod(american_to_decimal(o) for o in leg_odds)
    return decimal_to_american(decimal)


def aggregate_legs(legs: list[dict]) -> ParlayResolution:
    if not legs:
        return ParlayResolution(BetStatus.pending, "parlay has no legs")

    statuses = [str(leg.get("status") or BetStatus.pending.value) for leg in legs]
    if BetStatus.lost.value in statuses:
        return ParlayResolution(BetStatus.lost, f"leg {statuses.index(BetStatus.lost.value) + 1} lost")
    if BetStatus.pending.value in statuses:
        open_legs = statuses.count(BetStatus.pending.value)
        return ParlayResolution(BetStatus.pending, f"{open_legs} leg(s) pending")

    won = [leg for leg in legs if leg.get("status") == BetStatus.won.value]
    if not won:
        return ParlayResolution(BetStatus.void, "all legs void")
    if len(won) == len(legs):
        return ParlayResolution(BetStatus.won, "all legs won")

    prices = [to_float(leg.get("odds")) for leg in won]
    if any(p is None or p == 0 for p in prices):
        return ParlayResolution(BetStatus.pending, "won leg without odds, cannot reprice", blocked=True)
    return ParlayResolution(
        BetStatus.won,
        f"{len(won)} won, {len(legs) - len(won)} void; repriced over won legs",
        odds=combined_american_odds(prices),
    )
