"""Bet status and settlement outcome models.

Bets are stored in the `bets` collection as plain documents:

    _id, game_id, oddid, bet_type, side, line_value, stake, odds (American),
    status, profit, potential_payout, actual_payout, placed_at, settled_at,
    sport, home_team, away_team, bet_description,
    legs: [ {game_id, oddid, bet_type, side, line_value, odds, status}, ... ]

`legs` is present on parlays only.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict


class BetStatus(str, Enum):
    pending = "pending"
    won = "won"
    lost = "lost"
    void = "void"
    cancelled = "cancelled"


TERMINAL_STATUSES = frozenset({
    BetStatus.won.value,
    BetStatus.lost.value,
    BetStatus.void.value,
    BetStatus.cancelled.value,
})


class Outcome(BaseModel):
    """Evaluator result; applied to a bet, never persisted on its own."""
    model_config = ConfigDict(frozen=True)

    status: BetStatus
    reason: str = ""

    @property
    def is_pending(self) -> bool:
        return self.status == BetStatus.pending
