"""
backend/app/services/settlement_applier.py

Purpose:
    Turn a decided Outcome into the bet's terminal state: American-odds
    profit, actual payout and settlement timestamp, written in one update
    conditional on the bet still being pending.

Notes:
    - won:  profit = stake * (odds/100 if odds > 0 else 100/|odds|),
            payout = stake + profit
    - lost: profit = -stake, payout = 0
    - void: profit = 0, payout = stake
    - Amounts are rounded to cents. A bet that is already terminal is never
      re-applied; apply() returns None in that case.
    - A bet with no usable stake, or a win with no odds, stays pending and is
      flagged with `settlement_blocked` instead.

Dependencies:
    - app.services.odds_repository
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from app.models.bet import BetStatus, Outcome
from app.monitoring.settlement_metrics import (
    METRIC_BETS_SETTLED,
    METRIC_BLOCKED_BETS,
    METRIC_SETTLE_CONFLICTS,
)
from app.services.odds_repository import OddsRepository
from app.utils import utcnow
from app.utils.odds_utils import to_float, win_multiplier

logger = logging.getLogger("sharpledger.settlement_applier")


def compute_settlement(stake: float, odds: float | None, status: BetStatus) -> tuple[float, float]:
    """(profit, actual_payout) for a terminal status."""
    if status == BetStatus.won:
        if not odds:
            raise ValueError("won bet without odds")
        profit = stake * win_multiplier(odds)
        return round(profit, 2), round(stake + profit, 2)
    if status == BetStatus.lost:
        return round(-stake, 2), 0.0
    if status in (BetStatus.void, BetStatus.cancelled):
        return 0.0, round(stake, 2)
    raise ValueError(f"cannot settle with status {status.value}")


class SettlementApplier:
    def __init__(self, repository: OddsRepository | None = None):
        self.repository = repository or OddsRepository()

    async def apply(
        self,
        bet: dict[str, Any],
        outcome: Outcome,
        *,
        odds: float | None = None,
        extra_fields: dict[str, Any] | None = None,
        now: datetime | None = None,
    ) -> dict[str, Any] | None:
        """Write the terminal state. `odds` overrides the bet's own price (parlay recompute)."""
        if outcome.is_pending:
            return None
        if bet.get("status", BetStatus.pending.value) != BetStatus.pending.value:
            logger.debug("Bet %s already %s, not re-applied", bet.get("_id"), bet.get("status"))
            return None

        stake = to_float(bet.get("stake"))
        if stake is None or stake <= 0:
            await self.flag_blocked(bet, "missing or non-positive stake")
            return None
        price = odds if odds is not None else to_float(bet.get("odds"))
        try:
            profit, payout = compute_settlement(stake, price, outcome.status)
        except ValueError as exc:
            await self.flag_blocked(bet, str(exc))
            return None

        now = now or utcnow()
        fields: dict[str, Any] = {
            "status": outcome.status.value,
            "result": outcome.status.value,
            "settlement_reason": outcome.reason,
            "profit": profit,
            "actual_payout": payout,
            "settled_at": now,
            "updated_at": now,
            "settlement_blocked": None,
        }
        if extra_fields:
            fields.update(extra_fields)

        if not await self.repository.settle_bet(bet["_id"], fields):
            METRIC_SETTLE_CONFLICTS.inc()
            logger.info("Bet %s was settled concurrently, skipping", bet["_id"])
            return None

        METRIC_BETS_SETTLED.labels(status=outcome.status.value).inc()
        logger.info(
            "Settled bet %s: %s profit=%.2f payout=%.2f (%s)",
            bet["_id"], outcome.status.value, profit, payout, outcome.reason,
        )
        return {**bet, **fields}

    async def flag_blocked(self, bet: dict[str, Any], reason: str) -> None:
        """Leave a decided bet pending with a `settlement_blocked` marker.

        Warned and counted once per bet; later runs only log at debug.
        """
        if bet.get("settlement_blocked") == reason:
            logger.debug("Bet %s still blocked: %s", bet.get("_id"), reason)
            return
        METRIC_BLOCKED_BETS.labels(reason=reason).inc()
        logger.warning("Cannot settle bet %s: %s", bet.get("_id"), reason)
        if bet.get("_id") is not None:
            await self.repository.flag_blocked(bet["_id"], reason)
