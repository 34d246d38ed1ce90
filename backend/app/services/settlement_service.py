"""
backend/app/services/settlement_service.py

Purpose:
    Settle pending bets: match -> evaluate -> apply for single bets, per-leg
    evaluation plus aggregation for parlays. Per-bet failures are logged with
    the bet id and skipped so one bad bet never aborts a game or a sweep.

Dependencies:
    - app.services.bet_matcher
    - app.services.outcome_evaluator
    - app.services.settlement_applier
    - app.services.parlay_service
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from app.models.bet import BetStatus, Outcome
from app.monitoring.settlement_metrics import METRIC_UNIT_ERRORS
from app.services.bet_matcher import BetMatcher
from app.services.odds_repository import OddsRepository
from app.services.outcome_evaluator import evaluate
from app.services.parlay_service import aggregate_legs
from app.services.settlement_applier import SettlementApplier
from app.utils import utcnow

logger = logging.getLogger("sharpledger.settlement_service")


class SettlementService:
    def __init__(
        self,
        repository: OddsRepository | None = None,
        matcher: BetMatcher | None = None,
        applier: SettlementApplier | None = None,
    ):
        self.repository = repository or OddsRepository()
        self.matcher = matcher or BetMatcher(self.repository)
        self.applier = applier or SettlementApplier(self.repository)

    async def evaluate_bet(self, bet: dict[str, Any], event_id: str | None) -> Outcome | None:
        """Match and evaluate one bet or leg. None when no odds row was found."""
        match = await self.matcher.match(bet, event_id)
        if match is None:
            return None
        return evaluate(bet, match.row)

    async def settle_bet(self, bet: dict[str, Any], event_id: str | None = None) -> dict[str, Any] | None:
        """Settle one pending bet. Returns the updated bet, or None if it stays pending."""
        if bet.get("status", BetStatus.pending.value) != BetStatus.pending.value:
            return None
        if bet.get("legs"):
            return await self._settle_parlay(bet)

        outcome = await self.evaluate_bet(bet, bet.get("game_id") or event_id)
        if outcome is None or outcome.is_pending:
            logger.debug(
                "Bet %s stays pending (%s)",
                bet.get("_id"), outcome.reason if outcome else "unmatched",
            )
            return None
        return await self.applier.apply(bet, outcome)

    async def _settle_parlay(self, bet: dict[str, Any]) -> dict[str, Any] | None:
        now = utcnow()
        legs = [dict(leg) for leg in bet["legs"]]
        changed = False
        for index, leg in enumerate(legs):
            if leg.get("status", BetStatus.pending.value) != BetStatus.pending.value:
                continue
            outcome = await self.evaluate_bet(leg, leg.get("game_id"))
            if outcome is None or outcome.is_pending:
                continue
            leg["status"] = outcome.status.value
            leg["settlement_reason"] = outcome.reason
            leg["settled_at"] = now
            changed = True
            logger.debug("Parlay %s leg %d -> %s", bet.get("_id"), index + 1, outcome.status.value)

        resolution = aggregate_legs(legs)
        if resolution.status == BetStatus.pending:
            if changed:
                await self.repository.update_pending_legs(bet["_id"], legs)
            if resolution.blocked:
                await self.applier.flag_blocked(bet, resolution.reason)
            return None

        extra: dict[str, Any] = {"legs": legs}
        if resolution.odds is not None:
            extra["settled_odds"] = resolution.odds
        return await self.applier.apply(
            bet,
            Outcome(status=resolution.status, reason=resolution.reason),
            odds=resolution.odds,
            extra_fields=extra,
            now=now,
        )

    async def _settle_isolated(self, bet: dict[str, Any], event_id: str | None) -> bool:
        try:
            return await self.settle_bet(bet, event_id) is not None
        except Exception:
            METRIC_UNIT_ERRORS.labels(stage="bet").inc()
            logger.exception("Settlement failed for bet %s (game=%s)", bet.get("_id"), event_id)
            return False

    async def settle_game(self, game_id: str) -> int:
        """Settle all pending bets of one game concurrently. Returns bets settled."""
        bets = await self.repository.pending_bets_for_game(game_id)
        if not bets:
            return 0
        results = await asyncio.gather(*(self._settle_isolated(b, game_id) for b in bets))
        settled = sum(1 for r in results if r)
        logger.info("Game %s: settled %d/%d pending bets", game_id, settled, len(bets))
        return settled

    async def settle_pending(self, limit: int | None = None) -> int:
        """Sweep over every still-pending bet regardless of date."""
        bets = await self.repository.pending_bets(limit)
        if not bets:
            return 0
        results = await asyncio.gather(*(self._settle_isolated(b, b.get("game_id")) for b in bets))
        settled = sum(1 for r in results if r)
        logger.info("Pending sweep: settled %d/%d bets", settled, len(bets))
        return settled
