"""
backend/app/workers/settlement_job.py

Purpose:
    Settlement run over the lookback window (today and yesterday by default)
    for every configured sport:

        1. fetch      one unit per (sport, date), all issued concurrently
        2. process    per game: upsert game, refresh odds (guarded), and for
                      completed games record the final score and annotate
                      the odds rows
        3. settle     pending bets of each completed game
        4. sweep      every bet still pending, regardless of date

    Failures are isolated per unit, per game and per bet; the run always
    returns a SettlementSummary, which is also persisted in worker_state.

Dependencies:
    - app.providers.sportsgameodds
    - app.services.* (ingest, annotation, settlement)
    - app.workers._state
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timedelta
from time import perf_counter

from pydantic import ValidationError

from app.config import settings
from app.models.game import Game
from app.models.settlement import (
    FetchResult,
    GameSettlement,
    SettlementSummary,
    UnitState,
    WorkUnit,
)
from app.monitoring.settlement_metrics import (
    METRIC_FETCH_FAILURES,
    METRIC_LAST_RUN,
    METRIC_RUN_LATENCY,
    METRIC_UNIT_ERRORS,
)
from app.providers.base import BaseProvider
from app.providers.sportsgameodds import sportsgameodds_provider
from app.services.game_service import record_final_score, upsert_game
from app.services.odds_ingest_service import refresh_game_odds
from app.services.odds_normalizer import normalize_odds, provider_scores
from app.services.odds_store_writer import OddsStoreWriter
from app.services.score_annotator import ScoreAnnotator
from app.services.settlement_service import SettlementService
from app.utils import iso_date, utcnow
from app.workers._state import set_synced

logger = logging.getLogger("sharpledger.settlement_job")

STATE_KEY = "settlement"


def lookback_days(now: datetime) -> list[datetime]:
    """UTC day starts from the oldest lookback day up to today."""
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return [today - timedelta(days=i) for i in range(settings.SETTLEMENT_LOOKBACK_DAYS, -1, -1)]


async def fetch_unit(provider: BaseProvider, sport: str, day: datetime) -> FetchResult:
    result = FetchResult(sport=sport, date=iso_date(day))
    try:
        raw_events = await provider.get_events(sport, day, day + timedelta(days=1))
    except Exception as exc:
        METRIC_FETCH_FAILURES.labels(sport=sport).inc()
        logger.warning("Fetch failed for %s on %s: %s", sport, result.date, exc)
        result.success = False
        result.error = str(exc)
        return result

    for raw in raw_events:
        try:
            result.games.append(provider.parse_event(raw, sport))
        except (KeyError, TypeError, ValueError, ValidationError) as exc:
            logger.warning("Skipping malformed %s event %s: %s", sport, raw.get("eventID"), exc)
    return result


class SettlementRun:
    """State of one run; nothing here outlives run_settlement()."""

    def __init__(self, writer: OddsStoreWriter, annotator: ScoreAnnotator, settlement: SettlementService):
        self.writer = writer
        self.annotator = annotator
        self.settlement = settlement
        self.seen_games: set[str] = set()

    async def process_game(self, game: Game) -> GameSettlement:
        outcome = GameSettlement(game_id=game.id)
        await upsert_game(game)
        written = await refresh_game_odds(game, self.writer)
        outcome.odds_written = written.inserted_current

        if game.is_completed:
            outcome.completed = True
            await record_final_score(game)
            annotation = await self.annotator.annotate(
                game, provider_scores(normalize_odds(game.odds)),
            )
            outcome.odds_updated = annotation.updated
        return outcome

    async def _process_isolated(self, unit: WorkUnit, game: Game) -> GameSettlement | None:
        try:
            return await self.process_game(game)
        except Exception:
            METRIC_UNIT_ERRORS.labels(stage="game").inc()
            logger.exception("Processing failed for game %s (%s %s)", game.id, unit.sport, unit.date)
            return None

    async def _settle_isolated(self, unit: WorkUnit, game_id: str) -> int:
        try:
            return await self.settlement.settle_game(game_id)
        except Exception:
            METRIC_UNIT_ERRORS.labels(stage="settle").inc()
            logger.exception("Settlement failed for game %s (%s %s)", game_id, unit.sport, unit.date)
            return 0

    async def run_unit(self, unit: WorkUnit, fetched: FetchResult) -> None:
        if not fetched.success:
            unit.state = UnitState.failed
            unit.error = fetched.error
            return

        games = [g for g in fetched.games if g.id not in self.seen_games]
        self.seen_games.update(g.id for g in games)
        unit.games_fetched = len(games)

        unit.state = UnitState.processing
        processed = await asyncio.gather(*(self._process_isolated(unit, g) for g in games))
        completed = [p for p in processed if p is not None and p.completed]
        unit.completed_games = len(completed)
        unit.odds_updated = sum(p.odds_updated for p in processed if p is not None)

        unit.state = UnitState.settling
        settled = await asyncio.gather(*(self._settle_isolated(unit, p.game_id) for p in completed))
        unit.bets_settled = sum(settled)
        unit.state = UnitState.done
        logger.info(
            "%s %s: %d games, %d completed, %d odds rows scored, %d bets settled",
            unit.sport, unit.date, unit.games_fetched, unit.completed_games,
            unit.odds_updated, unit.bets_settled,
        )


async def run_settlement(
    now: datetime | None = None,
    provider: BaseProvider | None = None,
    settlement: SettlementService | None = None,
) -> SettlementSummary:
    started = perf_counter()
    now = now or utcnow()
    provider = provider or sportsgameodds_provider
    settlement = settlement or SettlementService()
    run = SettlementRun(OddsStoreWriter(), ScoreAnnotator(), settlement)

    days = lookback_days(now)
    plan = [(sport, day) for day in days for sport in settings.settlement_sports]
    units = [WorkUnit(sport=sport, date=iso_date(day)) for sport, day in plan]
    logger.info("Settlement run: %d fetch units (%s to %s)", len(units), iso_date(days[0]), iso_date(days[-1]))

    fetched = await asyncio.gather(*(fetch_unit(provider, sport, day) for sport, day in plan))
    for unit, result in zip(units, fetched):
        await run.run_unit(unit, result)

    try:
        swept = await settlement.settle_pending()
    except Exception:
        METRIC_UNIT_ERRORS.labels(stage="sweep").inc()
        logger.exception("Pending sweep failed")
        swept = 0

    summary = SettlementSummary(
        total_games_fetched=sum(u.games_fetched for u in units),
        total_completed_games=sum(u.completed_games for u in units),
        total_odds_updated=sum(u.odds_updated for u in units),
        total_bets_settled=sum(u.bets_settled for u in units) + swept,
        sweep_bets_settled=swept,
        fetch_requests=len(units),
        successful_requests=sum(1 for r in fetched if r.success),
        date_range=f"{iso_date(days[0])} to {iso_date(days[-1])}",
        units=units,
    )
    summary.message = (
        f"Processed {summary.total_completed_games} completed games, "
        f"updated {summary.total_odds_updated} odds rows, "
        f"settled {summary.total_bets_settled} bets"
    )
    summary.processing_time_ms = int((perf_counter() - started) * 1000)

    METRIC_RUN_LATENCY.observe(summary.processing_time_ms / 1000)
    METRIC_LAST_RUN.set(time.time())
    try:
        await set_synced(STATE_KEY, metrics=summary.model_dump(mode="json", by_alias=True))
    except Exception:
        logger.warning("Failed to persist settlement summary", exc_info=True)
    logger.info("Settlement run finished in %dms: %s", summary.processing_time_ms, summary.message)
    return summary
