"""
backend/app/services/odds_ingest_service.py

Purpose:
    Odds refresh for one fetched game: normalize -> consolidate -> write.
    The writer's closing-line guard drops the write for started games.

Dependencies:
    - app.services.odds_normalizer
    - app.services.odds_consolidator
    - app.services.odds_store_writer
"""

from __future__ import annotations

import logging

from app.models.game import Game
from app.models.odds import WriteResult
from app.monitoring.odds_metrics import METRIC_QUOTES_TOTAL, METRIC_ROWS_CONSOLIDATED
from app.services.odds_consolidator import consolidate
from app.services.odds_normalizer import normalize_odds
from app.services.odds_store_writer import OddsStoreWriter

logger = logging.getLogger("sharpledger.odds_ingest")


async def refresh_game_odds(game: Game, writer: OddsStoreWriter | None = None) -> WriteResult:
    if not game.odds:
        return WriteResult()
    writer = writer or OddsStoreWriter()

    quotes = normalize_odds(game.odds)
    result = consolidate(game.id, quotes)
    METRIC_QUOTES_TOTAL.labels(league=game.sport).inc(len(game.odds))
    METRIC_ROWS_CONSOLIDATED.labels(league=game.sport).inc(len(result.rows))

    written = await writer.write(result.rows)
    logger.info(
        "Odds refresh %s (%s @ %s): %d quotes -> %d rows, inserted %d current / %d opening%s",
        game.id, game.away_team, game.home_team,
        result.stats.total_quotes, result.stats.consolidated_rows,
        written.inserted_current, written.inserted_historical,
        " (guarded)" if written.skipped_games else "",
    )
    return written
