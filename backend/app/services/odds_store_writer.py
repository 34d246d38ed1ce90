"""
backend/app/services/odds_store_writer.py

Purpose:
    Persist canonical odds rows into the current (`odds`) and opening
    (`open_odds`) collections in bounded chunks, refusing all writes for a
    game once it has started (closing-line guard).

Notes:
    - Upserts are unordered; duplicate-key / validation errors inside a
      chunk are swallowed and only reduce the insertion counts.
    - Unexpected store errors are logged and counted; the writer moves on
      to the next chunk.

Dependencies:
    - app.services.odds_repository
    - app.services.errors
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any

from app.config import settings
from app.models.game import STARTED_STATUSES
from app.models.odds import CanonicalOddsRow, WriteResult
from app.monitoring.odds_metrics import (
    METRIC_GUARDED_GAMES,
    METRIC_ROWS_DEDUPLICATED,
    METRIC_ROWS_INSERTED,
    METRIC_WRITE_ERRORS,
    METRIC_WRITE_LATENCY,
    observe_latency,
)
from app.services.errors import StoreWriteError
from app.services.odds_repository import CURRENT_COLLECTION, OPENING_COLLECTION, OddsRepository
from app.utils import ensure_utc, utcnow

logger = logging.getLogger("sharpledger.odds_store_writer")


def game_has_started(game: dict[str, Any] | None, now: datetime) -> bool:
    """True once a game's odds must no longer change."""
    if not game:
        return False
    if str(game.get("status") or "").lower() in STARTED_STATUSES:
        return True
    kickoff = game.get("game_time")
    if isinstance(kickoff, datetime):
        buffer = timedelta(minutes=settings.GAME_START_BUFFER_MINUTES)
        return ensure_utc(kickoff) + buffer <= now
    return False


class OddsStoreWriter:
    def __init__(self, repository: OddsRepository | None = None, chunk_size: int | None = None):
        self.repository = repository or OddsRepository()
        self.chunk_size = chunk_size or settings.ODDS_UPSERT_CHUNK_SIZE

    async def write(self, rows: list[CanonicalOddsRow], now: datetime | None = None) -> WriteResult:
        result = WriteResult()
        if not rows:
            return result
        now = now or utcnow()

        by_event: dict[str, list[CanonicalOddsRow]] = {}
        for row in rows:
            by_event.setdefault(row.eventid, []).append(row)

        with observe_latency(METRIC_WRITE_LATENCY):
            for event_id, event_rows in by_event.items():
                game = await self.repository.get_game(event_id)
                if game_has_started(game, now):
                    METRIC_GUARDED_GAMES.inc()
                    logger.info(
                        "Skipping odds write for started game %s (status=%s, %d rows)",
                        event_id, game.get("status"), len(event_rows),
                    )
                    result.skipped_games.append(event_id)
                    continue
                await self._write_event(event_id, event_rows, result)

        return result

    async def _write_event(
        self, event_id: str, rows: list[CanonicalOddsRow], result: WriteResult,
    ) -> None:
        for start in range(0, len(rows), self.chunk_size):
            chunk = rows[start:start + self.chunk_size]
            for collection, preserve in (
                (CURRENT_COLLECTION, False),
                (OPENING_COLLECTION, True),
            ):
                try:
                    counts = await self.repository.upsert_rows(
                        collection, chunk, preserve_existing=preserve,
                    )
                except StoreWriteError:
                    logger.exception(
                        "Odds chunk write failed for %s on %s (rows %d-%d)",
                        event_id, collection, start, start + len(chunk) - 1,
                    )
                    METRIC_WRITE_ERRORS.labels(collection=collection).inc(len(chunk))
                    result.errors += len(chunk)
                    continue

                METRIC_ROWS_INSERTED.labels(collection=collection).inc(counts["inserted"])
                METRIC_ROWS_DEDUPLICATED.labels(collection=collection).inc(counts["deduplicated"])
                if counts["errors"]:
                    METRIC_WRITE_ERRORS.labels(collection=collection).inc(counts["errors"])
                    result.errors += counts["errors"]
                if preserve:
                    result.inserted_historical += counts["inserted"]
                else:
                    result.inserted_current += counts["inserted"]
