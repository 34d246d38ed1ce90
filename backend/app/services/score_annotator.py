"""
backend/app/services/score_annotator.py

Purpose:
    Write final scores onto the unscored canonical odds rows of a finished
    game. Representation depends on the market family:
        total               -> "<home + away>"
        spread / moneyline  -> "<home>,<away>"
        anything else       -> provider-reported per-market score if the
                               feed had one, else "<home + away>"
    Numeric home_score / away_score are written alongside the string.

Notes:
    - Update-only and conditional on `score` being null; rows that already
      carry a score are never touched.
    - When no unscored rows exist, the event's rows are looked up for
      logging only; nothing is written on that path.

Dependencies:
    - app.services.odds_repository
    - app.services.odds_normalizer (market classification)
"""

from __future__ import annotations

import logging
from datetime import datetime

from app.models.game import Game
from app.models.odds import AnnotationResult, MarketFamily
from app.monitoring.odds_metrics import METRIC_ROWS_SCORED
from app.services.odds_normalizer import classify_market
from app.services.odds_repository import OddsRepository
from app.utils import utcnow

logger = logging.getLogger("sharpledger.score_annotator")


def score_for_row(
    family: MarketFamily,
    home: int,
    away: int,
    provider_score: str | None = None,
) -> str:
    if family == MarketFamily.total:
        return str(home + away)
    if family in (MarketFamily.spread, MarketFamily.moneyline):
        return f"{home},{away}"
    if provider_score is not None:
        return provider_score
    return str(home + away)


class ScoreAnnotator:
    def __init__(self, repository: OddsRepository | None = None):
        self.repository = repository or OddsRepository()

    async def annotate(
        self,
        game: Game,
        provider_scores: dict[str, str] | None = None,
        now: datetime | None = None,
    ) -> AnnotationResult:
        result = AnnotationResult(event_id=game.id)
        if game.home_score is None or game.away_score is None:
            logger.debug("Game %s has no final score yet, nothing to annotate", game.id)
            return result

        now = now or utcnow()
        provider_scores = provider_scores or {}
        rows = await self.repository.find_unscored_rows(game.id)
        result.candidates = len(rows)

        if not rows:
            existing = await self.repository.find_event_rows(game.id, limit=500)
            result.already_scored = sum(1 for r in existing if r.get("score") is not None)
            logger.info(
                "No unscored odds rows for %s (%d rows on event, %d scored)",
                game.id, len(existing), result.already_scored,
            )
            return result

        for row in rows:
            family = classify_market(row.get("bettypeid"), row.get("marketname"))
            score = score_for_row(
                family,
                game.home_score,
                game.away_score,
                provider_scores.get(str(row.get("oddid"))),
            )
            if await self.repository.set_row_score(
                row["_id"], score, game.home_score, game.away_score, now,
            ):
                result.updated += 1

        METRIC_ROWS_SCORED.inc(result.updated)
        logger.info(
            "Annotated %d/%d odds rows for %s with final score %s-%s",
            result.updated, result.candidates, game.id, game.home_score, game.away_score,
        )
        return result
