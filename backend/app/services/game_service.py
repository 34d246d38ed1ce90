"""Game document upserts and final-score recording."""

import logging

import app.database as _db
from app.models.game import Game, GameStatus
from app.utils import utcnow

logger = logging.getLogger("sharpledger.game_service")


async def upsert_game(game: Game) -> None:
    """Insert or refresh a game from the provider feed.

    A game already recorded as final keeps its status and scores.
    """
    now = utcnow()
    doc = game.to_document()
    game_id = doc.pop("_id")
    status = doc.pop("status")
    home_score = doc.pop("home_score")
    away_score = doc.pop("away_score")
    doc["updated_at"] = now

    await _db.db.games.update_one(
        {"_id": game_id},
        {"$set": doc, "$setOnInsert": {"created_at": now}},
        upsert=True,
    )
    await _db.db.games.update_one(
        {"_id": game_id, "status": {"$ne": GameStatus.final.value}},
        {"$set": {"status": status, "home_score": home_score, "away_score": away_score}},
    )


async def record_final_score(game: Game) -> bool:
    """Mark a completed game final with its scores. True if the document changed."""
    if not game.is_completed:
        return False
    result = await _db.db.games.update_one(
        {"_id": game.id},
        {"$set": {
            "status": GameStatus.final.value,
            "home_score": game.home_score,
            "away_score": game.away_score,
            "updated_at": utcnow(),
        }},
    )
    if result.modified_count:
        logger.info(
            "Recorded final score for %s: %s %s - %s %s",
            game.id, game.home_team, game.home_score, game.away_score, game.away_team,
        )
    return result.modified_count > 0
