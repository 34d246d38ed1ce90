"""
backend/app/database.py

Purpose:
    MongoDB connection bootstrap and index management for games, canonical
    odds rows (current + opening) and bets.

Dependencies:
    - motor.motor_asyncio
    - pymongo
    - app.config
"""

import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError, OperationFailure

from app.config import settings

client: AsyncIOMotorClient = None
db: AsyncIOMotorDatabase = None

logger = logging.getLogger("sharpledger.database")

# Canonical odds identity: one row per (event, market odd id, line).
ODDS_IDENTITY_KEY = [("eventid", 1), ("oddid", 1), ("line", 1)]


async def connect_db() -> None:
    global client, db
    client = AsyncIOMotorClient(
        settings.MONGO_URI,
        maxPoolSize=25,
        minPoolSize=5,
    )
    db = client[settings.MONGO_DB]
    await _ensure_indexes()


async def close_db() -> None:
    global client
    if client:
        client.close()


async def _ensure_indexes() -> None:
    """Create indexes on startup. Idempotent, safe to run repeatedly."""

    # ---- Canonical odds (current + opening) ----
    for collection in (db.odds, db.open_odds):
        try:
            await collection.create_index(
                ODDS_IDENTITY_KEY, unique=True, name="odds_identity",
            )
        except (DuplicateKeyError, OperationFailure) as exc:
            logger.warning(
                "Skipped unique odds identity index on %s due to duplicate data: %s",
                collection.name, exc,
            )
            await collection.create_index(
                ODDS_IDENTITY_KEY, name="odds_identity_lookup", unique=False,
            )
        await collection.create_index([("eventid", 1), ("score", 1)])
        await collection.create_index([("eventid", 1), ("marketname", 1)])

    # ---- Games ----
    await db.games.create_index([("sport", 1), ("game_time", -1)])
    await db.games.create_index([("status", 1), ("game_time", -1)])
    await db.games.create_index("home_team")
    await db.games.create_index("away_team")

    # ---- Bets ----
    await db.bets.create_index([("status", 1), ("game_id", 1)])
    await db.bets.create_index([("game_id", 1), ("oddid", 1)])
    await db.bets.create_index("settled_at", sparse=True)
    await db.bets.create_index("legs.game_id", sparse=True)
