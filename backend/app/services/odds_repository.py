"""
backend/app/services/odds_repository.py

Purpose:
    Persistence access layer for canonical odds rows (current + opening),
    games and bets. Writes are idempotent upserts or conditional updates so
    concurrent runs need no application-level locking.

Dependencies:
    - app.database
    - app.services.errors
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Any

from pymongo import UpdateOne
from pymongo.errors import BulkWriteError, PyMongoError

import app.database as _db
from app.config import settings
from app.models.bet import BetStatus
from app.models.odds import CanonicalOddsRow
from app.services.errors import CONSTRAINT_ERROR_CODES, StoreWriteError
from app.utils import utcnow

logger = logging.getLogger("sharpledger.odds_repository")

CURRENT_COLLECTION = "odds"
OPENING_COLLECTION = "open_odds"


def _collection(name: str):
    return getattr(_db.db, name)


class OddsRepository:
    # ---------- Games ----------

    async def get_game(self, game_id: str) -> dict[str, Any] | None:
        return await _db.db.games.find_one({"_id": game_id})

    async def find_games_by_terms(
        self, sport: str | None, terms: list[str], limit: int,
    ) -> list[dict[str, Any]]:
        """Games of a sport whose team or display names contain any term."""
        clauses: list[dict[str, Any]] = []
        for term in terms:
            pattern = re.escape(term.strip())
            if len(pattern) < 2:
                continue
            regex = {"$regex": pattern, "$options": "i"}
            clauses.extend(
                {field: regex}
                for field in ("home_team", "away_team", "home_team_name", "away_team_name")
            )
        if not clauses:
            return []
        query: dict[str, Any] = {"$or": clauses}
        if sport:
            query["sport"] = sport
        cursor = _db.db.games.find(query).sort("game_time", -1).limit(limit)
        return await cursor.to_list(length=limit)

    # ---------- Canonical odds rows ----------

    async def upsert_rows(
        self, collection: str, rows: list[CanonicalOddsRow], *, preserve_existing: bool,
    ) -> dict[str, int]:
        """Unordered bulk upsert of one chunk.

        preserve_existing=True writes $setOnInsert only (opening lines).
        Otherwise prices move via $set while identity and created_at are
        only stamped on insert. Constraint violations count as deduplicated.
        """
        if not rows:
            return {"inserted": 0, "deduplicated": 0, "errors": 0}

        ops = [
            UpdateOne(
                row.identity_filter(),
                self._opening_update(row) if preserve_existing else self._current_update(row),
                upsert=True,
            )
            for row in rows
        ]
        try:
            result = await _collection(collection).bulk_write(ops, ordered=False)
            inserted = result.upserted_count
            return {"inserted": inserted, "deduplicated": max(0, len(rows) - inserted), "errors": 0}
        except BulkWriteError as exc:
            details = exc.details or {}
            write_errors = details.get("writeErrors", [])
            dup_count = sum(1 for e in write_errors if e.get("code") in CONSTRAINT_ERROR_CODES)
            unexpected = [e for e in write_errors if e.get("code") not in CONSTRAINT_ERROR_CODES]
            for err in unexpected[:5]:
                logger.error(
                    "Unexpected write error on %s (event=%s): code=%s %s",
                    collection, rows[0].eventid, err.get("code"), err.get("errmsg"),
                )
            inserted = details.get("nUpserted", 0)
            return {
                "inserted": inserted,
                "deduplicated": dup_count,
                "errors": len(unexpected),
            }
        except PyMongoError as exc:
            raise StoreWriteError(f"bulk write to {collection} failed: {exc}") from exc

    @staticmethod
    def _current_update(row: CanonicalOddsRow) -> dict[str, Any]:
        doc = row.to_document()
        on_insert = {
            "eventid": doc.pop("eventid"),
            "oddid": doc.pop("oddid"),
            "line": doc.pop("line"),
            "sportsbook": doc.pop("sportsbook"),
            "created_at": doc.pop("created_at"),
        }
        return {"$set": doc, "$setOnInsert": on_insert}

    @staticmethod
    def _opening_update(row: CanonicalOddsRow) -> dict[str, Any]:
        return {"$setOnInsert": row.to_document()}

    async def find_unscored_rows(self, event_id: str) -> list[dict[str, Any]]:
        cursor = _db.db.odds.find(
            {"eventid": event_id, "score": None},
            {"_id": 1, "oddid": 1, "bettypeid": 1, "marketname": 1, "line": 1},
        )
        return await cursor.to_list(length=20_000)

    async def find_event_rows(self, event_id: str, limit: int = 20_000) -> list[dict[str, Any]]:
        cursor = _db.db.odds.find({"eventid": event_id})
        return await cursor.to_list(length=limit)

    async def find_rows_for_events(self, event_ids: list[str]) -> dict[str, list[dict[str, Any]]]:
        out: dict[str, list[dict[str, Any]]] = {eid: [] for eid in event_ids}
        if not event_ids:
            return out
        docs = await _db.db.odds.find({"eventid": {"$in": event_ids}}).to_list(length=50_000)
        for doc in docs:
            out.setdefault(doc["eventid"], []).append(doc)
        return out

    async def set_row_score(
        self, row_id: Any, score: str, home_score: int, away_score: int, now: datetime,
    ) -> bool:
        """Write the final score once; rows that already carry one are left alone."""
        result = await _db.db.odds.update_one(
            {"_id": row_id, "score": None},
            {"$set": {
                "score": score,
                "home_score": home_score,
                "away_score": away_score,
                "updated_at": now,
            }},
        )
        return result.modified_count > 0

    # ---------- Bets ----------

    async def pending_bets_for_game(self, game_id: str) -> list[dict[str, Any]]:
        cursor = _db.db.bets.find({
            "status": BetStatus.pending.value,
            "$or": [{"game_id": game_id}, {"legs.game_id": game_id}],
        })
        return await cursor.to_list(length=10_000)

    async def pending_bets(self, limit: int | None = None) -> list[dict[str, Any]]:
        limit = limit or settings.SETTLEMENT_PENDING_SWEEP_LIMIT
        cursor = _db.db.bets.find({"status": BetStatus.pending.value}).sort("placed_at", 1).limit(limit)
        return await cursor.to_list(length=limit)

    async def backfill_bet_game_id(self, bet_id: Any, game_id: str) -> bool:
        """Record the discovered event on a bet that had no game reference."""
        result = await _db.db.bets.update_one(
            {"_id": bet_id, "game_id": None},
            {"$set": {"game_id": game_id, "updated_at": utcnow()}},
        )
        return result.modified_count > 0

    async def settle_bet(self, bet_id: Any, set_fields: dict[str, Any]) -> bool:
        """Conditional pending -> terminal transition. False if already terminal."""
        result = await _db.db.bets.update_one(
            {"_id": bet_id, "status": BetStatus.pending.value},
            {"$set": set_fields},
        )
        return result.modified_count > 0

    async def flag_blocked(self, bet_id: Any, reason: str) -> bool:
        """Record why a decided bet cannot be settled; it stays pending."""
        result = await _db.db.bets.update_one(
            {"_id": bet_id, "status": BetStatus.pending.value},
            {"$set": {"settlement_blocked": reason, "updated_at": utcnow()}},
        )
        return result.modified_count > 0

    async def update_pending_legs(self, bet_id: Any, legs: list[dict[str, Any]]) -> bool:
        """Persist leg statuses on a parlay that is still pending overall."""
        result = await _db.db.bets.update_one(
            {"_id": bet_id, "status": BetStatus.pending.value},
            {"$set": {"legs": legs, "updated_at": utcnow()}},
        )
        return result.modified_count > 0
