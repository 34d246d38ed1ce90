"""Persistent worker state: tracks synced_at and last run metrics per worker.

Uses a lightweight `worker_state` collection in MongoDB.
"""

from datetime import datetime, timedelta
from typing import Any

import app.database as _db
from app.utils import ensure_utc, utcnow


async def get_synced_at(worker_id: str) -> datetime | None:
    """Get the last synced_at timestamp for a worker."""
    doc = await _db.db.worker_state.find_one({"_id": worker_id})
    return doc["synced_at"] if doc else None


async def get_state(worker_id: str) -> dict[str, Any] | None:
    return await _db.db.worker_state.find_one({"_id": worker_id})


async def set_synced(worker_id: str, metrics: dict[str, Any] | None = None) -> None:
    """Mark a worker as just synced, optionally storing its last run metrics."""
    fields: dict[str, Any] = {"synced_at": utcnow()}
    if metrics is not None:
        fields["last_metrics"] = metrics
    await _db.db.worker_state.update_one(
        {"_id": worker_id},
        {"$set": fields},
        upsert=True,
    )


async def recently_synced(worker_id: str, max_age: timedelta) -> bool:
    """Check if a worker synced within the given time window."""
    last = await get_synced_at(worker_id)
    if not last:
        return False
    last = ensure_utc(last)
    return (utcnow() - last) < max_age
