from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel


class GameStatus(str, Enum):
    scheduled = "scheduled"
    live = "live"
    started = "started"
    final = "final"
    cancelled = "cancelled"
    postponed = "postponed"


# Odds writes stop once a game reaches any of these (closing-line guard).
STARTED_STATUSES = frozenset({
    GameStatus.started.value,
    GameStatus.live.value,
    GameStatus.final.value,
})

# Raw provider status strings that mean the game is over.
FINISHED_STATUS_ALIASES = frozenset({
    "f", "final", "ft", "finished", "completed", "ended", "final/ot", "f/ot",
})

_STATUS_MAP = {
    "scheduled": GameStatus.scheduled,
    "upcoming": GameStatus.scheduled,
    "started": GameStatus.started,
    "live": GameStatus.live,
    "in_progress": GameStatus.live,
    "cancelled": GameStatus.cancelled,
    "canceled": GameStatus.cancelled,
    "postponed": GameStatus.postponed,
}


def normalize_status(raw: Any) -> GameStatus:
    if not raw:
        return GameStatus.scheduled
    text = str(raw).strip().lower()
    if text in FINISHED_STATUS_ALIASES:
        return GameStatus.final
    return _STATUS_MAP.get(text, GameStatus.scheduled)


class Game(BaseModel):
    """Game document, `_id` is the upstream event id."""
    id: str
    sport: str
    league: str
    home_team: str
    away_team: str
    home_team_name: str
    away_team_name: str
    game_time: datetime
    status: GameStatus = GameStatus.scheduled
    home_score: Optional[int] = None
    away_score: Optional[int] = None
    odds: Dict[str, Any] = {}

    @property
    def is_completed(self) -> bool:
        return (
            self.status == GameStatus.final
            and self.home_score is not None
            and self.away_score is not None
        )

    def to_document(self) -> dict[str, Any]:
        doc = self.model_dump(exclude={"id", "odds"})
        doc["status"] = self.status.value
        doc["_id"] = self.id
        return doc
