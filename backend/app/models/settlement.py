"""Settlement run state and summary models.

Summaries serialize with camelCase keys (`model_dump(by_alias=True)`),
which is the shape returned by the settlement endpoint.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from app.models.game import Game


class UnitState(str, Enum):
    fetching = "fetching"
    processing = "processing"
    settling = "settling"
    done = "done"
    failed = "failed"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FetchResult(_CamelModel):
    """Outcome of one (sport, date) fetch."""
    sport: str
    date: str
    games: List[Game] = []
    success: bool = True
    error: Optional[str] = None


class WorkUnit(_CamelModel):
    sport: str
    date: str
    state: UnitState = UnitState.fetching
    games_fetched: int = 0
    completed_games: int = 0
    odds_updated: int = 0
    bets_settled: int = 0
    error: Optional[str] = None


class GameSettlement(_CamelModel):
    game_id: str
    odds_written: int = 0
    odds_updated: int = 0
    bets_settled: int = 0
    completed: bool = False


class SettlementSummary(_CamelModel):
    success: bool = True
    total_games_fetched: int = 0
    total_completed_games: int = 0
    total_odds_updated: int = 0
    total_bets_settled: int = 0
    sweep_bets_settled: int = 0
    fetch_requests: int = 0
    successful_requests: int = 0
    date_range: str = ""
    message: str = ""
    processing_time_ms: int = 0
    units: List[WorkUnit] = []


class LeaguePollResult(_CamelModel):
    league: str
    games: int = 0
    skipped: int = 0
    odds_inserted: int = 0
    success: bool = True
    error: Optional[str] = None


class PollSummary(_CamelModel):
    success: bool = True
    total_games: int = 0
    total_skipped: int = 0
    successful_leagues: int = 0
    total_leagues: int = 0
    results: List[LeaguePollResult] = []
