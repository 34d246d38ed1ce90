"""
backend/app/config.py

Purpose:
    Central settings loading for the odds consolidation and settlement
    services.

Dependencies:
    - pydantic-settings
    - pathlib
"""

from pathlib import Path

from pydantic_settings import BaseSettings

# Prefer backend/.env, fallback to project-root .env.
_BACKEND_ENV_FILE = Path(__file__).resolve().parent.parent / ".env"
_ROOT_ENV_FILE = Path(__file__).resolve().parent.parent.parent / ".env"


class Settings(BaseSettings):
    MONGO_URI: str = "mongodb://localhost:27017"
    MONGO_DB: str = "sharpledger"
    BACKEND_CORS_ORIGINS: str = "http://localhost:3000"

    # Upstream odds provider (SportsGameOdds v2)
    ODDS_API_KEY: str = ""
    ODDS_API_BASE_URL: str = "https://api.sportsgameodds.com/v2"
    ODDS_API_TIMEOUT_SECONDS: float = 30.0
    ODDS_API_PAGE_LIMIT: int = 50
    ODDS_API_MAX_PAGES: int = 20
    ODDS_API_MAX_EVENTS: int = 500
    ODDS_FETCH_LOOKAHEAD_DAYS: int = 7
    HTTP_MAX_RETRIES: int = 2
    HTTP_BACKOFF_BASE_SECONDS: float = 2.0
    CIRCUIT_FAILURE_THRESHOLD: int = 3
    CIRCUIT_RECOVERY_SECONDS: float = 300.0

    # Canonical odds rows
    ODDS_UPSERT_CHUNK_SIZE: int = 100
    ODDS_PRICE_CLAMP: int = 9999
    ODDS_PRICE_REJECT_ABOVE: int = 50000  # |odds| beyond this is junk from the book, stored as null
    ODDS_TEXT_MAX_LENGTH: int = 50
    ODDS_ID_MAX_LENGTH: int = 100
    GAME_START_BUFFER_MINUTES: int = 10

    # Settlement run
    SETTLEMENT_SPORTS: str = "NFL,NBA,WNBA,MLB,NHL,NCAAF,NCAAB,MLS,UEFA_CHAMPIONS_LEAGUE"
    SETTLEMENT_LOOKBACK_DAYS: int = 1  # today + yesterday
    SETTLEMENT_PENDING_SWEEP_LIMIT: int = 5000
    TEAM_SEARCH_LIMIT: int = 5

    # Scheduler
    SCHEDULER_ENABLED: bool = True
    ODDS_POLL_MINUTES: int = 15
    SETTLEMENT_INTERVAL_MINUTES: int = 60

    model_config = {
        "env_file": (str(_BACKEND_ENV_FILE), str(_ROOT_ENV_FILE)),
        "extra": "ignore",
    }

    @property
    def settlement_sports(self) -> list[str]:
        return [s.strip() for s in self.SETTLEMENT_SPORTS.split(",") if s.strip()]


settings = Settings()
