import logging
from datetime import datetime
from typing import Any, Optional

import httpx

from app.config import settings
from app.models.game import Game, GameStatus, normalize_status
from app.providers.base import BaseProvider
from app.providers.http_client import ResilientClient
from app.services.errors import ProviderError
from app.utils import iso_date, parse_utc, utcnow
from app.utils.odds_utils import to_float

logger = logging.getLogger("sharpledger.sportsgameodds")

# League key -> provider sport/league ids and the internal sport key
SPORT_MAPPINGS: dict[str, dict[str, str]] = {
    "NFL": {"sportID": "FOOTBALL", "leagueID": "NFL", "sport_key": "americanfootball_nfl"},
    "NBA": {"sportID": "BASKETBALL", "leagueID": "NBA", "sport_key": "basketball_nba"},
    "WNBA": {"sportID": "BASKETBALL", "leagueID": "WNBA", "sport_key": "basketball_wnba"},
    "MLB": {"sportID": "BASEBALL", "leagueID": "MLB", "sport_key": "baseball_mlb"},
    "NHL": {"sportID": "HOCKEY", "leagueID": "NHL", "sport_key": "icehockey_nhl"},
    "NCAAF": {"sportID": "FOOTBALL", "leagueID": "NCAAF", "sport_key": "americanfootball_ncaaf"},
    "NCAAB": {"sportID": "BASKETBALL", "leagueID": "NCAAB", "sport_key": "basketball_ncaab"},
    "MLS": {"sportID": "SOCCER", "leagueID": "MLS", "sport_key": "soccer_mls"},
    "UEFA_CHAMPIONS_LEAGUE": {
        "sportID": "SOCCER",
        "leagueID": "UEFA_CHAMPIONS_LEAGUE",
        "sport_key": "soccer_uefa_champs_league",
    },
}


def _team_display_name(team: dict[str, Any], fallback: str) -> str:
    names = team.get("names") or {}
    for candidate in (names.get("long"), names.get("medium"), names.get("short"), team.get("name")):
        if isinstance(candidate, str) and candidate.strip():
            return candidate.strip()
    return fallback


def _team_short_name(team: dict[str, Any], display: str) -> str:
    names = team.get("names") or {}
    for candidate in (names.get("medium"), names.get("short")):
        if isinstance(candidate, str) and candidate.strip():
            return candidate.strip()
    return display


def _score(team: dict[str, Any]) -> Optional[int]:
    value = to_float(team.get("score"))
    return int(value) if value is not None else None


def _event_status(status: dict[str, Any]) -> GameStatus:
    if status.get("cancelled"):
        return GameStatus.cancelled
    if status.get("completed") or status.get("finalized") or status.get("ended"):
        return GameStatus.final
    if status.get("live"):
        return GameStatus.live
    parsed = normalize_status(status.get("displayShort") or status.get("displayLong"))
    if parsed == GameStatus.scheduled and status.get("started"):
        return GameStatus.started
    return parsed


def odds_report_started(odds: Any) -> bool:
    """True when any market of the event is flagged started or ended by the feed."""
    if not isinstance(odds, dict):
        return False
    return any(
        isinstance(o, dict) and (o.get("ended") is True or o.get("started") is True)
        for o in odds.values()
    )


class SportsGameOddsProvider(BaseProvider):
    """SportsGameOdds v2 events client with cursor pagination."""

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._client = ResilientClient(
            "sportsgameodds",
            timeout=settings.ODDS_API_TIMEOUT_SECONDS,
            headers={"X-API-Key": settings.ODDS_API_KEY, "Content-Type": "application/json"},
            transport=transport,
        )
        self._base_url = settings.ODDS_API_BASE_URL.rstrip("/")

    async def get_events(
        self, league: str, starts_after: datetime, starts_before: datetime,
    ) -> list[dict[str, Any]]:
        mapping = SPORT_MAPPINGS.get(league)
        if mapping is None:
            raise ProviderError(f"Unsupported league: {league}", league=league)
        if not settings.ODDS_API_KEY:
            raise ProviderError("ODDS_API_KEY not configured", league=league)
        if not self._client.circuit.can_attempt():
            raise ProviderError("circuit open", league=league)

        events: list[dict[str, Any]] = []
        cursor: Optional[str] = None
        for page in range(1, settings.ODDS_API_MAX_PAGES + 1):
            params: dict[str, Any] = {
                "leagueID": mapping["leagueID"],
                "type": "match",
                "startsAfter": iso_date(starts_after),
                "startsBefore": iso_date(starts_before),
                "limit": settings.ODDS_API_PAGE_LIMIT,
                "includeAltLines": "true",
            }
            if cursor:
                params["cursor"] = cursor

            try:
                resp = await self._client.get(f"{self._base_url}/events", params=params)
            except httpx.HTTPError as exc:
                self._client.circuit.record_failure()
                raise ProviderError(f"{league}: {exc}", league=league) from exc

            if resp.status_code == 429:
                logger.warning("Rate limited for %s on page %d, keeping %d events", league, page, len(events))
                break
            if resp.status_code != 200:
                self._client.circuit.record_failure()
                raise ProviderError(
                    f"SportsGameOdds API error for {league}: {resp.status_code}",
                    league=league,
                    status_code=resp.status_code,
                )
            self._client.circuit.record_success()

            body = resp.json()
            data = body.get("data") if isinstance(body, dict) and body.get("success") else None
            if not data:
                break
            events.extend(e for e in data if isinstance(e, dict))
            cursor = body.get("nextCursor")
            if not cursor or len(events) >= settings.ODDS_API_MAX_EVENTS:
                break
        else:
            logger.warning("Hit page limit (%d) for %s", settings.ODDS_API_MAX_PAGES, league)

        logger.info("Fetched %d %s events (%s..%s)", len(events), league,
                    iso_date(starts_after), iso_date(starts_before))
        return events[:settings.ODDS_API_MAX_EVENTS]

    def parse_event(self, raw: dict[str, Any], league: str) -> Game:
        status = raw.get("status") or {}
        teams = raw.get("teams") or {}
        home = teams.get("home") or {}
        away = teams.get("away") or {}
        home_name = _team_display_name(home, "Unknown Home Team")
        away_name = _team_display_name(away, "Unknown Away Team")
        starts_at = status.get("startsAt")
        mapping = SPORT_MAPPINGS.get(league, {})

        return Game(
            id=str(raw["eventID"]),
            sport=league,
            league=mapping.get("leagueID", league),
            home_team=_team_short_name(home, home_name),
            away_team=_team_short_name(away, away_name),
            home_team_name=home_name,
            away_team_name=away_name,
            game_time=parse_utc(starts_at) if starts_at else utcnow(),
            status=_event_status(status),
            home_score=_score(home),
            away_score=_score(away),
            odds=raw.get("odds") or {},
        )

    @property
    def circuit_open(self) -> bool:
        return self._client.circuit.is_open

    async def aclose(self) -> None:
        await self._client.aclose()


sportsgameodds_provider = SportsGameOddsProvider()
