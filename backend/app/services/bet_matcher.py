"""
backend/app/services/bet_matcher.py

Purpose:
    Locate the canonical odds row that prices a pending bet. Matching is an
    ordered list of pure strategies over a preloaded MatchContext; the first
    strategy returning a row wins.

        1. exact      (event, bet.oddid), same line preferred, then scored rows
        2. bet_type   same-event row whose market name contains the bet type
        3. team_name  bets without a market reference only: same-sport games
                      whose team/display names contain the bet's team terms;
                      the discovered game id is backfilled onto the bet

Notes:
    - No match is not an error: the bet simply stays pending.
    - bet_type and team_name take the first hit without further tie-break.

Dependencies:
    - app.services.odds_repository
    - app.utils.team_matching
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from app.config import settings
from app.monitoring.settlement_metrics import METRIC_MATCH_STRATEGY
from app.services.odds_repository import OddsRepository
from app.utils.odds_utils import normalize_line
from app.utils.team_matching import game_matches_terms, name_contains

logger = logging.getLogger("sharpledger.bet_matcher")

# Market-name spellings per bet type, tried after the bet type itself.
BET_TYPE_MARKET_TERMS: dict[str, tuple[str, ...]] = {
    "total": ("over/under", "total"),
    "spread": ("spread", "handicap"),
    "moneyline": ("moneyline", "money line"),
}

_DESCRIPTION_SPLIT = re.compile(r"\s+(?:vs\.?|@|at|v)\s+", re.IGNORECASE)


@dataclass
class MatchContext:
    event_id: Optional[str]
    rows: list[dict[str, Any]] = field(default_factory=list)
    candidate_games: list[dict[str, Any]] = field(default_factory=list)
    rows_by_event: dict[str, list[dict[str, Any]]] = field(default_factory=dict)


@dataclass(frozen=True)
class MatchResult:
    row: dict[str, Any]
    strategy: str
    event_id: str


Strategy = Callable[[dict[str, Any], MatchContext], Optional[dict[str, Any]]]


def team_terms(bet: dict[str, Any]) -> list[str]:
    """Team-name search terms recorded on a bet, most specific first."""
    terms: list[str] = []
    for key in ("home_team", "away_team", "team"):
        value = bet.get(key)
        if isinstance(value, str) and value.strip():
            terms.append(value.strip())
    description = bet.get("bet_description")
    if not terms and isinstance(description, str) and description.strip():
        terms.extend(p.strip() for p in _DESCRIPTION_SPLIT.split(description) if p.strip())
    return terms


def _bet_type_terms(bet: dict[str, Any]) -> list[str]:
    bet_type = str(bet.get("bet_type") or "").strip().lower()
    if not bet_type:
        return []
    return [bet_type, *BET_TYPE_MARKET_TERMS.get(bet_type, ())]


def _first_by_bet_type(bet: dict[str, Any], rows: list[dict[str, Any]]) -> dict[str, Any] | None:
    for term in _bet_type_terms(bet):
        for row in rows:
            if name_contains(row.get("marketname"), term):
                return row
    return None


def match_exact(bet: dict[str, Any], ctx: MatchContext) -> dict[str, Any] | None:
    odd_id = bet.get("oddid")
    if not odd_id:
        return None
    candidates = [r for r in ctx.rows if r.get("oddid") == odd_id]
    if not candidates:
        return None
    bet_line = normalize_line(bet.get("line_value"))
    if bet_line is not None:
        same_line = [r for r in candidates if r.get("line") == bet_line]
        if same_line:
            candidates = same_line
    scored = [r for r in candidates if r.get("score") is not None]
    return (scored or candidates)[0]


def match_bet_type(bet: dict[str, Any], ctx: MatchContext) -> dict[str, Any] | None:
    return _first_by_bet_type(bet, ctx.rows)


def match_team_name(bet: dict[str, Any], ctx: MatchContext) -> dict[str, Any] | None:
    if bet.get("oddid"):
        return None
    terms = team_terms(bet)
    if not terms:
        return None
    for game in ctx.candidate_games:
        if not game_matches_terms(game, terms):
            continue
        rows = ctx.rows_by_event.get(game["_id"], [])
        row = _first_by_bet_type(bet, rows)
        if row is not None:
            return row
    return None


STRATEGIES: list[tuple[str, Strategy]] = [
    ("exact", match_exact),
    ("bet_type", match_bet_type),
    ("team_name", match_team_name),
]


def run_strategies(
    bet: dict[str, Any],
    ctx: MatchContext,
    strategies: list[tuple[str, Strategy]] | None = None,
) -> tuple[str, dict[str, Any]] | None:
    for name, strategy in strategies or STRATEGIES:
        row = strategy(bet, ctx)
        if row is not None:
            return name, row
    return None


class BetMatcher:
    def __init__(self, repository: OddsRepository | None = None):
        self.repository = repository or OddsRepository()

    async def load_context(self, bet: dict[str, Any], event_id: str | None) -> MatchContext:
        ctx = MatchContext(event_id=event_id)
        if event_id:
            ctx.rows = await self.repository.find_event_rows(event_id)
        if not bet.get("oddid"):
            terms = team_terms(bet)
            if terms:
                ctx.candidate_games = await self.repository.find_games_by_terms(
                    bet.get("sport"), terms, settings.TEAM_SEARCH_LIMIT,
                )
                ctx.rows_by_event = await self.repository.find_rows_for_events(
                    [g["_id"] for g in ctx.candidate_games]
                )
        return ctx

    async def match(self, bet: dict[str, Any], event_id: str | None) -> MatchResult | None:
        ctx = await self.load_context(bet, event_id)
        hit = run_strategies(bet, ctx)
        if hit is None:
            METRIC_MATCH_STRATEGY.labels(strategy="none").inc()
            logger.debug(
                "No odds row for bet %s (event=%s, oddid=%s)",
                bet.get("_id"), event_id, bet.get("oddid"),
            )
            return None

        strategy, row = hit
        METRIC_MATCH_STRATEGY.labels(strategy=strategy).inc()
        matched_event = row.get("eventid") or event_id
        # Parlay legs have no _id of their own.
        if (
            strategy == "team_name"
            and matched_event
            and not bet.get("game_id")
            and bet.get("_id") is not None
        ):
            if await self.repository.backfill_bet_game_id(bet.get("_id"), matched_event):
                logger.info("Backfilled game_id=%s on bet %s", matched_event, bet.get("_id"))
        if strategy != "exact":
            logger.info(
                "Bet %s matched by %s fallback to %s/%s",
                bet.get("_id"), strategy, matched_event, row.get("oddid"),
            )
        return MatchResult(row=row, strategy=strategy, event_id=matched_event)
