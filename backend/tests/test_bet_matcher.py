"""
backend/tests/test_bet_matcher.py

Purpose:
    Matcher strategies as pure functions over a MatchContext, plus the
    BetMatcher context loading and game_id backfill.
"""

from __future__ import annotations

import sys
from datetime import datetime, timezone

import pytest

sys.path.insert(0, "backend")

from app.services.bet_matcher import (
    BetMatcher,
    MatchContext,
    match_bet_type,
    match_exact,
    match_team_name,
    run_strategies,
    team_terms,
)

ROWS = [
    {"eventid": "E1", "oddid": "points-home-game-sp-home", "line": "-6.5", "marketname": "Point Spread", "score": None},
    {"eventid": "E1", "oddid": "points-home-game-sp-home", "line": "-3.5", "marketname": "Point Spread", "score": "110,100"},
    {"eventid": "E1", "oddid": "points-all-game-ou-over", "line": "210.5", "marketname": "Over/Under", "score": "210"},
]


def test_exact_prefers_same_line_then_scored_row():
    ctx = MatchContext(event_id="E1", rows=ROWS)

    same_line = match_exact({"oddid": "points-home-game-sp-home", "line_value": -6.5}, ctx)
    assert same_line["line"] == "-6.5"

    no_line = match_exact({"oddid": "points-home-game-sp-home"}, ctx)
    assert no_line["line"] == "-3.5"

    assert match_exact({"oddid": "unknown"}, ctx) is None
    assert match_exact({}, ctx) is None


def test_bet_type_matches_market_name_and_aliases():
    ctx = MatchContext(event_id="E1", rows=ROWS)
    assert match_bet_type({"bet_type": "spread"}, ctx)["oddid"] == "points-home-game-sp-home"
    assert match_bet_type({"bet_type": "total"}, ctx)["oddid"] == "points-all-game-ou-over"
    assert match_bet_type({"bet_type": "player_prop"}, ctx) is None
    assert match_bet_type({}, ctx) is None


def test_team_name_only_applies_to_bets_without_market_reference():
    game = {"_id": "E1", "home_team": "Lakers", "away_team": "Celtics",
            "home_team_name": "Los Angeles Lakers", "away_team_name": "Boston Celtics"}
    ctx = MatchContext(event_id=None, candidate_games=[game], rows_by_event={"E1": ROWS})

    bet = {"bet_type": "total", "bet_description": "Boston Celtics @ Los Angeles Lakers"}
    assert match_team_name(bet, ctx)["oddid"] == "points-all-game-ou-over"
    assert match_team_name({**bet, "oddid": "stale"}, ctx) is None
    assert match_team_name({"bet_type": "total", "home_team": "Knicks"}, ctx) is None


def test_team_terms_prefer_structured_fields():
    assert team_terms({"home_team": "Lakers", "bet_description": "x vs y"}) == ["Lakers"]
    assert team_terms({"bet_description": "Jets vs. Bills"}) == ["Jets", "Bills"]
    assert team_terms({}) == []


def test_strategies_short_circuit_in_order():
    calls = []

    def first(bet, ctx):
        calls.append("first")
        return None

    def second(bet, ctx):
        calls.append("second")
        return {"oddid": "hit"}

    def third(bet, ctx):
        calls.append("third")
        return {"oddid": "never"}

    hit = run_strategies({}, MatchContext(event_id=None), [("a", first), ("b", second), ("c", third)])
    assert hit == ("b", {"oddid": "hit"})
    assert calls == ["first", "second"]


@pytest.mark.asyncio
async def test_matcher_backfills_game_id_on_team_name_hit(fake_db):
    await fake_db.games.insert_one({
        "_id": "E1", "sport": "NBA", "home_team": "Lakers", "away_team": "Celtics",
        "home_team_name": "Los Angeles Lakers", "away_team_name": "Boston Celtics",
        "game_time": datetime(2025, 10, 11, 23, 0, tzinfo=timezone.utc),
    })
    for row in ROWS:
        await fake_db.odds.insert_one(dict(row))
    await fake_db.bets.insert_one({
        "_id": "B1", "status": "pending", "sport": "NBA", "bet_type": "moneyline",
        "side": "home", "home_team": "lakers", "stake": 10, "odds": -150,
    })
    bet = await fake_db.bets.find_one({"_id": "B1"})

    # no moneyline row on the event: team match alone is not enough
    assert await BetMatcher().match(bet, None) is None
    assert "game_id" not in fake_db.bets.docs[0]

    bet["bet_type"] = "spread"
    result = await BetMatcher().match(bet, None)

    assert result.strategy == "team_name"
    assert result.event_id == "E1"
    assert fake_db.bets.docs[0]["game_id"] == "E1"


@pytest.mark.asyncio
async def test_unmatched_bet_returns_none(fake_db):
    bet = {"_id": "B2", "status": "pending", "oddid": "nothing", "game_id": "E404", "sport": "NFL"}
    assert await BetMatcher().match(bet, "E404") is None
