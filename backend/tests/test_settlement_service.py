"""
backend/tests/test_settlement_service.py

Purpose:
    Match -> evaluate -> apply for single bets and parlays against the
    in-memory store, plus per-bet failure isolation.
"""

from __future__ import annotations

import sys

import pytest

sys.path.insert(0, "backend")

from app.services.settlement_service import SettlementService

SPREAD_ID = "points-home-game-sp-home"
ML_ID = "points-away-game-ml-away"


async def _seed(fake_db, *, second_score=None):
    await fake_db.odds.insert_one({
        "eventid": "E1", "oddid": SPREAD_ID, "line": "-6.5",
        "marketname": "Point Spread", "bettypeid": "sp", "score": "110,100",
    })
    await fake_db.odds.insert_one({
        "eventid": "E2", "oddid": ML_ID, "line": None,
        "marketname": "Moneyline", "bettypeid": "ml", "score": second_score,
    })


async def _bet(fake_db, bet_id, **fields):
    doc = {"_id": bet_id, "status": "pending", "stake": 100, **fields}
    await fake_db.bets.insert_one(doc)
    return await fake_db.bets.find_one({"_id": bet_id})


def _stored(fake_db, bet_id):
    return next(d for d in fake_db.bets.docs if d["_id"] == bet_id)


@pytest.mark.asyncio
async def test_single_bet_is_settled_once(fake_db):
    await _seed(fake_db)
    bet = await _bet(
        fake_db, "B1", game_id="E1", oddid=SPREAD_ID, bet_type="spread",
        side="home", line_value=-6.5, odds=-110, stake=110,
    )
    service = SettlementService()

    updated = await service.settle_bet(bet)
    assert updated["status"] == "won"
    assert _stored(fake_db, "B1")["profit"] == 100.0

    assert await service.settle_bet(bet) is None
    assert await service.settle_game("E1") == 0
    assert _stored(fake_db, "B1")["profit"] == 100.0


@pytest.mark.asyncio
async def test_unmatched_bet_stays_pending(fake_db):
    await _seed(fake_db)
    bet = await _bet(fake_db, "B2", game_id="E404", oddid="nothing", bet_type="player_prop", odds=120)

    assert await SettlementService().settle_bet(bet) is None
    stored = _stored(fake_db, "B2")
    assert stored["status"] == "pending"
    assert "profit" not in stored


@pytest.mark.asyncio
async def test_parlay_persists_leg_progress_then_settles(fake_db):
    await _seed(fake_db)
    legs = [
        {"game_id": "E1", "oddid": SPREAD_ID, "bet_type": "spread", "side": "home", "line_value": -6.5, "odds": -110},
        {"game_id": "E2", "oddid": ML_ID, "bet_type": "moneyline", "side": "away", "odds": 150},
    ]
    await _bet(fake_db, "P1", legs=legs, odds=264, stake=10)
    service = SettlementService()

    assert await service.settle_game("E1") == 0
    stored = _stored(fake_db, "P1")
    assert stored["status"] == "pending"
    assert [leg.get("status") for leg in stored["legs"]] == ["won", None]

    fake_db.odds.docs[1]["score"] = "99,104"
    assert await service.settle_game("E2") == 1

    stored = _stored(fake_db, "P1")
    assert stored["status"] == "won"
    assert stored["profit"] == 26.4
    assert stored["actual_payout"] == 36.4
    assert [leg["status"] for leg in stored["legs"]] == ["won", "won"]


@pytest.mark.asyncio
async def test_parlay_with_lost_leg_loses_stake(fake_db):
    await _seed(fake_db, second_score="110,90")
    legs = [
        {"game_id": "E1", "oddid": SPREAD_ID, "bet_type": "spread", "side": "home", "line_value": -6.5, "odds": -110},
        {"game_id": "E2", "oddid": ML_ID, "bet_type": "moneyline", "side": "away", "odds": 150},
    ]
    bet = await _bet(fake_db, "P2", legs=legs, odds=264, stake=25)

    updated = await SettlementService().settle_bet(bet)

    assert updated["status"] == "lost"
    assert _stored(fake_db, "P2")["profit"] == -25.0


class _ExplodingMatcher:
    async def match(self, bet, event_id):
        if bet["_id"] == "BAD":
            raise RuntimeError("boom")
        return None


@pytest.mark.asyncio
async def test_failure_on_one_bet_does_not_abort_the_game(fake_db, caplog):
    await _seed(fake_db)
    await _bet(fake_db, "BAD", game_id="E1", oddid=SPREAD_ID)
    await _bet(fake_db, "OK", game_id="E1", oddid=SPREAD_ID)

    settled = await SettlementService(matcher=_ExplodingMatcher()).settle_game("E1")

    assert settled == 0
    assert "Settlement failed for bet BAD" in caplog.text
    assert all(d["status"] == "pending" for d in fake_db.bets.docs)


@pytest.mark.asyncio
async def test_pending_sweep_settles_bets_from_older_days(fake_db):
    await _seed(fake_db, second_score="98,101")
    await _bet(fake_db, "OLD", game_id="E2", oddid=ML_ID, bet_type="moneyline", side="away", odds=150, stake=20)

    assert await SettlementService().settle_pending() == 1
    assert _stored(fake_db, "OLD")["actual_payout"] == 50.0


@pytest.mark.asyncio
async def test_parlay_blocked_on_missing_leg_odds_is_flagged_once(fake_db):
    await _seed(fake_db, second_score="100,100")
    legs = [
        {"game_id": "E1", "oddid": SPREAD_ID, "bet_type": "spread", "side": "home", "line_value": -6.5},
        {"game_id": "E2", "oddid": ML_ID, "bet_type": "moneyline", "side": "away", "odds": 150},
    ]
    bet = await _bet(fake_db, "P3", legs=legs, odds=264, stake=10)
    service = SettlementService()

    assert await service.settle_bet(bet) is None
    stored = _stored(fake_db, "P3")
    assert stored["status"] == "pending"
    assert [leg["status"] for leg in stored["legs"]] == ["won", "void"]
    assert stored["settlement_blocked"] == "won leg without odds, cannot reprice"

    writes = len(fake_db.bets.update_calls)
    assert await service.settle_bet(await fake_db.bets.find_one({"_id": "P3"})) is None
    assert len(fake_db.bets.update_calls) == writes
