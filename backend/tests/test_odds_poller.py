"""
backend/tests/test_odds_poller.py

Purpose:
    Pre-game odds poll: started games are skipped, upcoming games get
    current and opening rows, one failing league does not stop the rest,
    and the smart-sleep window short-circuits repeat polls.
"""

from __future__ import annotations

import sys
from datetime import timedelta

import pytest

sys.path.insert(0, "backend")

from app.config import settings
from app.providers.base import BaseProvider
from app.providers.sportsgameodds import sportsgameodds_provider
from app.utils import utcnow
from app.workers.odds_poller import poll_odds


def _event(event_id: str, starts_in: timedelta, **status):
    starts_at = (utcnow() + starts_in).strftime("%Y-%m-%dT%H:%M:%SZ")
    return {
        "eventID": event_id,
        "status": {"startsAt": starts_at, **status},
        "teams": {
            "home": {"names": {"long": "New York Jets", "medium": "Jets"}},
            "away": {"names": {"long": "Buffalo Bills", "medium": "Bills"}},
        },
        "odds": {
            "points-all-game-ou-over": {
                "oddID": "points-all-game-ou-over",
                "marketName": "Over/Under",
                "betTypeID": "ou",
                "sideID": "over",
                "bookOverUnder": "44.5",
                "byBookmaker": {
                    "draftkings": {"odds": "-105", "overUnder": "44.5", "available": True},
                    "fanduel": {"odds": "-110", "overUnder": "44.5", "available": True},
                },
            },
        },
    }


class ScriptedProvider(BaseProvider):
    def __init__(self, events, failing=()):
        self.events = events
        self.failing = failing

    async def get_events(self, league, starts_after, starts_before):
        if league in self.failing:
            raise RuntimeError(f"{league} feed down")
        return self.events.get(league, [])

    def parse_event(self, raw, league):
        return sportsgameodds_provider.parse_event(raw, league)


@pytest.fixture
def two_leagues(monkeypatch):
    monkeypatch.setattr(settings, "SETTLEMENT_SPORTS", "NFL,NBA")


@pytest.mark.asyncio
async def test_poll_writes_upcoming_and_skips_started(fake_db, two_leagues):
    provider = ScriptedProvider(
        {"NFL": [
            _event("UP1", timedelta(hours=5)),
            _event("LIVE", timedelta(minutes=-30), live=True),
            _event("LATE", timedelta(minutes=-15)),
        ]},
        failing=("NBA",),
    )

    summary = await poll_odds(provider=provider, force=True)

    assert summary.success is True
    assert summary.total_leagues == 2
    assert summary.successful_leagues == 1
    assert summary.total_games == 1
    assert summary.total_skipped == 2

    assert [d["eventid"] for d in fake_db.odds.docs] == ["UP1"]
    row = fake_db.odds.docs[0]
    assert row["draftkingsodds"] == -105
    assert row["fanduelodds"] == -110
    assert len(fake_db.open_odds.docs) == 1
    assert {g["_id"] for g in fake_db.games.docs} == {"UP1"}


@pytest.mark.asyncio
async def test_smart_sleep_skips_recent_poll(fake_db, two_leagues):
    provider = ScriptedProvider({"NFL": [_event("UP1", timedelta(hours=5))]})

    await poll_odds(provider=provider, force=True)
    again = await poll_odds(provider=provider)

    assert again.total_leagues == 0
    assert len(fake_db.odds.docs) == 1
