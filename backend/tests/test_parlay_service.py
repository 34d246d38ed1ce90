"""
backend/tests/test_parlay_service.py

Purpose:
    Parlay aggregation over individually settled legs.
"""

from __future__ import annotations

import sys

import pytest

sys.path.insert(0, "backend")

from app.models.bet import BetStatus
from app.services.parlay_service import aggregate_legs, combined_american_odds


def _legs(*statuses, odds=-110):
    return [{"status": s, "odds": odds} for s in statuses]


@pytest.mark.parametrize(
    ("statuses", "expected"),
    [
        (("won", "lost", "pending"), BetStatus.lost),
        (("won", "pending"), BetStatus.pending),
        (("won", "won", "won"), BetStatus.won),
        (("void", "void"), BetStatus.void),
        ((), BetStatus.pending),
    ],
)
def test_aggregate_status(statuses, expected):
    assert aggregate_legs(_legs(*statuses)).status == expected


def test_all_won_keeps_parlay_price():
    assert aggregate_legs(_legs("won", "won")).odds is None


def test_won_and_void_mix_reprices_over_won_legs():
    legs = [
        {"status": "won", "odds": -110},
        {"status": "void", "odds": 200},
        {"status": "won", "odds": 150},
    ]
    resolution = aggregate_legs(legs)
    assert resolution.status == BetStatus.won
    assert resolution.odds == combined_american_odds([-110, 150])
    assert "repriced" in resolution.reason


def test_won_leg_without_odds_cannot_be_repriced():
    legs = [{"status": "won"}, {"status": "void", "odds": 120}]
    resolution = aggregate_legs(legs)
    assert resolution.status == BetStatus.pending
    assert resolution.blocked is True
    assert aggregate_legs([{"status": "won", "odds": 100}, {"odds": 100}]).blocked is False


def test_missing_leg_status_counts_as_pending():
    assert aggregate_legs([{"odds": 100}, {"status": "won", "odds": 100}]).status == BetStatus.pending


@pytest.mark.parametrize(
    ("leg_odds", "expected"),
    [
        ([100, 100], 300.0),
        ([-200], -200.0),
        ([-110, -110], 264.46),
    ],
)
def test_combined_american_odds(leg_odds, expected):
    assert combined_american_odds(leg_odds) == pytest.approx(expected, abs=0.01)
