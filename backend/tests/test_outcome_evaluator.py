"""
backend/tests/test_outcome_evaluator.py

Purpose:
    Settlement rules for totals, spreads and moneylines, score parsing and
    the conservative pending fallbacks.
"""

from __future__ import annotations

import sys

import pytest

sys.path.insert(0, "backend")

from app.models.bet import BetStatus
from app.services.outcome_evaluator import evaluate, parse_scores


def _row(score, line=None, **extra):
    return {"score": score, "line": line, **extra}


@pytest.mark.parametrize(
    ("side", "line", "expected"),
    [
        ("over", 205.5, BetStatus.won),
        ("over", 215.5, BetStatus.lost),
        ("under", 215.5, BetStatus.won),
        ("under", 205.5, BetStatus.lost),
        ("over", 210, BetStatus.void),
        ("under", 210, BetStatus.void),
    ],
)
def test_totals(side, line, expected):
    bet = {"bet_type": "total", "side": side, "line_value": line}
    assert evaluate(bet, _row("210")).status == expected


def test_totals_accept_paired_score_representation():
    bet = {"bet_type": "total", "side": "over", "line_value": 205.5}
    assert evaluate(bet, _row("110,100")).status == BetStatus.won


def test_spread_home_win_scenario():
    bet = {"bet_type": "spread", "side": "home", "line_value": -6.5}
    assert evaluate(bet, _row("110,100")).status == BetStatus.won


def test_spread_away_and_exact_cover():
    away = {"bet_type": "spread", "side": "away", "line_value": -6.5}
    assert evaluate(away, _row("110,100")).status == BetStatus.lost
    assert evaluate({**away, "line_value": -12.5}, _row("110,100")).status == BetStatus.won

    push = {"bet_type": "spread", "side": "home", "line_value": -10}
    outcome = evaluate(push, _row("110,100"))
    assert outcome.status == BetStatus.void
    assert outcome.reason.startswith("push")


def test_moneyline_loss_scenario_and_tie():
    bet = {"bet_type": "moneyline", "side": "away"}
    assert evaluate(bet, _row("98,95")).status == BetStatus.lost
    assert evaluate({**bet, "side": "home"}, _row("98,95")).status == BetStatus.won
    assert evaluate(bet, _row("3,3")).status == BetStatus.void


def test_bet_line_overrides_row_line():
    bet = {"bet_type": "total", "side": "over", "line_value": 200.5}
    assert evaluate(bet, _row("210", line="215.5")).status == BetStatus.won
    assert evaluate({**bet, "line_value": None}, _row("210", line="215.5")).status == BetStatus.lost


def test_bet_type_falls_back_to_row_classification():
    bet = {"side": "home", "line_value": -1.5}
    row = _row("3,1", bettypeid="sp", marketname="Run Line")
    outcome = evaluate(bet, row)
    assert outcome.status == BetStatus.won
    assert outcome.reason == "total 27 vs 25.5"


@pytest.mark.parametrize(
    ("bet", "row"),
    [
        ({"bet_type": "total", "side": "home", "line_value": 200}, _row("210")),
        ({"bet_type": "spread", "side": "over", "line_value": 1.5}, _row("1,0")),
        ({"bet_type": "moneyline", "side": "draw"}, _row("1,1")),
        ({"bet_type": "player_prop", "side": "over", "line_value": 20.5}, _row("31")),
        ({"bet_type": "spread", "side": "home", "line_value": -3}, _row("210")),
        ({"bet_type": "total", "side": "over"}, _row("210")),
        ({"bet_type": "moneyline", "side": "home"}, _row(None)),
    ],
)
def test_undecidable_inputs_stay_pending(bet, row):
    assert evaluate(bet, row).status == BetStatus.pending


def test_evaluate_is_deterministic():
    bet = {"bet_type": "spread", "side": "home", "line_value": -6.5}
    row = _row("110,100")
    assert evaluate(bet, row) == evaluate(bet, row)


def test_parse_scores_falls_back_to_numeric_fields():
    assert parse_scores({"score": None, "home_score": 3, "away_score": 2}) == (3.0, 2.0, 5.0)
    assert parse_scores({"score": "7"}) == (None, None, 7.0)
    assert parse_scores({"score": "a,b", "home_score": 1, "away_score": 0}) == (1.0, 0.0, 1.0)


def test_plain_score_string_wins_over_numeric_pair_for_total():
    row = {"score": "27", "home_score": 110, "away_score": 100}
    assert parse_scores(row) == (110.0, 100.0, 27.0)

    bet = {"bet_type": "total", "side": "over", "line_value": 25.5}
    outcome = evaluate(bet, row)
    assert outcome.status == BetStatus.won
    assert outcome.reason == "total 27 vs 25.5"
    assert evaluate({**bet, "line_value": 30.5}, row).status == BetStatus.lost


def test_numeric_pair_fills_total_when_score_string_is_unusable():
    assert parse_scores({"score": "n/a", "home_score": 3, "away_score": 4}) == (3.0, 4.0, 7.0)
    assert parse_scores({"home_score": 3, "away_score": 4}) == (3.0, 4.0, 7.0)
