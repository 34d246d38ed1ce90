"""
backend/app/services/outcome_evaluator.py

Purpose:
    Pure settlement rules: (bet, scored odds row) -> Outcome.

    totals     over wins above the line, under below it, equal is a push (void)
    spread     home wins if home + line > away, away wins if away - line > home,
               exact cover is a push (void); line is quoted home-side
    moneyline  higher score wins, a tie is void

    Anything the rules cannot decide (unknown bet type or side, missing
    scores or line) is pending. evaluate() never raises.

Dependencies:
    - app.models.bet
"""

from __future__ import annotations

from typing import Any

from app.models.bet import BetStatus, Outcome
from app.models.odds import MarketFamily
from app.services.odds_normalizer import classify_market
from app.utils.odds_utils import to_float

_BET_TYPE_ALIASES = {
    "total": MarketFamily.total,
    "totals": MarketFamily.total,
    "over_under": MarketFamily.total,
    "over/under": MarketFamily.total,
    "ou": MarketFamily.total,
    "spread": MarketFamily.spread,
    "point_spread": MarketFamily.spread,
    "sp": MarketFamily.spread,
    "moneyline": MarketFamily.moneyline,
    "money_line": MarketFamily.moneyline,
    "ml": MarketFamily.moneyline,
    "ml3way": MarketFamily.moneyline,
}


def bet_family(bet: dict[str, Any], row: dict[str, Any]) -> MarketFamily:
    raw = str(bet.get("bet_type") or "").strip().lower()
    if raw:
        return _BET_TYPE_ALIASES.get(raw, MarketFamily.unclassified)
    return classify_market(row.get("bettypeid"), row.get("marketname"))


def parse_scores(row: dict[str, Any]) -> tuple[float | None, float | None, float | None]:
    """(home, away, total) from a row's score string or its numeric fields."""
    home = away = total = None
    score = row.get("score")
    if score is not None:
        text = str(score).strip()
        if "," in text:
            left, _, right = text.partition(",")
            home, away = to_float(left), to_float(right)
        else:
            total = to_float(text)
    if home is None or away is None:
        home = to_float(row.get("home_score"))
        away = to_float(row.get("away_score"))
    if total is None and home is not None and away is not None:
        total = home + away
    return home, away, total


def _compare(value: float, line: float, reason: str) -> Outcome:
    if value > line:
        return Outcome(status=BetStatus.won, reason=reason)
    if value < line:
        return Outcome(status=BetStatus.lost, reason=reason)
    return Outcome(status=BetStatus.void, reason=f"push: {reason}")


def _pending(reason: str) -> Outcome:
    return Outcome(status=BetStatus.pending, reason=reason)


def evaluate(bet: dict[str, Any], row: dict[str, Any]) -> Outcome:
    family = bet_family(bet, row)
    side = str(bet.get("side") or "").strip().lower()
    line = to_float(bet.get("line_value"))
    if line is None:
        line = to_float(row.get("line"))
    home, away, total = parse_scores(row)

    if family == MarketFamily.total:
        if total is None:
            return _pending("no final score")
        if line is None:
            return _pending("no total line")
        if side == "over":
            return _compare(total, line, f"total {total:g} vs {line:g}")
        if side == "under":
            return _compare(line, total, f"total {total:g} vs {line:g}")
        return _pending(f"unknown total side {side!r}")

    if family == MarketFamily.spread:
        if home is None or away is None:
            return _pending("no final score")
        if line is None:
            return _pending("no spread line")
        if side == "home":
            return _compare(home + line, away, f"home {home:g}{line:+g} vs {away:g}")
        if side == "away":
            return _compare(away - line, home, f"away {away:g}{-line:+g} vs {home:g}")
        return _pending(f"unknown spread side {side!r}")

    if family == MarketFamily.moneyline:
        if home is None or away is None:
            return _pending("no final score")
        if side == "home":
            return _compare(home, away, f"home {home:g} vs {away:g}")
        if side == "away":
            return _compare(away, home, f"away {away:g} vs {home:g}")
        return _pending(f"unknown moneyline side {side!r}")

    return _pending("unsupported bet type")
