"""American odds parsing, clamping and conversion helpers."""

from __future__ import annotations

from typing import Any

from app.config import settings


def to_float(value: Any) -> float | None:
    """Safe float conversion; None for empty or non-numeric input."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return None
    if parsed != parsed:  # NaN
        return None
    return parsed


def clamp_american_odds(value: Any) -> int | None:
    """Parse a price into a bounded integer for storage.

    Values beyond ODDS_PRICE_REJECT_ABOVE are treated as junk and
    stored as null, everything else is clamped to +/-ODDS_PRICE_CLAMP.
    """
    parsed = to_float(value)
    if parsed is None:
        return None
    if abs(parsed) > settings.ODDS_PRICE_REJECT_ABOVE:
        return None
    limit = settings.ODDS_PRICE_CLAMP
    return int(round(min(max(parsed, -limit), limit)))


def truncate(value: Any, max_length: int) -> str | None:
    if value is None:
        return None
    text = str(value)
    if not text:
        return None
    return text[:max_length]


def normalize_line(value: Any) -> str | None:
    """Canonical string form of a line value ("+6.50" -> "6.5", "210.0" -> "210").

    Non-numeric lines are kept as truncated text.
    """
    if value is None:
        return None
    parsed = to_float(value)
    if parsed is None:
        return truncate(str(value).strip(), settings.ODDS_TEXT_MAX_LENGTH)
    return format(parsed, "g")


def american_to_decimal(odds: float) -> float:
    if odds > 0:
        return odds / 100 + 1
    return 100 / abs(odds) + 1


def decimal_to_american(decimal_odds: float) -> float:
    if decimal_odds >= 2.0:
        return round((decimal_odds - 1) * 100, 2)
    return round(-100 / (decimal_odds - 1), 2)


def win_multiplier(american_odds: float) -> float:
    """Profit per unit staked on a win."""
    if american_odds > 0:
        return american_odds / 100
    return 100 / abs(american_odds)
