"""
backend/app/services/odds_normalizer.py

Purpose:
    Normalization boundary for upstream odds payloads. Every per-market entry
    becomes one RawQuote variant (total / spread / moneyline / unclassified)
    so downstream code never reads raw provider fields.

Dependencies:
    - app.models.odds
    - app.utils.odds_utils
"""

from __future__ import annotations

import logging
from typing import Any

from app.config import settings
from app.models.odds import (
    AltLineQuote,
    BookmakerQuote,
    MarketFamily,
    MoneylineQuote,
    RawQuote,
    SpreadQuote,
    TotalQuote,
    UnclassifiedQuote,
)
from app.monitoring.odds_metrics import METRIC_QUOTES_REJECTED
from app.utils.odds_utils import normalize_line, truncate

logger = logging.getLogger("sharpledger.odds_normalizer")

_BET_TYPE_FAMILIES = {
    "ou": MarketFamily.total,
    "sp": MarketFamily.spread,
    "ml": MarketFamily.moneyline,
    "ml3way": MarketFamily.moneyline,
}

# Checked in order, first hit wins.
_MARKET_KEYWORDS: list[tuple[tuple[str, ...], MarketFamily]] = [
    (("over/under", "total", "o/u"), MarketFamily.total),
    (("spread", "handicap", "run line", "puck line"), MarketFamily.spread),
    (("moneyline", "money line", "winner", "1x2"), MarketFamily.moneyline),
]

_QUOTE_CLASSES = {
    MarketFamily.total: TotalQuote,
    MarketFamily.spread: SpreadQuote,
    MarketFamily.moneyline: MoneylineQuote,
    MarketFamily.unclassified: UnclassifiedQuote,
}


def classify_market(bet_type_id: Any, market_name: Any) -> MarketFamily:
    """Market family from the bet-type code, else from market-name keywords."""
    code = str(bet_type_id or "").strip().lower()
    if code in _BET_TYPE_FAMILIES:
        return _BET_TYPE_FAMILIES[code]
    name = str(market_name or "").lower()
    for keywords, family in _MARKET_KEYWORDS:
        if any(k in name for k in keywords):
            return family
    return MarketFamily.unclassified


def _first_present(payload: dict[str, Any], *fields: str) -> Any:
    for field in fields:
        value = payload.get(field)
        if value is not None and value != "":
            return value
    return None


def reference_line(family: MarketFamily, payload: dict[str, Any]) -> str | None:
    if family == MarketFamily.total:
        raw = _first_present(payload, "bookOverUnder", "line")
    elif family == MarketFamily.spread:
        raw = _first_present(payload, "bookSpread", "line")
    elif family == MarketFamily.moneyline:
        return None
    else:
        raw = _first_present(payload, "bookSpread", "bookOverUnder", "line")
    return normalize_line(raw)


def _normalize_alt_lines(raw_alts: Any) -> list[AltLineQuote]:
    if not isinstance(raw_alts, list):
        return []
    out: list[AltLineQuote] = []
    for alt in raw_alts:
        if not isinstance(alt, dict):
            continue
        line = normalize_line(_first_present(alt, "spread", "overUnder", "line"))
        if line is None:
            continue
        out.append(
            AltLineQuote(
                odds=alt.get("odds"),
                line=line,
                available=bool(alt.get("available", True)),
                deeplink=truncate(alt.get("deeplink"), 2048),
                last_updated_at=alt.get("lastUpdatedAt"),
            )
        )
    return out


def _normalize_bookmakers(by_bookmaker: Any) -> list[BookmakerQuote]:
    if not isinstance(by_bookmaker, dict):
        return []
    out: list[BookmakerQuote] = []
    for name, entry in by_bookmaker.items():
        if not isinstance(entry, dict) or not name:
            logger.debug("Skipping malformed bookmaker entry %r", name)
            continue
        out.append(
            BookmakerQuote(
                bookmaker=str(name).strip().lower(),
                odds=entry.get("odds"),
                available=bool(entry.get("available", False)),
                deeplink=truncate(entry.get("deeplink"), 2048),
                last_updated_at=entry.get("lastUpdatedAt"),
                alt_lines=_normalize_alt_lines(entry.get("altLines")),
            )
        )
    return out


def normalize_quote(key: str, payload: Any) -> RawQuote | None:
    """One upstream market entry -> RawQuote variant, or None when unusable."""
    if not isinstance(payload, dict):
        METRIC_QUOTES_REJECTED.labels(reason="not_object").inc()
        return None
    odd_id = truncate(payload.get("oddID"), settings.ODDS_ID_MAX_LENGTH)
    if not odd_id:
        METRIC_QUOTES_REJECTED.labels(reason="missing_odd_id").inc()
        logger.debug("Rejecting quote %r without oddID", key)
        return None

    family = classify_market(payload.get("betTypeID"), payload.get("marketName"))
    max_len = settings.ODDS_TEXT_MAX_LENGTH
    return _QUOTE_CLASSES[family](
        odd_id=odd_id,
        market_name=truncate(payload.get("marketName"), max_len),
        bet_type_id=truncate(payload.get("betTypeID"), max_len),
        side_id=truncate(payload.get("sideID"), max_len),
        book_odds=payload.get("bookOdds"),
        line=reference_line(family, payload),
        score=payload.get("score"),
        bookmakers=_normalize_bookmakers(payload.get("byBookmaker")),
    )


def normalize_odds(odds: Any) -> list[RawQuote]:
    """Normalize the provider's per-market odds mapping, dropping unusable entries."""
    if not isinstance(odds, dict):
        return []
    quotes: list[RawQuote] = []
    for key, payload in odds.items():
        quote = normalize_quote(key, payload)
        if quote is not None:
            quotes.append(quote)
    return quotes


def provider_scores(quotes: list[RawQuote]) -> dict[str, str]:
    """Per-oddid scores the provider reported on finished events."""
    out: dict[str, str] = {}
    for quote in quotes:
        if quote.score is None or quote.score == "":
            continue
        out[quote.odd_id] = str(quote.score)
    return out
