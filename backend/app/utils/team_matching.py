"""
backend/app/utils/team_matching.py

Purpose:
    Team-name substring helpers for the bet matcher fallback that links
    legacy bets (no market reference) to games.

Notes:
    - Event ids always take precedence over names.
    - Substring matching is a fallback only and can produce false
      positives; the first candidate wins.
"""

from __future__ import annotations

import unicodedata


def normalize_name(name: str | None) -> str:
    """Lowercase, accent-free, whitespace-collapsed comparison form."""
    normalized = unicodedata.normalize("NFKD", name or "")
    normalized = "".join(ch for ch in normalized if not unicodedata.combining(ch)).lower()
    return " ".join(normalized.replace("_", " ").split())


def name_contains(haystack: str | None, needle: str | None) -> bool:
    """True when the normalized needle occurs inside the normalized haystack."""
    n = normalize_name(needle)
    if len(n) < 2:
        return False
    return n in normalize_name(haystack)


def game_matches_terms(game: dict, terms: list[str]) -> bool:
    """True when any term is a substring of the game's home, away or display names."""
    fields = (
        game.get("home_team"),
        game.get("away_team"),
        game.get("home_team_name"),
        game.get("away_team_name"),
    )
    for term in terms:
        for field in fields:
            if name_contains(field, term):
                return True
    return False
