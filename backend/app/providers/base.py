from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from app.models.game import Game


class BaseProvider(ABC):
    """Abstract base class for upstream odds providers."""

    @abstractmethod
    async def get_events(
        self, league: str, starts_after: datetime, starts_before: datetime,
    ) -> list[dict[str, Any]]:
        """Fetch raw events for a league whose start falls in the window.

        Each raw event carries at least an event id, both teams, a status
        and an `odds` mapping of per-market identifier -> quote object.
        """
        ...

    @abstractmethod
    def parse_event(self, raw: dict[str, Any], league: str) -> Game:
        """Convert one raw event into a Game (raw odds kept in `Game.odds`)."""
        ...
