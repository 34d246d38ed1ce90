"""Upstream odds quotes, canonical odds rows, and ingest results."""

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field


class MarketFamily(str, Enum):
    total = "total"
    spread = "spread"
    moneyline = "moneyline"
    unclassified = "unclassified"


# Upstream bookmaker key -> column prefix on the canonical row
# (<prefix>odds / <prefix>link). Only these books get columns.
SPORTSBOOK_COLUMNS: Dict[str, str] = {
    "fanduel": "fanduel",
    "draftkings": "draftkings",
    "caesars": "ceasars",
    "betmgm": "mgm",
    "espnbet": "espnbet",
    "fanatics": "fanatics",
    "bovada": "bovada",
    "unibet": "unibet",
    "pointsbet": "pointsbet",
    "williamhill": "williamhill",
    "ballybet": "ballybet",
    "barstool": "barstool",
    "betonline": "betonline",
    "betparx": "betparx",
    "betrivers": "betrivers",
    "betus": "betus",
    "betfairexchange": "betfairexchange",
    "betfairsportsbook": "betfairsportsbook",
    "betfred": "betfred",
    "fliff": "fliff",
    "fourwinds": "fourwinds",
    "hardrockbet": "hardrockbet",
    "lowvig": "lowvig",
    "marathonbet": "marathonbet",
    "primesports": "primesports",
    "prophetexchange": "prophetexchange",
    "skybet": "skybet",
    "sleeper": "sleeper",
    "stake": "stake",
    "underdog": "underdog",
    "wynnbet": "wynnbet",
    "thescorebet": "thescorebet",
    "bet365": "bet365",
    "circa": "circa",
    "pinnacle": "pinnacle",
    "prizepicks": "prizepicks",
}

DEFAULT_SPORTSBOOK_TAG = "SportsGameOdds"


# ---------- Upstream quotes (normalization boundary) ----------

class AltLineQuote(BaseModel):
    """One alternate line a bookmaker reports beyond the reference line."""
    odds: Any = None
    line: Optional[str] = None          # normalized spread / overUnder
    available: bool = True
    deeplink: Optional[str] = None      # rarely present on alt lines
    last_updated_at: Optional[str] = None


class BookmakerQuote(BaseModel):
    bookmaker: str
    odds: Any = None
    available: bool = False
    deeplink: Optional[str] = None
    last_updated_at: Optional[str] = None
    alt_lines: List[AltLineQuote] = []


class _QuoteBase(BaseModel):
    odd_id: str
    market_name: Optional[str] = None
    bet_type_id: Optional[str] = None
    side_id: Optional[str] = None
    book_odds: Any = None
    line: Optional[str] = None          # reference line, normalized
    score: Any = None                   # provider-reported result, post-game only
    bookmakers: List[BookmakerQuote] = []


class TotalQuote(_QuoteBase):
    family: Literal["total"] = "total"


class SpreadQuote(_QuoteBase):
    family: Literal["spread"] = "spread"


class MoneylineQuote(_QuoteBase):
    family: Literal["moneyline"] = "moneyline"


class UnclassifiedQuote(_QuoteBase):
    family: Literal["unclassified"] = "unclassified"


RawQuote = Annotated[
    Union[TotalQuote, SpreadQuote, MoneylineQuote, UnclassifiedQuote],
    Field(discriminator="family"),
]


# ---------- Canonical rows ----------

class BookPrice(BaseModel):
    odds: Optional[int] = None
    link: Optional[str] = None


class CanonicalOddsRow(BaseModel):
    """One deduplicated (event, odd id, line) price record across all books."""
    eventid: str
    oddid: str
    sportsbook: str = DEFAULT_SPORTSBOOK_TAG
    marketname: str = "unknown"
    bettypeid: str = "unknown"
    sideid: str = "unknown"
    line: Optional[str] = None
    bookodds: Optional[int] = None
    fetched_at: datetime
    created_at: datetime
    updated_at: datetime
    books: Dict[str, BookPrice] = {}    # keyed by column prefix

    @property
    def identity(self) -> tuple[str, str, Optional[str]]:
        return (self.eventid, self.oddid, self.line)

    def identity_filter(self) -> dict[str, Any]:
        return {"eventid": self.eventid, "oddid": self.oddid, "line": self.line}

    def price_fields(self) -> dict[str, Any]:
        """Flattened <prefix>odds / <prefix>link columns."""
        out: dict[str, Any] = {}
        for prefix, price in self.books.items():
            out[f"{prefix}odds"] = price.odds
            if price.link is not None:
                out[f"{prefix}link"] = price.link
        return out

    def to_document(self) -> dict[str, Any]:
        doc = self.model_dump(exclude={"books"})
        doc.update(self.price_fields())
        return doc


class ConsolidationStats(BaseModel):
    total_quotes: int
    consolidated_rows: int
    reduction_percent: float
    processing_time_ms: float


class ConsolidationResult(BaseModel):
    rows: List[CanonicalOddsRow]
    stats: ConsolidationStats


class WriteResult(BaseModel):
    inserted_current: int = 0
    inserted_historical: int = 0
    skipped_games: List[str] = []
    errors: int = 0


class AnnotationResult(BaseModel):
    event_id: str
    updated: int = 0
    candidates: int = 0
    already_scored: int = 0
