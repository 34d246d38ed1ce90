"""
backend/app/services/odds_consolidator.py

Purpose:
    Merge normalized per-market quotes of one event into canonical odds rows,
    one row per (event, odd id, line), with one price/link column pair per
    known sportsbook. Alternate lines reported by a sportsbook fan out into
    additional rows keyed by their own line value.

Notes:
    - Row timestamps are base + N seconds, N being the row's creation order,
      so no two rows of a batch share a timestamp.
    - Only available bookmaker entries contribute prices; alternate lines are
      read from available bookmakers only.
    - Pure function, no I/O.

Dependencies:
    - app.models.odds
    - app.utils.odds_utils
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from time import perf_counter
from typing import Optional

from app.models.odds import (
    SPORTSBOOK_COLUMNS,
    BookPrice,
    CanonicalOddsRow,
    ConsolidationResult,
    ConsolidationStats,
    RawQuote,
)
from app.monitoring.odds_metrics import METRIC_CONSOLIDATE_LATENCY, observe_latency
from app.utils import utcnow
from app.utils.odds_utils import clamp_american_odds

logger = logging.getLogger("sharpledger.odds_consolidator")

RowKey = tuple[str, str, Optional[str]]


class _RowBuilder:
    """Get-or-create store for the rows of one consolidation batch."""

    def __init__(self, event_id: str, base_time: datetime):
        self.event_id = event_id
        self.base_time = base_time
        self.rows: dict[RowKey, CanonicalOddsRow] = {}

    def get_or_create(self, quote: RawQuote, line: str | None, bookodds) -> CanonicalOddsRow:
        key = (self.event_id, quote.odd_id, line)
        row = self.rows.get(key)
        if row is not None:
            return row
        stamp = self.base_time + timedelta(seconds=len(self.rows))
        row = CanonicalOddsRow(
            eventid=self.event_id,
            oddid=quote.odd_id,
            marketname=quote.market_name or "unknown",
            bettypeid=quote.bet_type_id or "unknown",
            sideid=quote.side_id or "unknown",
            line=line,
            bookodds=clamp_american_odds(bookodds),
            fetched_at=stamp,
            created_at=stamp,
            updated_at=stamp,
        )
        self.rows[key] = row
        return row


def consolidate(
    event_id: str,
    quotes: list[RawQuote],
    now: datetime | None = None,
) -> ConsolidationResult:
    """Consolidate one event's quotes into canonical rows plus batch stats."""
    started = perf_counter()
    with observe_latency(METRIC_CONSOLIDATE_LATENCY):
        builder = _RowBuilder(event_id, now or utcnow())

        for quote in quotes:
            row = builder.get_or_create(quote, quote.line, quote.book_odds)

            for book in quote.bookmakers:
                column = SPORTSBOOK_COLUMNS.get(book.bookmaker)
                if column is None or not book.available:
                    continue
                row.books[column] = BookPrice(
                    odds=clamp_american_odds(book.odds),
                    link=book.deeplink or None,
                )

                for alt in book.alt_lines:
                    if not alt.available:
                        continue
                    alt_row = builder.get_or_create(quote, alt.line, alt.odds)
                    existing = alt_row.books.get(column)
                    alt_row.books[column] = BookPrice(
                        odds=clamp_american_odds(alt.odds),
                        link=alt.deeplink or (existing.link if existing else None),
                    )

    rows = list(builder.rows.values())
    total = len(quotes)
    stats = ConsolidationStats(
        total_quotes=total,
        consolidated_rows=len(rows),
        reduction_percent=round((total - len(rows)) / total * 100, 1) if total else 0.0,
        processing_time_ms=round((perf_counter() - started) * 1000, 3),
    )
    logger.debug(
        "Consolidated event %s: %d quotes -> %d rows (%.1f%% reduction)",
        event_id, stats.total_quotes, stats.consolidated_rows, stats.reduction_percent,
    )
    return ConsolidationResult(rows=rows, stats=stats)
