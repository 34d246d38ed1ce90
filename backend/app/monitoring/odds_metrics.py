"""
backend/app/monitoring/odds_metrics.py

Purpose:
    Prometheus metrics for the odds ingest pipeline (normalize, consolidate,
    write, score annotation).

Dependencies:
    - prometheus_client
"""

from __future__ import annotations

from contextlib import contextmanager
from time import perf_counter

from prometheus_client import Counter, Histogram

METRIC_QUOTES_TOTAL = Counter(
    "odds_quotes_total",
    "Upstream quotes seen by the consolidator.",
    ["league"],
)
METRIC_QUOTES_REJECTED = Counter(
    "odds_quotes_rejected_total",
    "Upstream quotes rejected during normalization.",
    ["reason"],
)
METRIC_ROWS_CONSOLIDATED = Counter(
    "odds_rows_consolidated_total",
    "Canonical odds rows produced by consolidation.",
    ["league"],
)
METRIC_ROWS_INSERTED = Counter(
    "odds_rows_inserted_total",
    "Canonical odds rows newly inserted per destination.",
    ["collection"],
)
METRIC_ROWS_DEDUPLICATED = Counter(
    "odds_rows_deduplicated_total",
    "Canonical odds rows skipped as already present.",
    ["collection"],
)
METRIC_WRITE_ERRORS = Counter(
    "odds_write_errors_total",
    "Unexpected (non-constraint) odds write failures.",
    ["collection"],
)
METRIC_GUARDED_GAMES = Counter(
    "odds_write_guarded_games_total",
    "Games skipped by the closing-line guard.",
)
METRIC_ROWS_SCORED = Counter(
    "odds_rows_scored_total",
    "Canonical odds rows annotated with a final score.",
)
METRIC_CONSOLIDATE_LATENCY = Histogram(
    "odds_consolidate_latency_seconds",
    "Latency of one event consolidation.",
)
METRIC_WRITE_LATENCY = Histogram(
    "odds_write_latency_seconds",
    "Latency of one store writer call.",
)


@contextmanager
def observe_latency(histogram):
    start = perf_counter()
    try:
        yield
    finally:
        histogram.observe(perf_counter() - start)
