"""
backend/app/monitoring/settlement_metrics.py

Purpose:
    Prometheus metrics for bet matching, outcome evaluation and settlement
    runs.

Dependencies:
    - prometheus_client
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

METRIC_MATCH_STRATEGY = Counter(
    "settlement_match_total",
    "Bet matcher results by strategy (none = unmatched).",
    ["strategy"],
)
METRIC_BETS_SETTLED = Counter(
    "settlement_bets_settled_total",
    "Bets moved to a terminal status.",
    ["status"],
)
METRIC_SETTLE_CONFLICTS = Counter(
    "settlement_conflicts_total",
    "Settlement writes that found the bet already terminal.",
)
METRIC_FETCH_FAILURES = Counter(
    "settlement_fetch_failures_total",
    "Failed (sport, date) fetch units.",
    ["sport"],
)
METRIC_UNIT_ERRORS = Counter(
    "settlement_unit_errors_total",
    "Per-game or per-bet errors isolated during a run.",
    ["stage"],
)
METRIC_RUN_LATENCY = Histogram(
    "settlement_run_latency_seconds",
    "Latency of one full settlement run.",
)
METRIC_LAST_RUN = Gauge(
    "settlement_last_run_timestamp_seconds",
    "Epoch timestamp of the last finished settlement run.",
)
METRIC_BLOCKED_BETS = Counter(
    "settlement_blocked_bets_total",
    "Decided bets left pending because stake or odds are unusable.",
    ["reason"],
)
