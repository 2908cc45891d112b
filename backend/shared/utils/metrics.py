"""
Prometheus metrics for the sync engine.
Served by the prometheus_client HTTP server on the metrics port.
"""
from __future__ import annotations

from prometheus_client import Counter, Histogram, start_http_server

from shared.config import get_settings
from shared.utils.logging import get_logger

logger = get_logger(__name__)

# ── Counters ────────────────────────────────────────────────────────────
PROVIDER_REQUESTS = Counter(
    "fx_provider_requests_total",
    "Total provider HTTP requests",
    ["provider", "status"],
)
RATE_LIMIT_WAITS = Counter(
    "fx_rate_limit_waits_total",
    "Waits imposed by a rate gate",
    ["provider", "reason"],
)
SYNC_RUNS = Counter(
    "fx_sync_runs_total",
    "Completed sync invocations",
    ["sync_type", "status"],
)
RECORDS_UPSERTED = Counter(
    "fx_records_upserted_total",
    "Rows written by the cache upsert layer",
    ["table"],
)
CACHE_BATCH_FAILURES = Counter(
    "fx_cache_batch_failures_total",
    "Upsert batches rejected by the store",
    ["table"],
)
LIVE_MATCH_OUTCOMES = Counter(
    "fx_live_match_outcomes_total",
    "Live snapshot entries by cross-provider match outcome",
    ["outcome"],
)
ORPHANS_FINALIZED = Counter(
    "fx_orphans_finalized_total",
    "Live rows forced to finished by the orphan reconciler",
    ["league"],
)

# ── Histograms ──────────────────────────────────────────────────────────
PROVIDER_LATENCY = Histogram(
    "fx_provider_latency_seconds",
    "Provider request latency in seconds",
    ["provider"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)
SYNC_DURATION = Histogram(
    "fx_sync_duration_seconds",
    "Wall time of a sync invocation",
    ["sync_type"],
    buckets=(0.5, 1, 5, 15, 30, 60, 120, 300, 600),
)


def start_metrics_server(port: int | None = None) -> None:
    """Start the Prometheus metrics HTTP server."""
    settings = get_settings()
    if not settings.metrics_enabled:
        return
    metrics_port = port or settings.metrics_port
    try:
        start_http_server(metrics_port)
        logger.info("metrics_server_started", port=metrics_port)
    except OSError as exc:
        logger.warning("metrics_server_failed", error=str(exc), port=metrics_port)
