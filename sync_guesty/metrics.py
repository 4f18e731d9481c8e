"""
Prometheus metrics for monitoring sync runs, upstream API calls, and the store.

This module defines all Prometheus metrics used throughout the application for
observability and monitoring. Metrics are exposed via the /metrics endpoint for
scraping by Prometheus.

Example:
    >>> from sync_guesty.metrics import poll_duration, records_synced
    >>> with poll_duration.labels(listing_id="abc", entity_type="listing").time():
    ...     listing = client.fetch_listing("abc")
    ...     records_synced.labels(listing_id="abc", entity_type="listing").inc()
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# =============================================================================
# Poll / Task Metrics
# =============================================================================

poll_total = Counter(
    "guesty_polls_total",
    "Total number of upstream polling operations (success and failure)",
    ["listing_id", "entity_type", "status"],
)

poll_duration = Histogram(
    "guesty_poll_duration_seconds",
    "Duration of upstream polling operations in seconds",
    ["listing_id", "entity_type"],
    buckets=(0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0, float("inf")),
)

records_synced = Counter(
    "guesty_records_synced_total",
    "Total number of records upserted into the local store",
    ["listing_id", "entity_type"],
)

task_results = Counter(
    "guesty_sync_task_results_total",
    "Entity sync task outcomes",
    ["entity_type", "outcome"],
)
"""
Labels:
    entity_type: listing, availability, reservations
    outcome: success, skipped, failure
"""

reconciled_deletions = Counter(
    "guesty_reconciled_deletions_total",
    "Reservations deleted locally because upstream no longer reports them",
    ["listing_id"],
)

# =============================================================================
# API Metrics
# =============================================================================

api_requests = Counter(
    "guesty_api_requests_total",
    "Total Guesty API requests made",
    ["endpoint", "status_code"],
)

api_latency = Histogram(
    "guesty_api_latency_seconds",
    "Guesty API request latency in seconds",
    ["endpoint"],
    buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, float("inf")),
)

rate_limit_wait = Histogram(
    "guesty_rate_limit_wait_seconds",
    "Time spent queued behind the client-side rate limiter",
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, float("inf")),
)

token_refreshes = Counter(
    "guesty_token_refreshes_total",
    "Total number of OAuth token acquisitions",
    ["status"],
)

# =============================================================================
# Scheduler Metrics
# =============================================================================

scheduler_runs = Counter(
    "guesty_scheduler_runs_total",
    "ETL runs triggered by the scheduler or manually",
    ["trigger", "outcome"],
)
"""
Labels:
    trigger: scheduled or manual
    outcome: success, failure, dropped
"""

etl_run_duration = Histogram(
    "guesty_etl_run_duration_seconds",
    "Duration of a full ETL run in seconds",
    buckets=(1.0, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0, 600.0, float("inf")),
)

configured_properties = Gauge(
    "guesty_configured_properties",
    "Number of properties the engine is configured to sync",
)
