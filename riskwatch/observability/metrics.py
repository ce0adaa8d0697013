"""
Metrics definitions for RiskWatch.

This module defines Prometheus metrics for monitoring
the incident re-processing loop and notification fan-out.
"""

from prometheus_client import Counter, Histogram, Gauge

# 카운터 메트릭
monitor_passes = Counter(
    "monitor_passes_total",
    "Number of monitor passes executed",
    ["kind", "outcome"]
)

monitor_passes_skipped = Counter(
    "monitor_passes_skipped_total",
    "Number of ticks skipped because a pass was already running",
    ["kind"]
)

incidents_processed = Counter(
    "incidents_processed_total",
    "Number of incidents re-processed per outcome",
    ["outcome"]
)

events_published = Counter(
    "events_published_total",
    "Number of events handed to the delivery transport",
    ["topic"]
)

delivery_failures = Counter(
    "delivery_failures_total",
    "Number of events the delivery transport failed to accept",
    ["topic"]
)

cluster_cache_lookups = Counter(
    "cluster_cache_lookups_total",
    "Cluster cache lookups by result",
    ["result"]
)

publish_retries = Counter(
    "publish_retries_total",
    "MQTT publish retries by topic kind",
    ["kind"]
)

# 히스토그램 메트릭
pass_seconds = Histogram(
    "monitor_pass_duration_seconds",
    "Time spent in one monitor pass",
    buckets=[0.05, 0.1, 0.5, 1.0, 5.0, 10.0, 30.0, 60.0]
)

analysis_seconds = Histogram(
    "analysis_duration_seconds",
    "Latency of the external analysis call",
    buckets=[0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0]
)

clustering_seconds = Histogram(
    "clustering_duration_seconds",
    "Time spent recomputing clusters",
    buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0]
)

# 게이지 메트릭
last_cluster_count = Gauge(
    "last_cluster_count",
    "Number of clusters produced by the latest clustering pass"
)

window_size = Gauge(
    "monitor_window_size",
    "Number of incidents in the latest recent-incident window"
)

outbox_size = Gauge(
    "outbox_size",
    "Current number of items in outbox"
)

uptime_seconds = Gauge(
    "uptime_seconds",
    "Service uptime in seconds"
)
