"""Prometheus metric inventory.

Every metric the service exposes is defined here; the modules that own
the behavior import and increment them. Counters only go up, so tests
assert on deltas.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP metrics (populated by the MetricsMiddleware)
# ---------------------------------------------------------------------------

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests by method, endpoint, and status code",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Course engine metrics
# ---------------------------------------------------------------------------

CACHE_OPERATIONS = Counter(
    "cache_operations_total",
    "Hierarchy cache get operations by result",
    ["operation"],  # hit|miss
)

HIERARCHY_FALLBACKS = Counter(
    "hierarchy_load_fallbacks_total",
    "Hierarchy loads that degraded instead of using the embedded query",
    ["stage"],  # embedded|modules|videos
)

RECONCILE_OPERATIONS = Counter(
    "reconcile_operations_total",
    "Create/update/delete calls issued by the course editor reconciler",
    ["entity", "action", "outcome"],  # course|module|video, create|update|delete, ok|error
)

PROGRESS_SYNC = Counter(
    "progress_sync_total",
    "Enrollment progress sync decisions",
    ["result"],  # written|skipped|no_enrollment
)
