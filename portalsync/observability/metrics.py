"""Prometheus metrics for the mutation pipeline."""

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest

# Queue metrics
MUTATIONS_ENQUEUED = Counter(
    "portalsync_mutations_enqueued_total",
    "Mutations accepted into the queue",
    labelnames=["kind", "entity_type"],
)

MUTATIONS_DISPATCHED = Counter(
    "portalsync_mutations_dispatched_total",
    "Mutation submissions by outcome",
    labelnames=["kind", "entity_type", "outcome"],
)

QUEUE_PENDING = Gauge(
    "portalsync_queue_pending",
    "Entries pending or syncing",
)

QUEUE_FAILED = Gauge(
    "portalsync_queue_failed",
    "Entries waiting for manual retry",
)

# Concurrency control
VERSION_CONFLICTS = Counter(
    "portalsync_version_conflicts_total",
    "Version-checked updates rejected as stale",
    labelnames=["table"],
)

BULK_INSERT_ROWS = Counter(
    "portalsync_bulk_insert_rows_total",
    "Rows processed by bulk insert",
    labelnames=["table", "result"],
)

# Undo
UNDO_OUTCOMES = Counter(
    "portalsync_undo_total",
    "Undo attempts by outcome",
    labelnames=["outcome"],
)

UNDO_ACTIVE = Gauge(
    "portalsync_undo_active",
    "Reversible actions still within their window",
)

# Rate limiting
RATE_LIMIT_DENIALS = Counter(
    "portalsync_rate_limit_denials_total",
    "Requests denied by the rate limiter",
    labelnames=["action_type", "source"],
)

# Audit
AUDIT_APPENDS = Counter(
    "portalsync_audit_appends_total",
    "Audit records written",
    labelnames=["table", "action"],
)

# Remote store
REMOTE_LATENCY = Histogram(
    "portalsync_remote_latency_seconds",
    "Latency of remote store operations",
    labelnames=["operation"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

REMOTE_ERRORS = Counter(
    "portalsync_remote_errors_total",
    "Remote store failures by classified kind",
    labelnames=["operation", "kind"],
)


def render_latest() -> tuple[bytes, str]:
    """Current metrics in the Prometheus text format, with its content type."""
    return generate_latest(), CONTENT_TYPE_LATEST
