"""
Metric registry using prometheus_client.

Tracks what the streamer announces and how often reconciliation fails.
"""

from __future__ import annotations

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

# Dedicated registry, kept apart from the default process metrics.
REGISTRY = CollectorRegistry()

# -----------------------------------------------------------------------------
# Chain View
# -----------------------------------------------------------------------------

head_number = Gauge(
    "block_stream_head_number",
    "Number of the latest reconciled block",
    registry=REGISTRY,
)

# -----------------------------------------------------------------------------
# Announcements
# -----------------------------------------------------------------------------

blocks_added = Counter(
    "block_stream_blocks_added_total",
    "Blocks announced as added",
    registry=REGISTRY,
)

blocks_removed = Counter(
    "block_stream_blocks_removed_total",
    "Blocks announced as removed",
    registry=REGISTRY,
)

logs_added = Counter(
    "block_stream_logs_added_total",
    "Logs announced as added",
    registry=REGISTRY,
)

logs_removed = Counter(
    "block_stream_logs_removed_total",
    "Logs announced as removed",
    registry=REGISTRY,
)

# -----------------------------------------------------------------------------
# Reconciliation
# -----------------------------------------------------------------------------

reconciliations_failed = Counter(
    "block_stream_reconciliations_failed_total",
    "Reconciliations rejected and rolled back",
    registry=REGISTRY,
)

subscriber_errors = Counter(
    "block_stream_subscriber_errors_total",
    "Exceptions raised by subscriber callbacks",
    registry=REGISTRY,
)

reconcile_time = Histogram(
    "block_stream_reconcile_seconds",
    "Duration of one block reconciliation, including fetches",
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
    registry=REGISTRY,
)


def generate_metrics() -> bytes:
    """Render every block_stream metric in the Prometheus text exposition format."""
    return generate_latest(REGISTRY)
