"""
Metrics module for observability.

Provides counters, gauges, and histograms for tracking reconciliation.
Exposes metrics in Prometheus text format.
"""

from .registry import (
    REGISTRY,
    blocks_added,
    blocks_removed,
    generate_metrics,
    head_number,
    logs_added,
    logs_removed,
    reconcile_time,
    reconciliations_failed,
    subscriber_errors,
)

__all__ = [
    "REGISTRY",
    "blocks_added",
    "blocks_removed",
    "generate_metrics",
    "head_number",
    "logs_added",
    "logs_removed",
    "reconcile_time",
    "reconciliations_failed",
    "subscriber_errors",
]
