"""
Prometheus metrics collection for sale-actions

This module provides metrics instrumentation for monitoring pipeline
passes, notification outcomes and processed-marker writes.
"""
import os
from typing import Optional

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

# Global registry for metrics
REGISTRY = CollectorRegistry()


# =======================
# PIPELINE METRICS
# =======================

records_enriched_total = Counter(
    name="sale_actions_records_enriched_total",
    documentation="Records decoded from the join and handed to the dispatcher",
    labelnames=["pipeline"],
    registry=REGISTRY,
)

decode_errors_total = Counter(
    name="sale_actions_decode_errors_total",
    documentation="Joined documents skipped because they did not match the schema",
    labelnames=["pipeline"],
    registry=REGISTRY,
)

pass_duration_seconds = Histogram(
    name="sale_actions_pass_duration_seconds",
    documentation="Duration of one pipeline pass in seconds",
    labelnames=["pipeline"],
    buckets=[0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0, 120.0],
    registry=REGISTRY,
)

passes_total = Counter(
    name="sale_actions_passes_total",
    documentation="Pipeline passes run",
    labelnames=["pipeline", "status"],  # status: complete, aborted
    registry=REGISTRY,
)

# =======================
# DISPATCH METRICS
# =======================

notifications_total = Counter(
    name="sale_actions_notifications_total",
    documentation="Records handled by the dispatcher, by outcome",
    labelnames=["pipeline", "outcome"],
    registry=REGISTRY,
)

dispatch_batch_size = Histogram(
    name="sale_actions_dispatch_batch_size",
    documentation="Number of records per dispatched group",
    labelnames=["pipeline"],
    buckets=[1, 5, 10, 25, 50, 100, 250, 500, 1000],
    registry=REGISTRY,
)

# =======================
# STORE METRICS
# =======================

markers_written_total = Counter(
    name="sale_actions_markers_written_total",
    documentation="Processed markers inserted",
    labelnames=["pipeline"],
    registry=REGISTRY,
)

errors_total = Counter(
    name="sale_actions_errors_total",
    documentation="Total number of errors",
    labelnames=["pipeline", "error_type", "component"],
    registry=REGISTRY,
)


# =======================
# HELPER FUNCTIONS
# =======================

def generate_metrics() -> bytes:
    """
    Generate Prometheus metrics in text format

    Returns:
        Metrics in Prometheus text format
    """
    return generate_latest(REGISTRY)


def start_metrics_server(port: Optional[int] = None) -> None:
    """
    Start HTTP server for Prometheus metrics

    Args:
        port: Port to listen on (defaults to env var METRICS_PORT or 8000)
    """
    # Lazy import: the HTTP server is only needed when exposition is enabled
    from prometheus_client import start_http_server

    metrics_port = port or int(os.getenv("METRICS_PORT", "8000"))
    start_http_server(metrics_port, registry=REGISTRY)


def increment_counter(counter: Counter, value: float = 1.0, **labels) -> None:
    """
    Increment a counter metric

    Args:
        counter: Prometheus Counter metric
        value: Amount to increment (default: 1.0)
        **labels: Label values for the metric
    """
    counter.labels(**labels).inc(value)


def observe_histogram(histogram: Histogram, value: float, **labels) -> None:
    """
    Observe a value in a histogram metric

    Args:
        histogram: Prometheus Histogram metric
        value: Value to observe
        **labels: Label values for the metric
    """
    histogram.labels(**labels).observe(value)


# =======================
# METRICS COLLECTOR CLASS
# =======================

class MetricsCollector:
    """
    Metrics collector for one pipeline.

    Components receive a collector instead of touching the module-level
    metrics directly, so tests can substitute a mock.
    """

    def __init__(self, pipeline: str):
        self.pipeline = pipeline

    def record_enriched(self) -> None:
        increment_counter(records_enriched_total, pipeline=self.pipeline)

    def record_decode_error(self) -> None:
        increment_counter(decode_errors_total, pipeline=self.pipeline)

    def record_outcome(self, outcome: str) -> None:
        increment_counter(notifications_total, pipeline=self.pipeline, outcome=outcome)

    def record_batch(self, size: int) -> None:
        observe_histogram(dispatch_batch_size, size, pipeline=self.pipeline)

    def record_markers(self, count: int) -> None:
        if count > 0:
            increment_counter(markers_written_total, count, pipeline=self.pipeline)

    def record_error(self, error_type: str, component: str) -> None:
        increment_counter(errors_total, pipeline=self.pipeline, error_type=error_type, component=component)

    def record_pass(self, duration_seconds: float, aborted: bool) -> None:
        observe_histogram(pass_duration_seconds, duration_seconds, pipeline=self.pipeline)
        status = "aborted" if aborted else "complete"
        increment_counter(passes_total, pipeline=self.pipeline, status=status)
