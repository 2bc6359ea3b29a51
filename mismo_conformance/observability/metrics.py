"""
Prometheus metrics collection for the MISMO conformance pipeline

This module provides metrics instrumentation for monitoring run outcomes,
conformance findings and stage latency.
"""
from prometheus_client import (
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

# Global registry for metrics
REGISTRY = CollectorRegistry()


# =======================
# RUN METRICS
# =======================

runs_total = Counter(
    name="mismo_runs_total",
    documentation="Total number of pipeline runs by terminal status",
    labelnames=["direction", "pack_id", "status"],  # direction: export, import
    registry=REGISTRY,
)

stage_duration_seconds = Histogram(
    name="mismo_stage_duration_seconds",
    documentation="Time spent in each pipeline stage in seconds",
    labelnames=["direction", "stage"],
    buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0],
    registry=REGISTRY,
)

artifact_bytes = Histogram(
    name="mismo_artifact_bytes",
    documentation="Size of generated or received documents in bytes",
    labelnames=["direction"],
    buckets=[1_000, 5_000, 10_000, 50_000, 100_000, 500_000, 1_000_000],
    registry=REGISTRY,
)

# =======================
# CONFORMANCE METRICS
# =======================

findings_total = Counter(
    name="mismo_findings_total",
    documentation="Total number of validation findings",
    labelnames=["direction", "category", "severity"],
    registry=REGISTRY,
)

unmapped_nodes_total = Counter(
    name="mismo_unmapped_nodes_total",
    documentation="Total number of inbound nodes retained without a canonical field",
    labelnames=["pack_id"],
    registry=REGISTRY,
)

# =======================
# ERROR METRICS
# =======================

entity_store_retries_total = Counter(
    name="mismo_entity_store_retries_total",
    documentation="Total number of entity store retry attempts",
    labelnames=["operation", "status"],  # status: retry, exhausted
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


class track_duration:
    """
    Context manager for tracking operation duration

    Usage:
        with track_duration(stage_duration_seconds, direction="export", stage="generation"):
            # do work
            pass
    """

    def __init__(self, histogram: Histogram, **labels):
        self.histogram = histogram
        self.labels = labels
        self.timer = None

    def __enter__(self):
        self.timer = self.histogram.labels(**self.labels).time()
        self.timer.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.timer.__exit__(exc_type, exc_val, exc_tb)
        return False


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
    histogram.labels(**labels).observe(value)


def record_run(direction: str, pack_id: str, status: str, report=None, byte_size: int | None = None) -> None:
    """
    Record the outcome of a finished run.

    Args:
        direction: "export" or "import"
        pack_id: Pack the run targeted
        status: Terminal run status
        report: ConformanceReport of the run, if any
        byte_size: Size of the artifact, if one was produced or received
    """
    increment_counter(runs_total, 1, direction=direction, pack_id=pack_id, status=status)

    if byte_size:
        observe_histogram(artifact_bytes, byte_size, direction=direction)

    if report is not None:
        for finding in report.validation.findings:
            increment_counter(
                findings_total, 1,
                direction=direction,
                category=finding.category.value,
                severity=finding.severity.value,
            )
        if report.unmapped_nodes:
            increment_counter(unmapped_nodes_total, len(report.unmapped_nodes), pack_id=pack_id)
