from __future__ import annotations

"""Prometheus metrics for the datafile integration."""

from prometheus_client import REGISTRY as global_registry, generate_latest

from optigate.foundation.common.metrics_factory import (
    get_or_create_counter,
    get_or_create_gauge,
    reset_metrics as reset_registered_metrics,
)

_REGISTERED_METRICS: set[str] = set()


def _counter(name: str, documentation: str, labelnames: list[str] | None = None):
    metric = get_or_create_counter(name, documentation, labelnames)
    _REGISTERED_METRICS.add(getattr(metric, "_name", name))
    return metric


def _gauge(name: str, documentation: str, labelnames: list[str] | None = None):
    metric = get_or_create_gauge(name, documentation, labelnames)
    _REGISTERED_METRICS.add(getattr(metric, "_name", name))
    return metric


datafile_updates_total = _counter(
    "datafile_updates_total",
    "Datafile replacements applied to the shared store",
    ["source"],
)

datafile_ready = _gauge(
    "datafile_ready",
    "Whether the first datafile load has completed (1) or not (0)",
)

datafile_refresh_failures_total = _counter(
    "datafile_refresh_failures_total",
    "Background or webhook-triggered datafile refreshes that failed",
)

webhook_requests_total = _counter(
    "webhook_requests_total",
    "Datafile webhook requests grouped by outcome",
    ["outcome"],
)


def record_update(source: str) -> None:
    datafile_updates_total.labels(source=source).inc()


def record_webhook(outcome: str) -> None:
    webhook_requests_total.labels(outcome=outcome).inc()


def collect_metrics() -> str:
    """Return metrics in text exposition format."""
    return generate_latest(global_registry).decode()


def reset_metrics() -> None:
    """Reset all metric values for tests."""
    reset_registered_metrics(_REGISTERED_METRICS)
