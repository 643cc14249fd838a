from .metrics_factory import (
    get_metric_value,
    get_or_create_counter,
    get_or_create_gauge,
    reset_metrics,
)
from .tracing import setup_tracing

__all__ = [
    "get_metric_value",
    "get_or_create_counter",
    "get_or_create_gauge",
    "reset_metrics",
    "setup_tracing",
]
