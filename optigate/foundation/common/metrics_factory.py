from __future__ import annotations

"""Fetch-or-create helpers for Prometheus collectors.

Building several apps in one process (tests do this constantly) re-runs
module-level metric declarations. Collectors are therefore cached per
registry and name, and handed back instead of being registered twice.
``reset_metrics`` zeroes cached collectors between test cases.
"""

from collections.abc import Iterable, Mapping, Sequence
from typing import Dict, Tuple, Type, TypeVar

from prometheus_client import CollectorRegistry, Counter, Gauge, REGISTRY as global_registry
from prometheus_client.metrics import MetricWrapperBase

__all__ = [
    "get_metric_value",
    "get_or_create_counter",
    "get_or_create_gauge",
    "reset_metrics",
]

MetricT = TypeVar("MetricT", bound=MetricWrapperBase)

# (registry, declared name) -> collector
_REGISTERED: Dict[Tuple[CollectorRegistry, str], MetricWrapperBase] = {}


def get_or_create_counter(
    name: str,
    documentation: str,
    labelnames: Sequence[str] | None = None,
    *,
    registry: CollectorRegistry | None = None,
) -> Counter:
    """Return the cached counter called ``name`` or register a new one."""
    return _register(Counter, name, documentation, labelnames, registry or global_registry)


def get_or_create_gauge(
    name: str,
    documentation: str,
    labelnames: Sequence[str] | None = None,
    *,
    registry: CollectorRegistry | None = None,
) -> Gauge:
    """Return the cached gauge called ``name`` or register a new one."""
    return _register(Gauge, name, documentation, labelnames, registry or global_registry)


def reset_metrics(
    names: Iterable[str] | None = None,
    *,
    registry: CollectorRegistry | None = None,
) -> None:
    """Zero the collectors declared under ``names`` (all of them when ``None``).

    Names are matched against both the declared name and the collector's own
    name, since prometheus strips the ``_total`` suffix from counters.
    """

    reg = registry or global_registry
    wanted = None if names is None else set(names)
    for (owner, declared), metric in list(_REGISTERED.items()):
        if owner is not reg:
            continue
        if wanted is not None and not ({declared, getattr(metric, "_name", declared)} & wanted):
            continue
        _zero(metric)


def get_metric_value(
    metric: MetricWrapperBase, labels: Mapping[str, str] | None = None
) -> float:
    """Current value of ``metric``, or of its child matching ``labels``.

    ``_created`` timestamps are skipped; a missing sample reads as ``0.0``.
    """

    wanted = None if labels is None else dict(labels)
    for family in metric.collect():
        for sample in family.samples:
            if sample.name.endswith("_created"):
                continue
            if (wanted is None and not sample.labels) or sample.labels == wanted:
                return float(sample.value)
    return 0.0


def _register(
    kind: Type[MetricT],
    name: str,
    documentation: str,
    labelnames: Sequence[str] | None,
    registry: CollectorRegistry,
) -> MetricT:
    key = (registry, name)
    labels = tuple(labelnames or ())
    existing = _REGISTERED.get(key)
    if existing is not None:
        if type(existing) is kind and tuple(getattr(existing, "_labelnames", ())) == labels:
            return existing  # type: ignore[return-value]
        # Redeclared with another type or label set: replace it.
        registry.unregister(existing)
        del _REGISTERED[key]
    metric = kind(name, documentation, labels, registry=registry)
    _REGISTERED[key] = metric
    return metric


def _zero(metric: MetricWrapperBase) -> None:
    if getattr(metric, "_labelnames", ()):
        metric.clear()
    elif isinstance(metric, Counter):
        metric._value.set(0)  # type: ignore[attr-defined]
    elif isinstance(metric, Gauge):
        metric.set(0)
