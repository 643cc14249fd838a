from __future__ import annotations

"""OpenTelemetry tracing utilities for optigate.

``setup_tracing`` configures the global tracer provider once per process.
Spans are exported over OTLP/HTTP when an endpoint is given explicitly, via
``OPTIGATE_OTEL_EXPORTER_ENDPOINT`` or the ``telemetry`` section of the
config file. The special endpoint ``console`` prints spans to stdout.
"""

import logging
import os
from typing import Optional

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter

logger = logging.getLogger(__name__)

_INITIALISED = False


def setup_tracing(service_name: str, exporter_endpoint: Optional[str] = None) -> None:
    """Configure a global :class:`TracerProvider` if not already set."""
    global _INITIALISED
    if _INITIALISED:
        return

    endpoint = exporter_endpoint or os.getenv("OPTIGATE_OTEL_EXPORTER_ENDPOINT")
    resource = Resource.create({"service.name": service_name})
    provider = TracerProvider(resource=resource)
    if endpoint:
        if endpoint.strip().lower() == "console":
            provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
        else:
            from opentelemetry.exporter.otlp.proto.http.trace_exporter import (
                OTLPSpanExporter,
            )

            provider.add_span_processor(
                BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint))
            )
        logger.info("Tracing enabled for %s (exporter: %s)", service_name, endpoint)
    # Without an exporter the provider still records spans; nothing is shipped.
    trace.set_tracer_provider(provider)
    _INITIALISED = True
