"""Structured logging and optional OTLP tracing for clusterimages."""

from __future__ import annotations

import logging
from typing import Optional

import structlog
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.trace.sampling import ParentBased, TraceIdRatioBased
from structlog.contextvars import bind_contextvars

from .settings import FindImageSettings


def log_level(value: str | int | None) -> int:
    if isinstance(value, int):
        return value
    if value:
        numeric = logging.getLevelName(value.strip().upper())
        if isinstance(numeric, int):
            return numeric
    return logging.INFO


def configure_logging(service_name: str, level: str | int | None = None) -> None:
    """Route structlog events through stdlib logging as JSON lines."""

    numeric_level = log_level(level)
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(format="%(message)s")
    root.setLevel(numeric_level)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.stdlib.add_log_level,
            structlog.processors.dict_tracebacks,
            structlog.processors.EventRenamer("message"),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    bind_contextvars(service=service_name)


def otlp_headers(raw: Optional[str]) -> dict[str, str]:
    """Parse ``key=value,key=value`` exporter headers, skipping malformed pairs."""

    headers: dict[str, str] = {}
    for item in (raw or "").split(","):
        key, _, value = item.partition("=")
        if key.strip() and value.strip():
            headers[key.strip()] = value.strip()
    return headers


def configure_tracing(service_name: str, settings: FindImageSettings) -> Optional[TracerProvider]:
    """Export spans for inventory calls when an OTLP endpoint is configured.

    Without an endpoint the global no-op provider stays in place. Calling this
    again after a provider is installed returns the existing one.
    """

    if not settings.otel_exporter_endpoint:
        return None

    current = trace.get_tracer_provider()
    if isinstance(current, TracerProvider):
        return current

    ratio = max(0.0, min(1.0, settings.otel_sampler_ratio))
    provider = TracerProvider(
        resource=Resource.create({"service.name": service_name}),
        sampler=ParentBased(TraceIdRatioBased(ratio)),
    )
    exporter = OTLPSpanExporter(
        endpoint=settings.otel_exporter_endpoint,
        headers=otlp_headers(settings.otel_exporter_headers),
    )
    provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(provider)
    HTTPXClientInstrumentor().instrument(tracer_provider=provider)
    return provider
