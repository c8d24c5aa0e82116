"""Tracing for Boundary API requests.

Every request the transport sends runs inside a ``boundary.request`` span.
Spans go nowhere until ``setup_telemetry`` installs a tracer provider, which
only happens when ``OTEL_ENABLED`` is set.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.sdk.trace.sampling import ALWAYS_OFF, ALWAYS_ON, TraceIdRatioBased
from opentelemetry.trace import Status, StatusCode

from boundary_meter import __version__

if TYPE_CHECKING:
    from opentelemetry.sdk.trace.export import SpanExporter
    from opentelemetry.sdk.trace.sampling import Sampler

    from boundary_meter.config import Settings

logger = logging.getLogger(__name__)

REQUEST_SPAN = "boundary.request"

_tracer_provider: TracerProvider | None = None


def _get_sampler(sampler_type: str, sampler_arg: float) -> "Sampler":
    """Map the configured sampler name to a sampler."""
    if sampler_type == "traceidratio":
        return TraceIdRatioBased(sampler_arg)
    if sampler_type == "always_off":
        return ALWAYS_OFF
    if sampler_type != "always_on":
        logger.warning("Unknown sampler type '%s', sampling every request", sampler_type)
    return ALWAYS_ON


def _create_exporter(
    exporter_type: str, otlp_endpoint: str, otlp_http_endpoint: str
) -> "SpanExporter":
    """Build the span exporter named in configuration.

    The OTLP exporters are imported on demand so console tracing does not
    pull in grpc.
    """
    if exporter_type == "otlp":
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter

        return OTLPSpanExporter(endpoint=otlp_endpoint)

    if exporter_type == "otlp-http":
        from opentelemetry.exporter.otlp.proto.http.trace_exporter import (
            OTLPSpanExporter as OTLPHttpSpanExporter,
        )

        return OTLPHttpSpanExporter(endpoint=f"{otlp_http_endpoint.rstrip('/')}/v1/traces")

    if exporter_type != "console":
        logger.warning("Unknown exporter type '%s', writing spans to the console", exporter_type)
    return ConsoleSpanExporter()


def build_tracer_provider(settings: "Settings") -> TracerProvider:
    """Create a tracer provider describing this meter client.

    The resource names the Boundary organization and meter so spans from
    many hosts can be told apart.
    """
    resource = Resource.create(
        {
            "service.name": settings.otel_service_name,
            "service.version": __version__,
            "boundary.org_id": settings.boundary_org_id,
            "boundary.meter_name": settings.boundary_meter_name,
        }
    )
    provider = TracerProvider(
        resource=resource,
        sampler=_get_sampler(settings.otel_traces_sampler, settings.otel_traces_sampler_arg),
    )
    exporter = _create_exporter(
        settings.otel_exporter_type,
        settings.otel_exporter_otlp_endpoint,
        settings.otel_exporter_otlp_http_endpoint,
    )
    provider.add_span_processor(BatchSpanProcessor(exporter))
    return provider


def setup_telemetry(settings: "Settings | None" = None) -> None:
    """Install the tracer provider when tracing is enabled."""
    global _tracer_provider

    if settings is None:
        from boundary_meter.config import get_settings

        settings = get_settings()

    if not settings.otel_enabled:
        logger.debug("Request tracing is disabled")
        return

    _tracer_provider = build_tracer_provider(settings)
    trace.set_tracer_provider(_tracer_provider)
    logger.info(
        "Tracing Boundary requests for [%s] via %s exporter",
        settings.boundary_meter_name,
        settings.otel_exporter_type,
    )


def shutdown_telemetry() -> None:
    """Flush pending request spans."""
    global _tracer_provider

    if _tracer_provider is None:
        return
    _tracer_provider.shutdown()
    _tracer_provider = None
    logger.debug("Request tracing shut down")


def get_tracer(name: str) -> trace.Tracer:
    return trace.get_tracer(name, __version__)


@contextmanager
def request_span(
    tracer: trace.Tracer, method: str, url: str
) -> Iterator[trace.Span]:
    """Trace one API request.

    The caller records the response with ``record_status``. Exceptions
    escaping the block mark the span as failed.
    """
    with tracer.start_as_current_span(
        REQUEST_SPAN,
        kind=trace.SpanKind.CLIENT,
        attributes={"http.method": method, "http.url": url},
    ) as span:
        yield span


def record_status(span: trace.Span, status_code: int) -> None:
    """Attach the HTTP status to a request span; non-2xx marks it as an error."""
    span.set_attribute("http.status_code", status_code)
    if not 200 <= status_code < 300:
        span.set_status(Status(StatusCode.ERROR, f"HTTP {status_code}"))
