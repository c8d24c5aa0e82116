"""OpenTelemetry integration for request tracing."""

from boundary_meter.telemetry.setup import (
    REQUEST_SPAN,
    build_tracer_provider,
    get_tracer,
    record_status,
    request_span,
    setup_telemetry,
    shutdown_telemetry,
)

__all__ = [
    "REQUEST_SPAN",
    "build_tracer_provider",
    "get_tracer",
    "record_status",
    "request_span",
    "setup_telemetry",
    "shutdown_telemetry",
]
