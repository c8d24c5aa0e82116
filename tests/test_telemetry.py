"""Tests for request tracing."""

from unittest.mock import patch

import pytest
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import ConsoleSpanExporter, SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.sdk.trace.sampling import ALWAYS_OFF, ALWAYS_ON, TraceIdRatioBased
from opentelemetry.trace import StatusCode

from boundary_meter.telemetry import (
    REQUEST_SPAN,
    build_tracer_provider,
    record_status,
    request_span,
    setup,
    setup_telemetry,
    shutdown_telemetry,
)


@pytest.fixture
def exporter():
    return InMemorySpanExporter()


@pytest.fixture
def tracer(exporter):
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(exporter))
    return provider.get_tracer("test")


class TestTracerConfiguration:
    """Tests for sampler, exporter and provider construction."""

    def test_sampler_selection(self):
        assert setup._get_sampler("always_on", 1.0) is ALWAYS_ON
        assert setup._get_sampler("always_off", 1.0) is ALWAYS_OFF
        assert isinstance(setup._get_sampler("traceidratio", 0.5), TraceIdRatioBased)
        assert setup._get_sampler("bogus", 1.0) is ALWAYS_ON

    def test_console_exporter(self):
        assert isinstance(setup._create_exporter("console", "", ""), ConsoleSpanExporter)
        assert isinstance(setup._create_exporter("bogus", "", ""), ConsoleSpanExporter)

    def test_resource_names_meter(self, test_settings):
        provider = build_tracer_provider(test_settings)

        attributes = provider.resource.attributes
        assert attributes["service.name"] == test_settings.otel_service_name
        assert attributes["boundary.org_id"] == "org1"
        assert attributes["boundary.meter_name"] == "host-a"
        provider.shutdown()


class TestSetup:
    """Tests for installing and shutting down tracing."""

    def test_disabled_by_default(self, test_settings):
        setup_telemetry(test_settings)

        assert setup._tracer_provider is None

    def test_enabled_then_shutdown(self, test_settings):
        test_settings.otel_enabled = True
        with patch.object(setup.trace, "set_tracer_provider") as set_provider:
            setup_telemetry(test_settings)

        assert setup._tracer_provider is not None
        set_provider.assert_called_once_with(setup._tracer_provider)

        shutdown_telemetry()

        assert setup._tracer_provider is None


class TestRequestSpan:
    """Tests for request spans."""

    def test_records_request_attributes(self, tracer, exporter):
        with request_span(tracer, "GET", "https://api.example.com/org1/meters") as span:
            record_status(span, 200)

        (finished,) = exporter.get_finished_spans()
        assert finished.name == REQUEST_SPAN
        assert finished.attributes["http.method"] == "GET"
        assert finished.attributes["http.url"] == "https://api.example.com/org1/meters"
        assert finished.attributes["http.status_code"] == 200
        assert finished.status.status_code != StatusCode.ERROR

    def test_non_2xx_marks_error(self, tracer, exporter):
        with request_span(tracer, "DELETE", "https://api.example.com/org1/meters/42") as span:
            record_status(span, 404)

        (finished,) = exporter.get_finished_spans()
        assert finished.status.status_code == StatusCode.ERROR

    def test_exception_marks_error(self, tracer, exporter):
        with pytest.raises(RuntimeError):
            with request_span(tracer, "GET", "https://api.example.com/org1/meters"):
                raise RuntimeError("connection reset")

        (finished,) = exporter.get_finished_spans()
        assert finished.status.status_code == StatusCode.ERROR
