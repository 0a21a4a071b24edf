"""Tests for telemetry setup and span helpers."""

from unittest.mock import Mock

import pytest
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.trace import SpanKind, StatusCode

from chattrace.telemetry import Telemetry, _traces_url, traced_span


class TestTelemetry:
    """Test building and shutting down tracer providers."""

    def test_service_name_resource(self, telemetry, tracer, span_exporter):
        """Test that spans carry the configured service name."""
        with tracer.start_as_current_span("work"):
            pass

        (span,) = span_exporter.get_finished_spans()
        assert span.resource.attributes["service.name"] == "chattrace-tests"

    def test_otlp_exporter_is_batched(self):
        """Test that an OTLP endpoint adds a batch processor."""
        telemetry = Telemetry.create(otlp_endpoint="http://collector:4318")
        try:
            processors = telemetry.provider._active_span_processor._span_processors
            assert any(isinstance(p, BatchSpanProcessor) for p in processors)
        finally:
            telemetry.shutdown()

    def test_no_exporters(self):
        """Test that a provider without exporters still hands out tracers."""
        with Telemetry.create() as telemetry:
            with telemetry.tracer().start_as_current_span("unexported") as span:
                assert span.is_recording()

    def test_shutdown_is_idempotent(self):
        """Test that shutting down twice only shuts the provider down once."""
        provider = Mock()
        telemetry = Telemetry(provider)

        telemetry.shutdown()
        telemetry.shutdown()

        provider.force_flush.assert_called_once()
        provider.shutdown.assert_called_once()

    def test_providers_are_isolated(self, span_exporter):
        """Test that separate telemetry instances do not share spans."""
        other_exporter = InMemorySpanExporter()
        with Telemetry.create(exporter=other_exporter) as other:
            with other.tracer().start_as_current_span("other"):
                pass

        assert [s.name for s in other_exporter.get_finished_spans()] == ["other"]
        assert span_exporter.get_finished_spans() == ()

    @pytest.mark.parametrize(
        "endpoint, expected",
        [
            ("http://localhost:4318", "http://localhost:4318/v1/traces"),
            ("http://localhost:4318/", "http://localhost:4318/v1/traces"),
            ("http://collector/v1/traces", "http://collector/v1/traces"),
        ],
    )
    def test_traces_url(self, endpoint, expected):
        """Test deriving the OTLP traces URL from a collector endpoint."""
        assert _traces_url(endpoint) == expected


class TestTracedSpan:
    """Test the traced span helper."""

    def test_success_sets_ok(self, tracer, span_exporter):
        """Test that a completed block ends with OK status."""
        with traced_span(tracer, "ok", kind=SpanKind.CLIENT, attributes={"sample": "weather"}) as span:
            span.set_attribute("extra", 1)

        (finished,) = span_exporter.get_finished_spans()
        assert finished.status.status_code == StatusCode.OK
        assert finished.kind == SpanKind.CLIENT
        assert finished.attributes["sample"] == "weather"
        assert finished.attributes["extra"] == 1

    def test_exception_sets_error_and_reraises(self, tracer, span_exporter):
        """Test that an escaping exception is recorded and re-raised."""
        with pytest.raises(KeyError):
            with traced_span(tracer, "failing"):
                raise KeyError("city")

        (finished,) = span_exporter.get_finished_spans()
        assert finished.status.status_code == StatusCode.ERROR
        assert finished.status.description == "KeyError: 'city'"
        assert [event.name for event in finished.events] == ["exception"]

    def test_nested_spans(self, tracer, span_exporter):
        """Test that spans opened inside a traced span become its children."""
        with traced_span(tracer, "parent") as parent:
            with traced_span(tracer, "child"):
                pass

        child = next(s for s in span_exporter.get_finished_spans() if s.name == "child")
        assert child.parent.span_id == parent.get_span_context().span_id
