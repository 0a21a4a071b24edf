"""OpenTelemetry setup and span helpers.

The tracer provider is built explicitly by the caller and handed to the
components that need a tracer; it is never installed as the process-global
provider, so several providers (e.g. one per test) can coexist.
"""

from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from typing import Any

from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    ConsoleSpanExporter,
    SimpleSpanProcessor,
    SpanExporter,
)
from opentelemetry.trace import Span, SpanKind, Status, StatusCode, Tracer

from chattrace import __version__
from chattrace.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_OTLP_ENDPOINT = "http://localhost:4318"
TRACES_PATH = "/v1/traces"


def _traces_url(endpoint: str) -> str:
    """Return the OTLP/HTTP traces URL for a collector endpoint."""
    endpoint = endpoint.rstrip("/")
    if endpoint.endswith(TRACES_PATH):
        return endpoint
    return endpoint + TRACES_PATH


class Telemetry:
    """Owns a tracer provider for the lifetime of one process or test."""

    def __init__(self, provider: TracerProvider):
        self.provider = provider
        self._shutdown = False

    @classmethod
    def create(
        cls,
        service_name: str = "chattrace",
        otlp_endpoint: str | None = None,
        console: bool = False,
        exporter: SpanExporter | None = None,
    ) -> "Telemetry":
        """Build a tracer provider with the requested exporters.

        Args:
            service_name: Value of the ``service.name`` resource attribute
            otlp_endpoint: OTLP/HTTP collector endpoint, batch-exported when set
            console: Also print finished spans to stdout
            exporter: Extra exporter attached with a synchronous processor

        Returns:
            Telemetry wrapping the configured provider
        """
        provider = TracerProvider(resource=Resource.create({SERVICE_NAME: service_name}))

        if otlp_endpoint:
            url = _traces_url(otlp_endpoint)
            logger.info(f"Exporting spans over OTLP/HTTP to {url}")
            provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=url)))

        if console:
            provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))

        if exporter is not None:
            provider.add_span_processor(SimpleSpanProcessor(exporter))

        return cls(provider)

    def tracer(self, name: str = "chattrace") -> Tracer:
        """Get a tracer from this provider."""
        return self.provider.get_tracer(name, __version__)

    def shutdown(self) -> None:
        """Flush pending spans and shut the provider down. Safe to call twice."""
        if self._shutdown:
            return
        self._shutdown = True
        self.provider.force_flush()
        self.provider.shutdown()

    def __enter__(self) -> "Telemetry":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown()


@contextmanager
def traced_span(
    tracer: Tracer,
    name: str,
    kind: SpanKind = SpanKind.INTERNAL,
    attributes: Mapping[str, Any] | None = None,
) -> Iterator[Span]:
    """Run a block inside a current span that is closed on every exit path.

    The span ends with OK status when the block completes. When an exception
    escapes, it is recorded on the span, the status is set to ERROR and the
    exception is re-raised.
    """
    with tracer.start_as_current_span(
        name,
        kind=kind,
        attributes=attributes,
        record_exception=False,
        set_status_on_exception=False,
    ) as span:
        try:
            yield span
        except Exception as e:
            span.record_exception(e)
            span.set_status(Status(StatusCode.ERROR, f"{type(e).__name__}: {e}"))
            raise
        span.set_status(Status(StatusCode.OK))
