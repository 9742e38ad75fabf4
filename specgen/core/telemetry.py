"""Tracing for generation runs.

Each run is one ``generation.run`` span with a child span per stage, so a
slow or failing build shows where the time went. Tracing is off unless
OTEL_ENABLED is set; spans are then exported over OTLP/HTTP when a traces
endpoint is configured.
"""

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING

import structlog
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.trace import SpanKind, Status, StatusCode

from specgen import __version__
from specgen.core.config import Settings, settings

if TYPE_CHECKING:
    from opentelemetry.trace.span import Span

logger = structlog.get_logger(__name__)

TRACER_NAME = "specgen"

_tracer_provider: TracerProvider | None = None
_provider_lock = threading.Lock()

# Primitive span attribute values; the stages only record scalars
SpanAttribute = str | int | float | bool


def get_tracer_provider() -> TracerProvider | None:
    """Return the process-wide provider, creating it on first use. None when tracing is off."""
    if not settings.OTEL_ENABLED:
        return None

    global _tracer_provider  # noqa: PLW0603  # Created once per process
    with _provider_lock:
        if _tracer_provider is None:
            _tracer_provider = _build_provider(settings)
    return _tracer_provider


def _build_provider(source: Settings) -> TracerProvider:
    provider = TracerProvider(
        resource=Resource.create({SERVICE_NAME: source.OTEL_SERVICE_NAME, SERVICE_VERSION: __version__})
    )

    endpoint = source.OTEL_EXPORTER_OTLP_TRACES_ENDPOINT
    if not endpoint:
        logger.warning("otel_no_traces_endpoint_configured", message="spans are recorded but not exported")
        return provider

    exporter = OTLPSpanExporter(endpoint=endpoint, headers=parse_otlp_headers(source.OTEL_EXPORTER_OTLP_HEADERS))
    provider.add_span_processor(BatchSpanProcessor(exporter))
    logger.info("otel_tracer_provider_created", endpoint=endpoint, service_name=source.OTEL_SERVICE_NAME)
    return provider


def parse_otlp_headers(raw: str | None) -> dict[str, str]:
    """
    Parse OTEL_EXPORTER_OTLP_HEADERS (``key=value`` pairs separated by commas).

    Entries without ``=`` are skipped with a warning. Values may themselves
    contain ``=``.
    """
    headers: dict[str, str] = {}
    for entry in (raw or "").split(","):
        entry = entry.strip()  # noqa: PLW2901
        if not entry:
            continue
        key, separator, value = entry.partition("=")
        if not separator:
            logger.warning("otel_malformed_header", pair=entry)
            continue
        headers[key.strip()] = value.strip()
    return headers


def set_tracer_provider() -> None:
    """Install the provider globally when tracing is enabled."""
    provider = get_tracer_provider()
    if provider is not None:
        trace.set_tracer_provider(provider)


def shutdown_tracer_provider() -> None:
    """Flush pending spans before the process exits. No-op when no provider was created."""
    global _tracer_provider  # noqa: PLW0603
    with _provider_lock:
        provider, _tracer_provider = _tracer_provider, None
    if provider is not None:
        provider.shutdown()
        logger.info("otel_tracer_provider_shutdown")


@contextmanager
def stage_span(
    name: str,
    peer: str | None = None,
    kind: SpanKind = SpanKind.INTERNAL,
    **attributes: SpanAttribute,
) -> Iterator["Span"]:
    """
    Trace one stage of a generation run.

    The span ends with status OK when the block completes. If the block
    raises, the SDK records the exception and marks the span as an error.

    Args:
        name: Span name, e.g. "generation.fetch"
        peer: Remote side of the stage, recorded as ``peer.service``
        kind: CLIENT for calls to the target application, INTERNAL otherwise
        **attributes: Extra span attributes
    """
    if peer is not None:
        attributes["peer.service"] = peer
    # Looked up per call so a provider installed after import is used
    tracer = trace.get_tracer(TRACER_NAME, __version__)
    with tracer.start_as_current_span(name, kind=kind, attributes=attributes) as span:
        yield span
        span.set_status(Status(StatusCode.OK))
