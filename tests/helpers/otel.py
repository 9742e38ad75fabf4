"""OpenTelemetry test helper functions."""

from typing import TYPE_CHECKING

from opentelemetry.trace import StatusCode

if TYPE_CHECKING:
    from opentelemetry.sdk.trace import ReadableSpan
    from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter


def get_recorded_spans(exporter: "InMemorySpanExporter") -> list["ReadableSpan"]:
    """Get all finished spans from the exporter."""
    return list(exporter.get_finished_spans())


def spans_by_name(exporter: "InMemorySpanExporter") -> dict[str, "ReadableSpan"]:
    """Index finished spans by name (the last span wins for repeated names)."""
    return {span.name: span for span in exporter.get_finished_spans()}


def assert_span_status(
    span: "ReadableSpan",
    expected_status: StatusCode,
    *,
    check_exception: bool = False,
) -> None:
    """
    Assert span status and optionally verify an exception event was recorded.

    Args:
        span: ReadableSpan to check
        expected_status: Expected StatusCode (OK or ERROR)
        check_exception: If True, verify an exception event exists when status is ERROR
    """
    assert span.status.status_code == expected_status, (
        f"Expected span status {expected_status}, got {span.status.status_code}"
    )

    if check_exception and expected_status == StatusCode.ERROR:
        exception_events = [e for e in span.events if e.name == "exception"]
        assert len(exception_events) >= 1, "Expected exception event in ERROR span"
