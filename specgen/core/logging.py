"""Logging setup shared by the CLI and the tests.

structlog events and plain stdlib records (httpx, uvicorn in the tests,
anything else) go through one ProcessorFormatter on a single stdout
handler. At DEBUG every line the target application prints is logged, so
that level renders JSON lines; other levels use the console renderer.
"""

import logging
import sys
from collections.abc import MutableMapping
from typing import Any

import structlog
from opentelemetry import trace

# Per-request client logs would drown out the readiness poller's own events
QUIET_LOGGERS = (
    "httpx",
    "httpcore",
    "urllib3",
    "opentelemetry.exporter.otlp.proto.http",
)


def _add_trace_ids(
    logger: logging.Logger, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """Attach the active span's trace and span ids, if one is recording."""
    span = trace.get_current_span()
    if span.is_recording():
        context = span.get_span_context()
        event_dict["trace_id"] = f"{context.trace_id:032x}"
        event_dict["span_id"] = f"{context.span_id:016x}"
    return event_dict


def _pre_chain() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        _add_trace_ids,
    ]


def _renderer(level: str) -> structlog.types.Processor:
    if level == "DEBUG":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())


def configure_logging(*, log_level: str = "INFO") -> None:
    """
    Route structlog and stdlib logging to stdout through one formatter.

    Replaces any handlers already on the root logger, so calling it again
    (e.g. after the CLI has parsed --log-level) reconfigures cleanly.

    Args:
        log_level: Level name, case-insensitive (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    level = log_level.upper()
    pre_chain = _pre_chain()

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, _renderer(level)],
        )
    )

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(logging.getLevelNamesMapping()[level])

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
