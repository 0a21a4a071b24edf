"""Logging setup with trace correlation.

Every record handled by the root handler is stamped with the trace and span id
of the span that is current when the record is emitted, so a log line can be
matched to the span it was written under.
"""

import logging
import os
import sys

from opentelemetry import trace
from opentelemetry.trace.span import format_span_id, format_trace_id
from pydantic import BaseModel

NO_TRACE = "-"


class LogConfig(BaseModel):
    """How the sample programs log."""

    level: str = "INFO"
    format: str = "%(asctime)s %(levelname)-7s %(name)s [trace=%(trace_id)s span=%(span_id)s] %(message)s"
    date_format: str = "%H:%M:%S"
    quiet_loggers: tuple[str, ...] = ("anthropic", "httpx", "opentelemetry")

    @classmethod
    def from_env(cls) -> "LogConfig":
        return cls(level=os.getenv("LOG_LEVEL", "INFO"))


class SpanContextFilter(logging.Filter):
    """Adds ``trace_id`` and ``span_id`` of the current span to each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        context = trace.get_current_span().get_span_context()
        if context.is_valid:
            record.trace_id = format_trace_id(context.trace_id)
            record.span_id = format_span_id(context.span_id)
        else:
            record.trace_id = NO_TRACE
            record.span_id = NO_TRACE
        return True


def setup_logging(config: LogConfig | None = None) -> None:
    """Route logging to stderr so sample output on stdout stays clean."""
    config = config or LogConfig.from_env()

    logging.basicConfig(
        level=config.level.upper(),
        format=config.format,
        datefmt=config.date_format,
        stream=sys.stderr,
        force=True,
    )
    # Handler filters see records propagated from every module logger
    for handler in logging.getLogger().handlers:
        handler.addFilter(SpanContextFilter())

    for name in config.quiet_loggers:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str, level: str | None = None) -> logging.Logger:
    """Get a module logger.

    Args:
        name: Module name (typically __name__)
        level: Explicit level, defaults to the LOG_LEVEL environment variable
    """
    logger = logging.getLogger(name)
    logger.setLevel((level or os.getenv("LOG_LEVEL", "INFO")).upper())
    return logger
