"""Log correlation: stamp log records with decimal trace and span ids.

Record stamping is done by ``opentelemetry-instrumentation-logging``: its
record factory sets hex ``otelTraceID``/``otelSpanID`` on every record made
inside a span, and the log hook installed here adds the decimal
``trace_id``/``span_id`` fields that the log format prints.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from opentelemetry import context as context_api
from opentelemetry.instrumentation.logging import LoggingInstrumentor

from demo_client.context.context import context_with_span
from demo_client.utils.helpers import convert_trace_id, format_span_id, format_trace_id

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] [trace_id=%(trace_id)s span_id=%(span_id)s] %(message)s"
# Records made outside any span have no correlation fields
LOG_FORMAT_DEFAULTS = {"trace_id": "", "span_id": ""}


def correlation_fields(span: Any) -> dict:
    """Decimal ``trace_id``/``span_id`` for a demo_client Span (or its SpanContext)."""
    context = getattr(span, "context", span)
    return {
        "trace_id": convert_trace_id(context.trace_id),
        "span_id": convert_trace_id(context.span_id),
    }


def stamp_decimal_ids(span, record: logging.LogRecord) -> None:
    """LoggingInstrumentor log hook: decimal ids of the span current at log time."""
    context = span.get_span_context()
    record.trace_id = convert_trace_id(format_trace_id(context.trace_id))
    record.span_id = convert_trace_id(format_span_id(context.span_id))


class CorrelationAdapter(logging.LoggerAdapter):
    """
    Logger adapter bound to one span.

    Records are emitted with the span made current, so the logging
    instrumentation stamps that span's ids even when another span is active.
    Without the instrumentation the ids are passed as ``extra`` instead.
    The caller's own ``extra`` is kept in both cases.
    """

    def __init__(self, logger: logging.Logger, span: Any) -> None:
        super().__init__(logger, correlation_fields(span))
        self._context = context_with_span(getattr(span, "context", span))

    def process(self, msg, kwargs):
        if not LoggingInstrumentor().is_instrumented_by_opentelemetry:
            kwargs["extra"] = {**self.extra, **(kwargs.get("extra") or {})}
        return msg, kwargs

    def log(self, level, msg, *args, **kwargs):
        token = context_api.attach(self._context)
        try:
            super().log(level, msg, *args, **kwargs)
        finally:
            context_api.detach(token)


def with_correlation(span: Any, logger: logging.Logger) -> CorrelationAdapter:
    """
    Return a logger that adds the span's decimal ids to every record.

    Example:
        log = with_correlation(span, logger)
        log.info("request finished", extra={"url": url})
    """
    return CorrelationAdapter(logger, span)


def configure_logging(level: int = logging.INFO, handler: Optional[logging.Handler] = None) -> logging.Handler:
    """
    Instrument logging and install a root handler printing correlation ids.

    Instrumenting twice is a no-op; the first hook stays in place.
    """
    LoggingInstrumentor().instrument(log_hook=stamp_decimal_ids, set_logging_format=False)
    handler = handler or logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT, defaults=LOG_FORMAT_DEFAULTS))
    root = logging.getLogger()
    root.addHandler(handler)
    root.setLevel(level)
    return handler
