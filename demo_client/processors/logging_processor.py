"""Span processor that logs spans when they end."""

from __future__ import annotations

import logging
from typing import Optional

from demo_client.tracer.provider import SpanProcessor


class LoggingSpanProcessor(SpanProcessor):
    """Logs a span summary on end, with decimal ids for log correlation."""

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger or logging.getLogger("demo_client.traces")

    def on_end(self, span) -> None:
        self.logger.info(
            "[trace] name=%s status=%s duration_ns=%s events=%d attrs=%s",
            span.name,
            span.status.name,
            span.duration_ns,
            len(span.events),
            span.attributes,
            extra={
                "trace_id": span.context.decimal_trace_id,
                "span_id": span.context.decimal_span_id,
            },
        )

    def shutdown(self) -> None:
        return None

    def force_flush(self, timeout: Optional[float] = None) -> None:
        return None
