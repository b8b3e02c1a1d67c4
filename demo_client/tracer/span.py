"""Span implementation - minimal wrapper around OpenTelemetry Span."""

from __future__ import annotations

import time
from enum import Enum
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from opentelemetry.trace import Span as OTelSpan, Status, StatusCode

from demo_client.tracer.span_context import SpanContext
from demo_client.utils.helpers import format_span_id, format_trace_id

if TYPE_CHECKING:
    from demo_client.tracer.tracer import Tracer


class SpanStatus(Enum):
    UNSET = 0
    OK = 1
    ERROR = 2


_OTEL_STATUS_CODES = {
    SpanStatus.UNSET: StatusCode.UNSET,
    SpanStatus.OK: StatusCode.OK,
    SpanStatus.ERROR: StatusCode.ERROR,
}


class Span:
    """
    Minimal wrapper around OpenTelemetry Span.

    Mirrors attributes, events and status locally so callers can inspect a
    span while it is live; the OTel span is what gets exported.
    """

    def __init__(
        self,
        otel_span: OTelSpan,
        tracer: "Tracer",
        parent_span_id: Optional[str] = None,
    ) -> None:
        """
        Initialize span wrapper.

        Args:
            otel_span: OpenTelemetry Span instance
            tracer: Tracer that started the span
            parent_span_id: Parent span ID (hex string), None for a root span
        """
        self._otel_span = otel_span
        self.tracer = tracer
        self.parent_span_id = parent_span_id
        self._ended = False
        self._activation_token = None

        otel_context = otel_span.get_span_context()
        self.context = SpanContext(
            trace_id=format_trace_id(otel_context.trace_id),
            span_id=format_span_id(otel_context.span_id),
            trace_flags=1 if otel_context.trace_flags.sampled else 0,
            trace_state=self._format_trace_state(otel_context.trace_state),
        )

        self.name = getattr(otel_span, 'name', 'unknown')
        self.start_time_ns = time.time_ns()
        self.end_time_ns: Optional[int] = None

        self.status = SpanStatus.UNSET
        self.status_description: Optional[str] = None

        self._attributes: Dict[str, Any] = dict(getattr(otel_span, 'attributes', None) or {})
        self._events: List[Dict[str, Any]] = []

    def _format_trace_state(self, trace_state) -> Optional[str]:
        """Format OTel TraceState to W3C string format."""
        if not trace_state:
            return None
        items = [f"{key}={value}" for key, value in trace_state.items()]
        return ",".join(items) if items else None

    @property
    def attributes(self) -> Dict[str, Any]:
        """Attributes set on the span so far."""
        return self._attributes

    @property
    def events(self) -> List[Dict[str, Any]]:
        """Events recorded on the span, in order."""
        return list(self._events)

    @property
    def duration_ns(self) -> Optional[int]:
        """Get span duration in nanoseconds."""
        if self.end_time_ns is None:
            return None
        return self.end_time_ns - self.start_time_ns

    def set_attribute(self, key: str, value: Any) -> None:
        """Set an attribute on the span."""
        if self._ended:
            return
        self._attributes[key] = value
        self._otel_span.set_attribute(key, value)

    def add_event(
        self,
        name: str,
        attributes: Optional[Dict[str, Any]] = None,
        timestamp_ns: Optional[int] = None,
    ) -> None:
        """Add a timestamped event to the span."""
        if self._ended:
            return
        timestamp_ns = timestamp_ns or time.time_ns()
        self._events.append({
            "name": name,
            "attributes": dict(attributes or {}),
            "timestamp_ns": timestamp_ns,
        })
        self._otel_span.add_event(name=name, attributes=attributes, timestamp=timestamp_ns)

    def record_exception(self, error: BaseException) -> None:
        """Record an exception event on the span and mark it as failed."""
        if self._ended:
            return
        self._events.append({
            "name": "exception",
            "attributes": {
                "exception.type": type(error).__name__,
                "exception.message": str(error),
            },
            "timestamp_ns": time.time_ns(),
        })
        self._otel_span.record_exception(error)
        self.set_status(SpanStatus.ERROR, str(error))

    def set_status(self, status: SpanStatus, description: Optional[str] = None) -> None:
        """Set the span status."""
        if self._ended:
            return
        self.status = status
        self.status_description = description
        # OTel only keeps a description for ERROR
        if status != SpanStatus.ERROR:
            description = None
        self._otel_span.set_status(Status(status_code=_OTEL_STATUS_CODES[status], description=description))

    def end(self) -> None:
        """
        End the span.

        Enrichment processors run BEFORE the OTel span ends (span is still mutable).
        Export processors run AFTER the OTel span ends (OTel calls them on the ReadableSpan).
        Ending twice is a no-op.
        """
        if self._ended:
            return

        self.end_time_ns = time.time_ns()
        if self.status == SpanStatus.UNSET:
            self.set_status(SpanStatus.OK)

        self.tracer._run_enrichment_processors(self)

        self._otel_span.end(end_time=self.end_time_ns)
        self._ended = True

    def __enter__(self) -> "Span":
        """Make the span current for the duration of the block."""
        from demo_client.context.context import push_span

        self._activation_token = push_span(self)
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        """Record any escaping exception, end the span and restore the previous context."""
        from demo_client.context.context import pop_span

        try:
            if exc:
                self.record_exception(exc)
            self.end()
        finally:
            if self._activation_token:
                pop_span(self._activation_token)
                self._activation_token = None
        return False
