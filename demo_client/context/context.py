"""Context helpers for managing the active span - using OpenTelemetry directly."""

from contextvars import Token
from typing import Any, Optional

from opentelemetry.trace import get_current_span as otel_get_current_span
from opentelemetry.trace import NonRecordingSpan, TraceFlags, TraceState, set_span_in_context
from opentelemetry.trace import SpanContext as OTelSpanContext
from opentelemetry import context as context_api

from demo_client.tracer.span_context import SpanContext
from demo_client.utils.helpers import format_span_id, format_trace_id, parse_span_id, parse_trace_id


def get_current_span_context() -> Optional[SpanContext]:
    """
    Return the context of the currently active span, if any.
    
    Works for any span made current through the OpenTelemetry context API,
    not only spans created by this package.
    """
    otel_context = otel_get_current_span().get_span_context()
    if not otel_context.is_valid:
        return None
    return SpanContext(
        trace_id=format_trace_id(otel_context.trace_id),
        span_id=format_span_id(otel_context.span_id),
        trace_flags=1 if otel_context.trace_flags.sampled else 0,
    )


def context_with_span(span_context: SpanContext) -> context_api.Context:
    """Return an OTel context whose current span carries ``span_context``."""
    trace_state = TraceState.from_header([span_context.trace_state]) if span_context.trace_state else TraceState()
    otel_context = OTelSpanContext(
        trace_id=parse_trace_id(span_context.trace_id),
        span_id=parse_span_id(span_context.span_id),
        is_remote=False,
        trace_flags=TraceFlags(span_context.trace_flags),
        trace_state=trace_state,
    )
    return set_span_in_context(NonRecordingSpan(otel_context))


def push_span(span: Any) -> Token:
    """
    Make a span current.
    
    Accepts a demo_client Span or a raw OpenTelemetry span.
    
    Returns:
        Token needed to restore the previous state
    """
    otel_span = getattr(span, "_otel_span", span)
    return context_api.attach(set_span_in_context(otel_span))


def pop_span(token: Token) -> None:
    """
    Restore the previous span context using the provided token.
    
    Args:
        token: Token returned by push_span()
    """
    context_api.detach(token)
