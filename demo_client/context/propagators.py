"""W3C trace context propagation using OpenTelemetry's standard propagators."""

from __future__ import annotations

from typing import Dict, MutableMapping, Optional

from opentelemetry import context as context_api
from opentelemetry.propagate import set_global_textmap
from opentelemetry.propagators.textmap import TextMapPropagator
from opentelemetry.trace import get_current_span
from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator

from demo_client.context.context import context_with_span
from demo_client.tracer.span_context import SpanContext
from demo_client.utils.helpers import format_trace_id, format_span_id

TRACEPARENT_HEADER = "traceparent"
TRACESTATE_HEADER = "tracestate"


def build_propagator() -> TextMapPropagator:
    """Return the W3C Trace Context propagator used for outbound requests."""
    return TraceContextTextMapPropagator()


def register_global_propagator(propagator: Optional[TextMapPropagator] = None) -> TextMapPropagator:
    """
    Install a propagator as the process-wide OTel text map propagator.

    Re-registering replaces the previous propagator.
    """
    propagator = propagator or build_propagator()
    set_global_textmap(propagator)
    return propagator


def inject(
    carrier: MutableMapping[str, str],
    context: Optional[context_api.Context] = None,
    propagator: Optional[TextMapPropagator] = None,
) -> MutableMapping[str, str]:
    """
    Write the trace context into a carrier (e.g. request headers).

    Uses the current context when none is given. Nothing is written when
    there is no valid span in the context. Returns the carrier.
    """
    propagator = propagator or build_propagator()
    propagator.inject(carrier, context=context)
    return carrier


def extract(
    carrier: Dict[str, str],
    propagator: Optional[TextMapPropagator] = None,
) -> context_api.Context:
    """
    Read trace context from a carrier.

    Returns an OTel context usable as the parent for Tracer.start_span().
    """
    propagator = propagator or build_propagator()
    return propagator.extract(carrier)


def format_traceparent(context: SpanContext) -> str:
    """Format the traceparent header value for a span context."""
    carrier: Dict[str, str] = {}
    inject(carrier, context=context_with_span(context))
    return carrier.get(TRACEPARENT_HEADER, "")


def parse_traceparent(header_value: str, tracestate: Optional[str] = None) -> Optional[SpanContext]:
    """
    Parse a traceparent header into a SpanContext.

    Returns None for a missing or malformed header.
    """
    if not header_value:
        return None
    carrier = {TRACEPARENT_HEADER: header_value}
    if tracestate:
        carrier[TRACESTATE_HEADER] = tracestate
    otel_context = get_current_span(extract(carrier)).get_span_context()
    if not otel_context.is_valid:
        return None
    return SpanContext(
        trace_id=format_trace_id(otel_context.trace_id),
        span_id=format_span_id(otel_context.span_id),
        trace_flags=1 if otel_context.trace_flags.sampled else 0,
        trace_state=otel_context.trace_state.to_header() or None,
    )
