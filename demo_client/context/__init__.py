"""Context utilities for the demo client."""

from demo_client.context.context import context_with_span, get_current_span_context, pop_span, push_span
from demo_client.context.propagators import (
    build_propagator,
    extract,
    format_traceparent,
    inject,
    parse_traceparent,
    register_global_propagator,
)

__all__ = [
    "context_with_span",
    "get_current_span_context",
    "push_span",
    "pop_span",
    "build_propagator",
    "register_global_propagator",
    "inject",
    "extract",
    "format_traceparent",
    "parse_traceparent",
]
