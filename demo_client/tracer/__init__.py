"""Tracer components for the demo client."""

from demo_client.tracer.provider import SpanProcessor, TracerProvider
from demo_client.tracer.span import Span, SpanStatus
from demo_client.tracer.span_context import SpanContext
from demo_client.tracer.tracer import Tracer

__all__ = [
    "Span",
    "SpanStatus",
    "SpanContext",
    "Tracer",
    "TracerProvider",
    "SpanProcessor",
]
