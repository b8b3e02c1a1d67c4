"""Tracer using OpenTelemetry SDK."""

from __future__ import annotations

from typing import Any, Dict, Optional, TYPE_CHECKING

from opentelemetry import context as context_api
from opentelemetry.trace import SpanKind, get_current_span
from opentelemetry.trace import Tracer as OTelTracer

from demo_client.tracer.span import Span
from demo_client.utils.helpers import format_span_id

if TYPE_CHECKING:
    from demo_client.tracer.provider import TracerProvider


class Tracer:
    """
    Tracer wrapper that uses OpenTelemetry Tracer internally.

    Handles are issued by TracerProvider.get_tracer() and bound to one
    instrumentation scope name.
    """

    def __init__(self, provider: "TracerProvider", instrumentation_scope: str):
        """
        Initialize tracer with OpenTelemetry Tracer.

        Args:
            provider: TracerProvider instance
            instrumentation_scope: Instrumentation scope name
        """
        self._provider = provider
        self.instrumentation_scope = instrumentation_scope
        self._otel_tracer: OTelTracer = provider._otel_provider.get_tracer(instrumentation_scope)

    def start_span(
        self,
        name: str,
        attributes: Optional[Dict[str, Any]] = None,
        kind: SpanKind = SpanKind.INTERNAL,
        context: Optional[context_api.Context] = None,
    ) -> Span:
        """
        Start a new span.

        Args:
            name: Span name
            attributes: Optional attributes dictionary
            kind: OTel span kind
            context: Parent OTel context; the current context when None.
                Pass an empty ``Context()`` to start a new trace.

        Returns:
            Span instance (wraps OTel Span)
        """
        parent = get_current_span(context)
        parent_context = parent.get_span_context()
        parent_span_id = format_span_id(parent_context.span_id) if parent_context.is_valid else None

        otel_span = self._otel_tracer.start_span(
            name=name,
            context=context,
            kind=kind,
            attributes=attributes,
        )
        return Span(otel_span, self, parent_span_id)

    def start_as_current_span(
        self,
        name: str,
        attributes: Optional[Dict[str, Any]] = None,
        kind: SpanKind = SpanKind.INTERNAL,
        context: Optional[context_api.Context] = None,
    ) -> Span:
        """
        Start a span to be used as a context manager.

        The span becomes current on ``__enter__`` and ends on ``__exit__``.
        """
        return self.start_span(name=name, attributes=attributes, kind=kind, context=context)

    def _run_enrichment_processors(self, span: Span) -> None:
        """
        Run enrichment processors before span ends.

        Called by Span.end() before the OTel span is ended.
        """
        for processor in self._provider._enrichment_processors:
            try:
                processor.on_end(span)
            except Exception:
                # Processors should not crash tracing
                pass
