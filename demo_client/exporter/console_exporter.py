"""Console exporter for developer visibility."""

from __future__ import annotations

import sys
from typing import Sequence

from opentelemetry.sdk.trace import ReadableSpan
from opentelemetry.sdk.trace.export import SpanExporter, SpanExportResult

from demo_client.utils.helpers import convert_trace_id, format_span_id, format_trace_id


class ConsoleExporter(SpanExporter):
    """Simple exporter that prints one line per span to stdout (or provided stream)."""

    def __init__(self, stream=None) -> None:
        self.stream = stream or sys.stdout

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        for span in spans:
            trace_id = format_trace_id(span.context.trace_id)
            span_id = format_span_id(span.context.span_id)
            duration_ns = None
            if span.end_time is not None and span.start_time is not None:
                duration_ns = span.end_time - span.start_time
            line = (
                f"[span] name={span.name} trace_id={trace_id} span_id={span_id} "
                f"trace_id_dec={convert_trace_id(trace_id)} span_id_dec={convert_trace_id(span_id)} "
                f"status={span.status.status_code.name} duration_ns={duration_ns}"
            )
            if span.attributes:
                line += f" attrs={dict(span.attributes)}"
            if span.events:
                line += f" events={[event.name for event in span.events]}"
            print(line, file=self.stream)
        return SpanExportResult.SUCCESS

    def shutdown(self) -> None:
        return None
