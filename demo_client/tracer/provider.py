"""TracerProvider using OpenTelemetry SDK."""

from __future__ import annotations

import threading
import time
from typing import Any, Dict, List, Optional

from opentelemetry.sdk.resources import Resource as OTelResource
from opentelemetry.sdk.trace import SpanProcessor as OTelSpanProcessor
from opentelemetry.sdk.trace import TracerProvider as OTelTracerProvider
from opentelemetry.sdk.trace.sampling import ALWAYS_ON, Sampler


class SpanProcessor:
    """
    Base span processor interface for enrichment processors.

    Enrichment processors run BEFORE span.end() (span is mutable).
    Export processors use OTel's SpanProcessor interface (run AFTER span.end()).
    """

    def on_end(self, span) -> None:
        """
        Called when a span ends.

        Note: This is called BEFORE the OTel span ends, so the span is still mutable.
        You can call span.set_attribute() here.

        Args:
            span: demo_client Span instance (mutable)
        """
        pass

    def shutdown(self) -> None:
        """Shutdown the processor."""
        pass

    def force_flush(self, timeout: Optional[float] = None) -> None:
        """Force flush any pending spans."""
        pass


class TracerProvider:
    """
    TracerProvider using OpenTelemetry SDK.

    Owns the sampling policy, the resource and the span processors, and
    issues named Tracer handles. Sampling defaults to always-on: every span
    is recorded and exported.
    """

    def __init__(
        self,
        resource: Optional[OTelResource] = None,
        sampler: Sampler = ALWAYS_ON,
    ) -> None:
        """
        Initialize TracerProvider with OpenTelemetry.

        Args:
            resource: Resource attached to every exported span
            sampler: OTel sampler, defaults to ALWAYS_ON
        """
        self.resource = resource or OTelResource.create({})
        self.sampler = sampler
        # Shutdown is owned by stop_tracing(), not by an atexit hook
        self._otel_provider = OTelTracerProvider(
            sampler=sampler,
            resource=self.resource,
            shutdown_on_exit=False,
        )

        # Separate enrichment vs export processors
        self._enrichment_processors: List[SpanProcessor] = []
        self._export_processors: List[OTelSpanProcessor] = []

        self._tracers: Dict[str, Any] = {}
        self._lock = threading.Lock()
        self._shutdown = False

    def get_tracer(self, name: str) -> "Tracer":
        """
        Get a tracer by name.

        Repeated calls with the same name return the same handle.
        """
        with self._lock:
            tracer = self._tracers.get(name)
            if tracer is None:
                from demo_client.tracer.tracer import Tracer
                tracer = Tracer(self, name)
                self._tracers[name] = tracer
            return tracer

    def add_span_processor(self, processor: Any) -> None:
        """
        Add a span processor.

        OTel-compatible processors receive finished ReadableSpans; anything
        else is treated as an enrichment processor.
        """
        if isinstance(processor, OTelSpanProcessor):
            self._otel_provider.add_span_processor(processor)
            self._export_processors.append(processor)
        else:
            self._enrichment_processors.append(processor)

    def force_flush(self, timeout: Optional[float] = None) -> bool:
        """Force flush all processors. Returns False if any flush timed out."""
        timeout_millis = int(timeout * 1000) if timeout is not None else 30000
        flushed = self._otel_provider.force_flush(timeout_millis=timeout_millis)

        for processor in self._enrichment_processors:
            try:
                processor.force_flush(timeout=timeout)
            except Exception:
                pass
        return flushed

    def shutdown(self, timeout: Optional[float] = None) -> bool:
        """
        Shutdown the provider and all processors.

        With a timeout, the whole shutdown is bounded by it; spans still
        buffered at the deadline are dropped. Returns False in that case.
        Calling shutdown more than once is a no-op.
        """
        if self._shutdown:
            return True
        self._shutdown = True

        from demo_client.processors.batch_processor import BatchSpanProcessor

        deadline = time.monotonic() + timeout if timeout is not None else None
        completed = True
        for processor in self._export_processors:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            if isinstance(processor, BatchSpanProcessor):
                completed = processor.shutdown(timeout=remaining) and completed
            else:
                processor.shutdown()

        for processor in self._enrichment_processors:
            try:
                processor.shutdown()
            except Exception:
                pass
        return completed

    @property
    def is_shutdown(self) -> bool:
        return self._shutdown
