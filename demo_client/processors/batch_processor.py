"""Batching span processor with bounded queue and background flush."""

from __future__ import annotations

import logging
import threading
from collections import deque
from typing import Deque, List, Optional

from opentelemetry.context import Context
from opentelemetry.sdk.error_handler import GlobalErrorHandler
from opentelemetry.sdk.trace import ReadableSpan, SpanProcessor
from opentelemetry.sdk.trace import Span as SDKSpan
from opentelemetry.sdk.trace.export import SpanExporter, SpanExportResult

from demo_client.errors import ExportError
from demo_client.processors.drop_policy import DEFAULT_DROP_POLICY, DropPolicy

logger = logging.getLogger(__name__)


class BatchSpanProcessor(SpanProcessor):
    """
    Batch span processor that queues finished spans for export.

    Spans are buffered in a bounded queue and handed to the exporter from a
    background thread, either every ``schedule_delay_millis`` or as soon as
    a full batch is waiting. Export failures go to the OTel global error
    handler and never reach the code that ended the span.
    """

    def __init__(
        self,
        exporter: SpanExporter,
        *,
        max_queue_size: int = 2048,
        max_export_batch_size: int = 512,
        schedule_delay_millis: int = 5000,
        drop_policy: Optional[DropPolicy] = None,
    ) -> None:
        if max_export_batch_size > max_queue_size:
            raise ValueError("max_export_batch_size must not exceed max_queue_size")

        self.exporter = exporter
        self.max_queue_size = max_queue_size
        self.max_export_batch_size = max_export_batch_size
        self.schedule_delay = schedule_delay_millis / 1000.0
        self.drop_policy = drop_policy or DEFAULT_DROP_POLICY
        self.dropped_spans = 0

        self._queue: Deque[ReadableSpan] = deque()
        self._in_flight = 0
        self._flush_waiters: List[threading.Event] = []
        self._lock = threading.Lock()
        self._event = threading.Event()
        self._shutdown = False
        self._worker = threading.Thread(
            target=self._worker_loop, name="BatchSpanProcessorWorker", daemon=True
        )
        self._worker.start()

    def on_start(self, span: SDKSpan, parent_context: Optional[Context] = None) -> None:
        pass

    def on_end(self, span: ReadableSpan) -> None:
        """Queue a finished span. Ignored once the processor is shut down."""
        if self._shutdown:
            return
        if not span.context.trace_flags.sampled:
            return

        with self._lock:
            dropped = self.drop_policy.handle(self._queue, span, self.max_queue_size)
            queued = len(self._queue)
        if dropped:
            if not self.dropped_spans:
                logger.warning("Span queue is full (max_queue_size=%d), dropping spans", self.max_queue_size)
            self.dropped_spans += dropped
        if queued >= self.max_export_batch_size:
            self._event.set()

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        """
        Export everything queued so far.

        Returns False if the flush did not finish within ``timeout_millis``.
        """
        waiter = threading.Event()
        with self._lock:
            if self._shutdown:
                return False
            self._flush_waiters.append(waiter)
        self._event.set()
        return waiter.wait(timeout_millis / 1000.0)

    def shutdown(self, timeout: Optional[float] = None) -> bool:
        """
        Flush the queue, shut the exporter down and stop the worker.

        Waits at most ``timeout`` seconds (forever when None). If the deadline
        passes first, the remaining spans are dropped, the drop is reported
        through the global error handler and False is returned.
        """
        with self._lock:
            if self._shutdown:
                return True
            self._shutdown = True
        self._event.set()
        self._worker.join(timeout=timeout)

        if self._worker.is_alive():
            with self._lock:
                pending = len(self._queue) + self._in_flight
            with GlobalErrorHandler():
                raise ExportError(
                    "Span processor shutdown deadline exceeded, buffered spans dropped",
                    details={"timeout": timeout, "dropped": pending},
                )
            return False
        return True

    # Internal
    def _worker_loop(self) -> None:
        """Background worker that periodically flushes spans."""
        while not self._shutdown:
            self._event.wait(timeout=self.schedule_delay)
            self._event.clear()
            self._flush_all()
        self._flush_all()
        with GlobalErrorHandler():
            self.exporter.shutdown()

    def _flush_all(self) -> None:
        with self._lock:
            waiters, self._flush_waiters = self._flush_waiters, []
        while self._flush_once():
            pass
        for waiter in waiters:
            waiter.set()

    def _flush_once(self) -> bool:
        """Flush one batch of spans."""
        spans = self._drain_queue(self.max_export_batch_size)
        if not spans:
            return False
        try:
            self._export(spans)
        finally:
            with self._lock:
                self._in_flight = 0
        return True

    def _drain_queue(self, limit: int) -> List[ReadableSpan]:
        """Drain spans from queue up to limit."""
        items: List[ReadableSpan] = []
        with self._lock:
            while self._queue and len(items) < limit:
                items.append(self._queue.popleft())
            self._in_flight = len(items)
        return items

    def _export(self, spans: List[ReadableSpan]) -> None:
        """Hand one batch to the exporter. Failed batches are not retried."""
        with GlobalErrorHandler():
            result = self.exporter.export(spans)
            if result is not SpanExportResult.SUCCESS:
                raise ExportError("Failed to export spans", details={"count": len(spans)})
