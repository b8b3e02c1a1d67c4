"""Tests for the batching span processor and its drop policies."""

import threading
import time
import unittest
from collections import deque

from opentelemetry.sdk.trace.export import SpanExporter, SpanExportResult
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from demo_client.auto import _batch_processor
from demo_client.config import ClientConfig
from demo_client.processors import BatchSpanProcessor, DropNewestPolicy, DropOldestPolicy, get_drop_policy
from demo_client.tracer import TracerProvider

ERROR_HANDLER_LOGGER = "opentelemetry.sdk.error_handler"


class _FailingExporter(SpanExporter):
    def __init__(self, raises=False):
        self.raises = raises
        self.calls = 0

    def export(self, spans):
        self.calls += 1
        if self.raises:
            raise ConnectionError("collector unreachable")
        return SpanExportResult.FAILURE

    def shutdown(self):
        pass


class _BlockingExporter(SpanExporter):
    """Exporter whose export() hangs until released."""

    def __init__(self):
        self.release = threading.Event()
        self.started = threading.Event()

    def export(self, spans):
        self.started.set()
        self.release.wait(10)
        return SpanExportResult.SUCCESS

    def shutdown(self):
        pass


def _wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class BatchTestCase(unittest.TestCase):

    def _processor(self, exporter, **kwargs):
        kwargs.setdefault("schedule_delay_millis", 60000)
        processor = BatchSpanProcessor(exporter, **kwargs)
        provider = TracerProvider()
        provider.add_span_processor(processor)
        self.addCleanup(provider.shutdown, 1.0)
        return processor, provider.get_tracer("test")


class TestBatchSpanProcessor(BatchTestCase):

    def test_force_flush_exports_queued_spans(self):
        exporter = InMemorySpanExporter()
        processor, tracer = self._processor(exporter)
        for i in range(3):
            tracer.start_span(f"span-{i}").end()
        self.assertEqual(exporter.get_finished_spans(), ())

        self.assertTrue(processor.force_flush(timeout_millis=2000))
        self.assertEqual([s.name for s in exporter.get_finished_spans()], ["span-0", "span-1", "span-2"])

    def test_full_batch_wakes_the_worker(self):
        exporter = InMemorySpanExporter()
        processor, tracer = self._processor(exporter, max_export_batch_size=2)
        tracer.start_span("a").end()
        tracer.start_span("b").end()
        self.assertTrue(_wait_for(lambda: len(exporter.get_finished_spans()) == 2))

    def test_schedule_delay_flushes(self):
        exporter = InMemorySpanExporter()
        processor, tracer = self._processor(exporter, schedule_delay_millis=50)
        tracer.start_span("a").end()
        self.assertTrue(_wait_for(lambda: len(exporter.get_finished_spans()) == 1))

    def test_shutdown_flushes_remaining_spans(self):
        exporter = InMemorySpanExporter()
        processor, tracer = self._processor(exporter)
        tracer.start_span("a").end()
        self.assertTrue(processor.shutdown(timeout=2.0))
        self.assertEqual(len(exporter.get_finished_spans()), 1)

    def test_spans_after_shutdown_are_ignored(self):
        exporter = InMemorySpanExporter()
        processor, tracer = self._processor(exporter)
        processor.shutdown(timeout=2.0)
        tracer.start_span("late").end()
        self.assertEqual(len(processor._queue), 0)
        self.assertFalse(processor.force_flush(timeout_millis=100))
        self.assertTrue(processor.shutdown(timeout=2.0))

    def test_batch_size_must_fit_queue(self):
        with self.assertRaises(ValueError):
            BatchSpanProcessor(InMemorySpanExporter(), max_queue_size=1, max_export_batch_size=2)


class TestExportFailures(BatchTestCase):

    def test_failed_export_is_reported_not_raised(self):
        exporter = _FailingExporter()
        processor, tracer = self._processor(exporter)
        tracer.start_span("a").end()
        with self.assertLogs(ERROR_HANDLER_LOGGER, level="ERROR"):
            self.assertTrue(processor.force_flush(timeout_millis=2000))
        self.assertEqual(exporter.calls, 1)

    def test_exporter_exception_does_not_stop_the_worker(self):
        exporter = _FailingExporter(raises=True)
        processor, tracer = self._processor(exporter)
        with self.assertLogs(ERROR_HANDLER_LOGGER, level="ERROR"):
            tracer.start_span("a").end()
            processor.force_flush(timeout_millis=2000)
            tracer.start_span("b").end()
            processor.force_flush(timeout_millis=2000)
        self.assertEqual(exporter.calls, 2)
        self.assertTrue(processor._worker.is_alive())

    def test_shutdown_is_bounded_by_its_deadline(self):
        exporter = _BlockingExporter()
        self.addCleanup(exporter.release.set)
        processor, tracer = self._processor(exporter)
        tracer.start_span("a").end()
        tracer.start_span("b").end()

        with self.assertLogs(ERROR_HANDLER_LOGGER, level="ERROR"):
            started = time.monotonic()
            completed = processor.shutdown(timeout=1.0)
            elapsed = time.monotonic() - started

        self.assertFalse(completed)
        self.assertLess(elapsed, 2.0)
        self.assertGreaterEqual(elapsed, 0.9)


class TestDropPolicies(unittest.TestCase):

    def test_drop_oldest(self):
        queue = deque(["a", "b"])
        self.assertEqual(DropOldestPolicy().handle(queue, "c", max_size=2), 1)
        self.assertEqual(list(queue), ["b", "c"])

    def test_drop_newest(self):
        queue = deque(["a", "b"])
        self.assertEqual(DropNewestPolicy().handle(queue, "c", max_size=2), 1)
        self.assertEqual(list(queue), ["a", "b"])

    def test_policy_by_config_name(self):
        self.assertIsInstance(get_drop_policy("drop_oldest"), DropOldestPolicy)
        self.assertIsInstance(get_drop_policy("drop_newest"), DropNewestPolicy)
        with self.assertRaises(ValueError):
            get_drop_policy("drop_random")

    def test_configured_policy_reaches_the_processor(self):
        processor = _batch_processor(InMemorySpanExporter(), ClientConfig(queue_drop_policy="drop_newest"))
        self.addCleanup(processor.shutdown, 1.0)
        self.assertIsInstance(processor.drop_policy, DropNewestPolicy)

    def test_room_available(self):
        queue = deque(["a"])
        self.assertEqual(DropOldestPolicy().handle(queue, "b", max_size=2), 0)
        self.assertEqual(list(queue), ["a", "b"])

    def test_processor_drops_oldest_when_full(self):
        exporter = _BlockingExporter()
        processor = BatchSpanProcessor(
            exporter, max_queue_size=2, max_export_batch_size=1, schedule_delay_millis=60000
        )
        provider = TracerProvider()
        provider.add_span_processor(processor)
        tracer = provider.get_tracer("test")
        try:
            # First span is picked up by the worker, which then blocks in export
            tracer.start_span("a").end()
            self.assertTrue(exporter.started.wait(2))
            for name in ("b", "c", "d"):
                tracer.start_span(name).end()
            self.assertEqual([s.name for s in processor._queue], ["c", "d"])
            self.assertEqual(processor.dropped_spans, 1)
        finally:
            exporter.release.set()
            provider.shutdown(timeout=2.0)


if __name__ == "__main__":
    unittest.main()
