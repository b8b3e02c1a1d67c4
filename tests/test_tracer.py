"""Tests for the tracer provider, tracer handles, spans and the resource."""

import logging
import os
import unittest
from unittest import mock

from opentelemetry.context import Context
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.sdk.trace.sampling import ALWAYS_ON
from opentelemetry.trace import StatusCode

from demo_client.errors import InitializationError
from demo_client.processors import LoggingSpanProcessor
from demo_client.resource import build_resource
from demo_client.tracer import SpanProcessor, SpanStatus, TracerProvider
from demo_client.utils.helpers import convert_trace_id, format_span_id


class _TaggingProcessor(SpanProcessor):
    def __init__(self):
        self.seen = []

    def on_end(self, span):
        self.seen.append(span.name)
        span.set_attribute("enriched", True)


class TracerTestCase(unittest.TestCase):

    def setUp(self):
        self.exporter = InMemorySpanExporter()
        self.provider = TracerProvider(resource=build_resource("test-service", detect_process=False))
        self.provider.add_span_processor(SimpleSpanProcessor(self.exporter))
        self.tracer = self.provider.get_tracer("test")

    def tearDown(self):
        self.provider.shutdown()


class TestTracerProvider(TracerTestCase):

    def test_get_tracer_returns_cached_handle(self):
        self.assertIs(self.provider.get_tracer("test"), self.tracer)
        self.assertIsNot(self.provider.get_tracer("other"), self.tracer)
        self.assertEqual(self.tracer.instrumentation_scope, "test")

    def test_always_samples(self):
        self.assertIs(self.provider.sampler, ALWAYS_ON)
        for i in range(20):
            self.tracer.start_span(f"span-{i}").end()
        finished = self.exporter.get_finished_spans()
        self.assertEqual(len(finished), 20)
        self.assertTrue(all(s.context.trace_flags.sampled for s in finished))

    def test_resource_attached_to_exported_spans(self):
        self.tracer.start_span("work").end()
        attributes = self.exporter.get_finished_spans()[0].resource.attributes
        self.assertEqual(attributes["service.name"], "test-service")
        self.assertEqual(attributes["telemetry.sdk.language"], "python")
        self.assertIn("host.name", attributes)

    def test_enrichment_processor_runs_before_end(self):
        processor = _TaggingProcessor()
        self.provider.add_span_processor(processor)
        self.tracer.start_span("work").end()
        self.assertEqual(processor.seen, ["work"])
        self.assertTrue(self.exporter.get_finished_spans()[0].attributes["enriched"])

    def test_force_flush_timeout_is_passed_in_millis(self):
        with mock.patch.object(self.provider._otel_provider, "force_flush", return_value=True) as flush:
            self.provider.force_flush(timeout=0)
            self.provider.force_flush(timeout=1.5)
            self.provider.force_flush()
        self.assertEqual(
            [c.kwargs["timeout_millis"] for c in flush.call_args_list],
            [0, 1500, 30000],
        )

    def test_shutdown_is_idempotent(self):
        self.assertTrue(self.provider.shutdown(timeout=1.0))
        self.assertTrue(self.provider.shutdown(timeout=1.0))
        self.assertTrue(self.provider.is_shutdown)


class TestSpans(TracerTestCase):

    def test_new_root_span_has_no_parent(self):
        with self.tracer.start_as_current_span("outer"):
            span = self.tracer.start_span("root", context=Context())
            span.end()
        self.assertIsNone(span.parent_span_id)
        exported = [s for s in self.exporter.get_finished_spans() if s.name == "root"][0]
        self.assertIsNone(exported.parent)

    def test_child_shares_trace_id(self):
        with self.tracer.start_as_current_span("parent") as parent:
            with self.tracer.start_as_current_span("child") as child:
                pass
        self.assertEqual(child.context.trace_id, parent.context.trace_id)
        self.assertNotEqual(child.context.span_id, parent.context.span_id)
        self.assertEqual(child.parent_span_id, parent.context.span_id)

        exported = {s.name: s for s in self.exporter.get_finished_spans()}
        self.assertEqual(format_span_id(exported["child"].parent.span_id), parent.context.span_id)

    def test_ids_have_expected_width(self):
        span = self.tracer.start_span("work")
        span.end()
        self.assertEqual(len(span.context.trace_id), 32)
        self.assertEqual(len(span.context.span_id), 16)
        self.assertTrue(span.context.is_valid())
        self.assertTrue(span.context.decimal_trace_id.isdigit())

    def test_events_and_attributes_are_recorded(self):
        span = self.tracer.start_span("work", attributes={"a": 1})
        span.set_attribute("b", "two")
        span.add_event("done", {"someKey": "someValue"})
        span.end()
        self.assertEqual(span.attributes, {"a": 1, "b": "two"})
        self.assertEqual([e["name"] for e in span.events], ["done"])

        exported = self.exporter.get_finished_spans()[0]
        self.assertEqual(exported.events[0].name, "done")
        self.assertEqual(exported.events[0].attributes["someKey"], "someValue")
        self.assertEqual(exported.status.status_code, StatusCode.OK)

    def test_span_is_immutable_after_end(self):
        span = self.tracer.start_span("work")
        span.end()
        end_time = span.end_time_ns
        span.set_attribute("late", True)
        span.add_event("late")
        span.end()
        self.assertNotIn("late", span.attributes)
        self.assertEqual(span.events, [])
        self.assertEqual(span.end_time_ns, end_time)
        self.assertEqual(len(self.exporter.get_finished_spans()), 1)

    def test_exception_in_block_marks_span_failed(self):
        with self.assertRaises(ValueError):
            with self.tracer.start_as_current_span("work") as span:
                raise ValueError("boom")
        self.assertEqual(span.status, SpanStatus.ERROR)
        exported = self.exporter.get_finished_spans()[0]
        self.assertEqual(exported.status.status_code, StatusCode.ERROR)
        self.assertEqual(exported.events[0].name, "exception")


class TestLoggingSpanProcessor(TracerTestCase):

    def test_finished_span_is_logged_with_decimal_ids(self):
        logger = logging.getLogger("tests.traces")
        self.provider.add_span_processor(LoggingSpanProcessor(logger))
        with self.assertLogs(logger, level="INFO") as captured:
            span = self.tracer.start_span("work")
            span.end()
        record = captured.records[0]
        self.assertIn("name=work", record.getMessage())
        self.assertIn("status=OK", record.getMessage())
        self.assertEqual(record.trace_id, convert_trace_id(span.context.trace_id))
        self.assertEqual(record.span_id, convert_trace_id(span.context.span_id))


class TestResource(unittest.TestCase):

    def test_process_and_sdk_attributes(self):
        attributes = build_resource("demo-client").attributes
        self.assertEqual(attributes["service.name"], "demo-client")
        self.assertEqual(attributes["telemetry.sdk.name"], "opentelemetry")
        self.assertEqual(attributes["process.pid"], os.getpid())

    def test_env_attributes_merged_but_service_name_explicit(self):
        env = {"OTEL_RESOURCE_ATTRIBUTES": "deployment.environment=test,service.name=from-env"}
        with mock.patch.dict(os.environ, env):
            attributes = build_resource("demo-client", detect_process=False).attributes
        self.assertEqual(attributes["deployment.environment"], "test")
        self.assertEqual(attributes["service.name"], "demo-client")

    def test_detector_failure_is_fatal(self):
        with mock.patch(
            "demo_client.resource.ProcessResourceDetector.detect",
            side_effect=RuntimeError("no process info"),
        ):
            with self.assertRaises(InitializationError):
                build_resource("demo-client")


if __name__ == "__main__":
    unittest.main()
