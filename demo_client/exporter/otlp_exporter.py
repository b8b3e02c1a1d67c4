"""OTLP exporter wrapping OpenTelemetry's gRPC and HTTP OTLP span exporters."""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from opentelemetry.sdk.trace import ReadableSpan
from opentelemetry.sdk.trace.export import SpanExporter, SpanExportResult

from demo_client.errors import InitializationError

logger = logging.getLogger(__name__)

GRPC = "grpc"
HTTP_PROTOBUF = "http/protobuf"

DEFAULT_GRPC_ENDPOINT = "0.0.0.0:4317"
HTTP_TRACES_PATH = "/v1/traces"


def http_traces_endpoint(endpoint: str) -> str:
    """
    Turn a collector address into the full OTLP/HTTP traces URL.

    ``0.0.0.0:4318`` becomes ``http://0.0.0.0:4318/v1/traces``; URLs that
    already carry a path are left alone.
    """
    if "://" not in endpoint:
        endpoint = f"http://{endpoint}"
    scheme, rest = endpoint.split("://", 1)
    if "/" not in rest.strip("/"):
        endpoint = f"{scheme}://{rest.rstrip('/')}{HTTP_TRACES_PATH}"
    return endpoint


class OTLPExporter(SpanExporter):
    """
    OTLP exporter that picks the OTel transport from the configured protocol.

    gRPC (the default) talks to ``host:port`` over an unencrypted channel
    when ``insecure`` is set. ``http/protobuf`` posts to ``<endpoint>/v1/traces``.
    """

    def __init__(
        self,
        endpoint: Optional[str] = None,
        protocol: str = GRPC,
        insecure: bool = True,
        timeout: float = 10.0,
        headers: Optional[dict] = None,
    ) -> None:
        """
        Initialize OTLP exporter.

        Args:
            endpoint: Collector address (defaults to 0.0.0.0:4317)
            protocol: "grpc" or "http/protobuf"
            insecure: Disable transport security (gRPC only)
            timeout: Per-export timeout in seconds
            headers: Optional additional headers / metadata

        Raises:
            InitializationError: If the underlying exporter cannot be built
        """
        self.endpoint = endpoint or DEFAULT_GRPC_ENDPOINT
        self.protocol = protocol
        self.insecure = insecure
        self.timeout = timeout

        try:
            if protocol == GRPC:
                from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (
                    OTLPSpanExporter as GRPCSpanExporter,
                )

                self._otel_exporter = GRPCSpanExporter(
                    endpoint=self.endpoint,
                    insecure=insecure,
                    timeout=timeout,
                    headers=headers,
                )
            elif protocol == HTTP_PROTOBUF:
                from opentelemetry.exporter.otlp.proto.http.trace_exporter import (
                    OTLPSpanExporter as HTTPSpanExporter,
                )

                self.endpoint = http_traces_endpoint(self.endpoint)
                self._otel_exporter = HTTPSpanExporter(
                    endpoint=self.endpoint,
                    timeout=timeout,
                    headers=headers,
                )
            else:
                raise ValueError(f"unsupported OTLP protocol {protocol!r}")
        except Exception as e:
            raise InitializationError(
                "Failed to create the collector trace exporter",
                details={"endpoint": self.endpoint, "protocol": protocol, "error": e},
            ) from e

        logger.debug("OTLP exporter ready (protocol=%s, endpoint=%s)", protocol, self.endpoint)

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        """Export finished spans. Returns SUCCESS for an empty batch."""
        if not spans:
            return SpanExportResult.SUCCESS
        return self._otel_exporter.export(spans)

    def shutdown(self) -> None:
        """Shutdown the exporter and close its channel."""
        self._otel_exporter.shutdown()

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        """Force flush any pending spans."""
        return self._otel_exporter.force_flush(timeout_millis=timeout_millis)
