"""Tracing setup and teardown.

``start_tracing()`` builds the resource, the exporter and the provider,
registers the provider and the W3C propagator, and returns a ``Telemetry``
bundle that is passed explicitly to the request loop. ``tracing()`` wraps
start/stop in a context manager so the bounded flush runs on every exit path.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator, Optional

from opentelemetry import trace as otel_trace_api
from opentelemetry.propagators.textmap import TextMapPropagator
from opentelemetry.sdk.trace.export import SpanExporter

from demo_client.config import ClientConfig, load_config
from demo_client.context.propagators import build_propagator, register_global_propagator
from demo_client.exporter.console_exporter import ConsoleExporter
from demo_client.exporter.otlp_exporter import OTLPExporter
from demo_client.processors.batch_processor import BatchSpanProcessor
from demo_client.processors.drop_policy import get_drop_policy
from demo_client.processors.logging_processor import LoggingSpanProcessor
from demo_client.resource import build_resource
from demo_client.tracer.provider import TracerProvider
from demo_client.tracer.tracer import Tracer

logger = logging.getLogger(__name__)

_lock = threading.Lock()
_tracer_provider: Optional[TracerProvider] = None
_telemetry: Optional["Telemetry"] = None
_otel_global_registered = False


class _CurrentProviderProxy(otel_trace_api.TracerProvider):
    """
    Global OTel provider that forwards to the most recently registered one.

    The OTel API accepts a global provider only once per process. This proxy
    is installed once, and re-initialising switches what it forwards to.
    """

    def get_tracer(self, instrumenting_module_name, *args, **kwargs):
        provider = _tracer_provider
        if provider is None:
            return otel_trace_api.NoOpTracer()
        return provider._otel_provider.get_tracer(instrumenting_module_name, *args, **kwargs)

    @property
    def resource(self):
        provider = _tracer_provider
        return provider.resource if provider is not None else None


@dataclass(frozen=True)
class Telemetry:
    """Everything the request loop needs to trace, created once at startup."""

    config: ClientConfig
    provider: TracerProvider
    tracer: Tracer
    propagator: TextMapPropagator

    def shutdown(self, timeout: Optional[float] = None) -> bool:
        """Flush and close the export pipeline within ``timeout`` seconds."""
        if timeout is None:
            timeout = self.config.shutdown_timeout
        return self.provider.shutdown(timeout=timeout)


def create_exporter(config: ClientConfig) -> OTLPExporter:
    """Build the OTLP exporter described by the config."""
    return OTLPExporter(
        endpoint=config.otlp_endpoint,
        protocol=config.otlp_protocol,
        insecure=config.otlp_insecure,
        timeout=config.export_timeout,
    )


def _batch_processor(exporter: SpanExporter, config: ClientConfig) -> BatchSpanProcessor:
    return BatchSpanProcessor(
        exporter,
        max_queue_size=config.max_queue_size,
        max_export_batch_size=config.max_export_batch_size,
        schedule_delay_millis=config.schedule_delay_millis,
        drop_policy=get_drop_policy(config.queue_drop_policy),
    )


def _set_tracer_provider(provider: TracerProvider) -> None:
    global _tracer_provider, _otel_global_registered
    with _lock:
        if _tracer_provider is not None and _tracer_provider is not provider:
            logger.warning("Replacing the previously registered tracer provider")
        _tracer_provider = provider
        if not _otel_global_registered:
            otel_trace_api.set_tracer_provider(_CurrentProviderProxy())
            _otel_global_registered = True


def start_tracing(
    config: Optional[ClientConfig] = None,
    *,
    exporter: Optional[SpanExporter] = None,
    config_file: Optional[str] = None,
    **overrides: Any,
) -> Telemetry:
    """
    Initialize tracing and register the provider and propagator.

    Args:
        config: Ready-made config; loaded from file/env/overrides when None
        exporter: Span exporter to use instead of the configured OTLP one
        config_file: TOML config file path
        **overrides: Config fields that win over every other source

    Returns:
        Telemetry bundle for the request loop

    Raises:
        ConfigError: If the configuration is invalid
        InitializationError: If the resource or the exporter cannot be built
    """
    global _telemetry
    config = config or load_config(config_file=config_file, **overrides)

    resource = build_resource(config.service_name)
    exporter = exporter or create_exporter(config)

    provider = TracerProvider(resource=resource)
    provider.add_span_processor(_batch_processor(exporter, config))
    if config.enable_console_exporter:
        provider.add_span_processor(_batch_processor(ConsoleExporter(), config))
    if config.enable_span_logging:
        provider.add_span_processor(LoggingSpanProcessor())

    propagator = register_global_propagator(build_propagator())
    _set_tracer_provider(provider)

    telemetry = Telemetry(
        config=config,
        provider=provider,
        tracer=provider.get_tracer(config.tracer_name),
        propagator=propagator,
    )
    with _lock:
        _telemetry = telemetry
    logger.info(
        "Tracing started (service=%s, collector=%s, protocol=%s)",
        config.service_name,
        config.otlp_endpoint,
        config.otlp_protocol,
    )
    return telemetry


def stop_tracing(timeout: Optional[float] = None) -> bool:
    """
    Shut down the registered provider, flushing buffered spans.

    Returns False when the flush did not finish before the deadline.
    """
    global _tracer_provider, _telemetry
    with _lock:
        telemetry, _telemetry = _telemetry, None
        provider, _tracer_provider = _tracer_provider, None
    if telemetry is not None:
        return telemetry.shutdown(timeout)
    if provider is not None:
        return provider.shutdown(timeout=timeout)
    return True


@contextmanager
def tracing(config: Optional[ClientConfig] = None, **kwargs: Any) -> Iterator[Telemetry]:
    """
    Start tracing for the duration of a ``with`` block.

    The provider is shut down with the configured deadline however the block
    exits, including on exceptions.
    """
    global _tracer_provider, _telemetry
    telemetry = start_tracing(config, **kwargs)
    try:
        yield telemetry
    finally:
        completed = telemetry.shutdown()
        with _lock:
            if _telemetry is telemetry:
                _telemetry = None
                _tracer_provider = None
        if not completed:
            logger.warning("Tracing shutdown hit its deadline; some spans were dropped")


def get_tracer_provider() -> Optional[TracerProvider]:
    """Return the most recently registered provider, if any."""
    return _tracer_provider


def get_tracer(name: str) -> Tracer:
    """
    Get a tracer from the registered provider.

    Raises:
        RuntimeError: If tracing has not been started
    """
    provider = _tracer_provider
    if provider is None:
        raise RuntimeError("Tracing is not started; call start_tracing() first")
    return provider.get_tracer(name)
