"""Instrumented demo client: traced outbound requests exported over OTLP."""

from demo_client.auto import (
    Telemetry,
    get_tracer,
    get_tracer_provider,
    start_tracing,
    stop_tracing,
    tracing,
)
from demo_client.client import RequestLoop
from demo_client.config import ClientConfig, load_config
from demo_client.correlation import configure_logging, with_correlation
from demo_client.utils.helpers import convert_trace_id

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "ClientConfig",
    "RequestLoop",
    "Telemetry",
    "configure_logging",
    "convert_trace_id",
    "get_tracer",
    "get_tracer_provider",
    "load_config",
    "start_tracing",
    "stop_tracing",
    "tracing",
    "with_correlation",
]
