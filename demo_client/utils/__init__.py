"""Utility functions for the demo client."""

from demo_client.utils.helpers import (
    convert_trace_id,
    format_trace_id,
    format_span_id,
    parse_trace_id,
    parse_span_id,
)

__all__ = [
    "convert_trace_id",
    "format_trace_id",
    "format_span_id",
    "parse_trace_id",
    "parse_span_id",
]
