"""Helpers for converting OpenTelemetry identifiers."""

from __future__ import annotations


def format_trace_id(trace_id: int) -> str:
    """
    Format OTel trace_id (int128) to hex string.
    
    Args:
        trace_id: OTel trace_id as int
    
    Returns:
        32-character hex string
    """
    return format(trace_id, '032x')


def format_span_id(span_id: int) -> str:
    """
    Format OTel span_id (int64) to hex string.
    
    Args:
        span_id: OTel span_id as int
    
    Returns:
        16-character hex string
    """
    return format(span_id, '016x')


def parse_trace_id(hex_string: str) -> int:
    """Parse hex string trace_id to OTel int."""
    if not hex_string:
        return 0
    return int(hex_string, 16)


def parse_span_id(hex_string: str) -> int:
    """Parse hex string span_id to OTel int."""
    if not hex_string:
        return 0
    return int(hex_string, 16)


_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")


def convert_trace_id(hex_id: str) -> str:
    """
    Convert a hex trace or span id to the decimal form log backends index on.

    Only the low 64 bits (last 16 hex characters) are used. Ids shorter than
    16 characters, or whose low 64 bits are not valid hex, yield "".

    Args:
        hex_id: Hex identifier of any length

    Returns:
        Base-10 string, or "" when the id is unusable
    """
    if len(hex_id) < 16:
        return ""
    if len(hex_id) > 16:
        hex_id = hex_id[-16:]
    # int() tolerates signs, underscores and whitespace; unsigned hex only
    if not all(c in _HEX_DIGITS for c in hex_id):
        return ""
    return str(int(hex_id, 16))
