"""Instrumentation helpers for outbound HTTP."""

from demo_client.instrumentation.http_client import send_request

__all__ = [
    "send_request",
]
