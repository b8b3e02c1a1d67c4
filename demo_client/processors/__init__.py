"""Span processors and supporting utilities."""

from demo_client.processors.batch_processor import BatchSpanProcessor
from demo_client.processors.drop_policy import (
    DEFAULT_DROP_POLICY,
    DropNewestPolicy,
    DropOldestPolicy,
    DropPolicy,
    get_drop_policy,
)
from demo_client.processors.logging_processor import LoggingSpanProcessor

__all__ = [
    "BatchSpanProcessor",
    "DropPolicy",
    "DropOldestPolicy",
    "DropNewestPolicy",
    "DEFAULT_DROP_POLICY",
    "get_drop_policy",
    "LoggingSpanProcessor",
]
