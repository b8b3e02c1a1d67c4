"""Queue overflow handling strategies for span buffering."""

from typing import Deque

from opentelemetry.sdk.trace import ReadableSpan


class DropPolicy:
    """Base policy deciding how to handle span queue overflow."""

    def handle(self, queue: Deque[ReadableSpan], span: ReadableSpan, max_size: int) -> int:
        """
        Apply the drop policy.

        Returns the number of spans dropped (0 when the span was simply enqueued).
        """
        raise NotImplementedError


class DropOldestPolicy(DropPolicy):
    """Drop the oldest span to make room for a new one."""

    def handle(self, queue: Deque[ReadableSpan], span: ReadableSpan, max_size: int) -> int:
        dropped = 0
        while len(queue) >= max_size and queue:
            queue.popleft()
            dropped += 1
        queue.append(span)
        return dropped


class DropNewestPolicy(DropPolicy):
    """Drop the incoming span if the queue is full."""

    def handle(self, queue: Deque[ReadableSpan], span: ReadableSpan, max_size: int) -> int:
        if len(queue) < max_size:
            queue.append(span)
            return 0
        return 1


DEFAULT_DROP_POLICY = DropOldestPolicy()

DROP_POLICIES = {
    "drop_oldest": DropOldestPolicy,
    "drop_newest": DropNewestPolicy,
}


def get_drop_policy(name: str) -> DropPolicy:
    """Return a policy instance by its config name."""
    try:
        return DROP_POLICIES[name]()
    except KeyError:
        raise ValueError(f"Unknown drop policy: {name!r}") from None
