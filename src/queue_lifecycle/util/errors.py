from __future__ import annotations

from typing import Any


class RetryableError(Exception):
    """Indicates a failure that may succeed on retry."""


class NonRetryableError(Exception):
    """Indicates a failure that should not be retried."""


class TransportError(RetryableError):
    def __init__(self, operation: str, message: str) -> None:
        super().__init__(f"{operation} failed: {message}")
        self.operation = operation


class QueueNotFoundError(TransportError):
    def __init__(self, queue_name: str, message: str = "queue does not exist") -> None:
        super().__init__("resolve_url", f"{queue_name}: {message}")
        self.queue_name = queue_name


class DlqDispatchError(RetryableError):
    def __init__(self, dlq_name: str, message_id: str, message: str) -> None:
        super().__init__(f"failed to send message {message_id} to DLQ {dlq_name}: {message}")
        self.dlq_name = dlq_name
        self.message_id = message_id
        self.summary: Any = None


class InvalidQueueError(NonRetryableError):
    def __init__(self, queue_name: str | None) -> None:
        super().__init__(f"queue is not valid: {queue_name!r}")
        self.queue_name = queue_name


class ProcessingFailure(NonRetryableError):
    """Raised by a processing step to reject a message."""
