from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional

from queue_lifecycle.adapters.queue.sqs import QueueMessage
from queue_lifecycle.util.errors import ProcessingFailure
from queue_lifecycle.util.logging import get_logger, log_event


@dataclass(frozen=True)
class ProcessingResult:
    ok: bool
    reason: Optional[str] = None

    @classmethod
    def success(cls) -> "ProcessingResult":
        return cls(ok=True)

    @classmethod
    def failure(cls, reason: str) -> "ProcessingResult":
        return cls(ok=False, reason=reason)


Processor = Callable[[QueueMessage], Any]

_logger = get_logger("processing")


def log_message(message: QueueMessage) -> ProcessingResult:
    log_event(
        _logger,
        "message_processed",
        message_id=message.message_id,
        body=message.body,
    )
    return ProcessingResult.success()


def run_processor(processor: Processor, message: QueueMessage) -> ProcessingResult:
    """Apply a processing step and fold every outcome into a ProcessingResult.

    A ``ProcessingResult`` is returned as is. ``None`` counts as success and any
    other return value is judged by its truthiness. Exceptions raised by the
    step count as failure.
    """
    try:
        result = processor(message)
    except ProcessingFailure as exc:
        return ProcessingResult.failure(str(exc) or "processing rejected")
    except Exception as exc:
        return ProcessingResult.failure(f"{exc.__class__.__name__}: {exc}")
    if isinstance(result, ProcessingResult):
        return result
    if result is None or result:
        return ProcessingResult.success()
    return ProcessingResult.failure(f"processor returned {result!r}")
