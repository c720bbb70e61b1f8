from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from queue_lifecycle.adapters.queue.sqs import QueueMessage, SqsTransport
from queue_lifecycle.app.models.config import ConsumerConfig, ReceiveProfile
from queue_lifecycle.engine.directory import QueueDirectory
from queue_lifecycle.engine.dispatcher import DeadLetterDispatcher
from queue_lifecycle.engine.processing import Processor, log_message, run_processor
from queue_lifecycle.util.errors import DlqDispatchError, InvalidQueueError, TransportError
from queue_lifecycle.util.logging import get_logger, log_event
from queue_lifecycle.util.metrics import CloudWatchMetrics

COMPLETED = "completed"
FAILED = "failed"
REDIRECTED = "redirected"
ERROR = "error"


@dataclass
class MessageOutcome:
    message_id: str
    body: str
    status: str
    reason: Optional[str] = None


@dataclass
class BatchSummary:
    operation: str
    queue_name: str
    dlq_name: Optional[str] = None
    outcomes: List[MessageOutcome] = field(default_factory=list)

    def count(self, status: str) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status == status)

    def counts(self) -> Dict[str, int]:
        return {status: self.count(status) for status in (COMPLETED, FAILED, REDIRECTED, ERROR)}

    def _bodies(self, *statuses: str) -> str:
        return " ".join(f"'{outcome.body}'" for outcome in self.outcomes if outcome.status in statuses)

    def describe(self) -> str:
        if self.operation == "mark_as_read":
            return f"Successfully marked message [{self._bodies(COMPLETED)}] as read in queue {self.queue_name}."
        if self.operation == "retry_and_redirect":
            return (
                f"Successfully updated visibility of message [{self._bodies(REDIRECTED)}] "
                f"and moved it into DLQ {self.dlq_name}."
            )
        counts = self.counts()
        return (
            f"Processed {len(self.outcomes)} message(s) from queue {self.queue_name}: "
            f"{counts[COMPLETED]} completed, {counts[FAILED]} sent to DLQ {self.dlq_name}, "
            f"{counts[ERROR]} errors."
        )


@dataclass
class DrainResult:
    queue_name: str
    queue_valid: bool
    messages: List[QueueMessage] = field(default_factory=list)
    outcomes: List[MessageOutcome] = field(default_factory=list)


class MessageLifecycleController:
    def __init__(
        self,
        transport: SqsTransport,
        directory: QueueDirectory,
        *,
        dispatcher: DeadLetterDispatcher | None = None,
        config: ConsumerConfig | None = None,
        metrics: CloudWatchMetrics | None = None,
        processor: Processor | None = None,
    ) -> None:
        self.transport = transport
        self.directory = directory
        self.dispatcher = dispatcher or DeadLetterDispatcher(transport)
        self.config = config or ConsumerConfig()
        self.metrics = metrics or CloudWatchMetrics.from_env()
        self.processor = processor
        self.logger = get_logger(self.__class__.__name__)

    def _require_valid(self, queue_name: str | None) -> str:
        if not self.directory.is_valid(queue_name):
            log_event(self.logger, "invalid_queue", queue_name=queue_name)
            raise InvalidQueueError(queue_name)
        return queue_name

    def _receive(
        self,
        queue_url: str,
        profile: ReceiveProfile,
        *,
        batch_size: int | None = None,
        visibility_timeout_seconds: int | None = None,
    ) -> List[QueueMessage]:
        messages = self.transport.receive(
            queue_url,
            batch_size if batch_size is not None else profile.batch_size,
            visibility_timeout_seconds
            if visibility_timeout_seconds is not None
            else profile.visibility_timeout_seconds,
            profile.wait_time_seconds,
        )
        for message in messages:
            log_event(
                self.logger,
                "message_received",
                queue_url=queue_url,
                message_id=message.message_id,
                body=message.body,
                receive_count=message.receive_count,
            )
        return messages

    def _extend(self, queue_url: str, message: QueueMessage, timeout_seconds: int) -> bool:
        try:
            self.transport.change_visibility(queue_url, message.receipt_handle, timeout_seconds)
        except TransportError as exc:
            self.metrics.record_worker_error(error_type="queue_visibility_error")
            log_event(
                self.logger,
                "queue_visibility_error",
                queue_url=queue_url,
                message_id=message.message_id,
                error=str(exc),
            )
            return False
        log_event(
            self.logger,
            "message_visibility_changed",
            queue_url=queue_url,
            message_id=message.message_id,
            visibility_timeout_seconds=timeout_seconds,
        )
        return True

    def _delete(self, queue_url: str, message: QueueMessage) -> bool:
        try:
            self.transport.delete(queue_url, message.receipt_handle)
        except TransportError as exc:
            self.metrics.record_worker_error(error_type="queue_delete_error")
            log_event(
                self.logger,
                "queue_delete_error",
                queue_url=queue_url,
                message_id=message.message_id,
                error=str(exc),
            )
            return False
        log_event(self.logger, "message_deleted", queue_url=queue_url, message_id=message.message_id)
        return True

    def _redirect(self, queue_url: str, dlq_name: str, message: QueueMessage) -> None:
        # The message stays in the source queue; only a copy goes to the DLQ.
        self._extend(queue_url, message, self.config.failure_visibility_seconds)
        self.dispatcher.send_to_dlq(dlq_name, message)

    def _record(self, summary: BatchSummary, outcome: MessageOutcome) -> None:
        summary.outcomes.append(outcome)
        self.metrics.record_message_outcome(queue_name=summary.queue_name, status=outcome.status)

    def _acknowledge(self, queue_url: str, message: QueueMessage, extension_seconds: int) -> MessageOutcome:
        self._extend(queue_url, message, extension_seconds)
        if self._delete(queue_url, message):
            return MessageOutcome(message.message_id, message.body, COMPLETED)
        return MessageOutcome(message.message_id, message.body, ERROR, "delete failed")

    def receive_once(
        self,
        queue_name: str | None,
        batch_size: int | None = None,
        visibility_timeout_seconds: int | None = None,
    ) -> DrainResult:
        """Receive one batch and delete every message in it.

        Messages are marked as read regardless of content, so nothing received
        here can be retried. An unknown queue is reported through
        ``DrainResult.queue_valid`` rather than raised.
        """
        if not self.directory.is_valid(queue_name):
            log_event(self.logger, "invalid_queue", queue_name=queue_name)
            return DrainResult(queue_name=queue_name or "", queue_valid=False)
        profile = self.config.drain
        queue_url = self.transport.resolve_url(queue_name)
        messages = self._receive(
            queue_url,
            profile,
            batch_size=batch_size,
            visibility_timeout_seconds=visibility_timeout_seconds,
        )
        result = DrainResult(queue_name=queue_name, queue_valid=True, messages=messages)
        for message in messages:
            outcome = self._acknowledge(queue_url, message, profile.extension_seconds)
            result.outcomes.append(outcome)
            self.metrics.record_message_outcome(queue_name=queue_name, status=outcome.status)
        return result

    def poll_forever(
        self,
        queue_name: str,
        stop_event: threading.Event,
        *,
        processor: Processor | None = None,
        dlq_name: str | None = None,
    ) -> int:
        """Long-poll ``queue_name`` until ``stop_event`` is set.

        The event is checked between receive calls, so a stop request takes
        effect once the current long poll returns and its batch is handled.
        The step passed here wins over the one given to the controller; with
        neither, every message counts as processed. Returns the number of
        messages handled.
        """
        self._require_valid(queue_name)
        if dlq_name:
            self._require_valid(dlq_name)
        step = processor or self.processor
        profile = self.config.poll
        queue_url = self.transport.resolve_url(queue_name)
        handled = 0
        while not stop_event.is_set():
            try:
                messages = self._receive(queue_url, profile)
            except TransportError as exc:
                self.metrics.record_worker_error(error_type="queue_receive_error")
                log_event(self.logger, "queue_receive_error", queue_name=queue_name, error=str(exc))
                stop_event.wait(self.config.poll_error_backoff_seconds)
                continue
            summary = BatchSummary(operation="poll_forever", queue_name=queue_name, dlq_name=dlq_name)
            try:
                for message in messages:
                    self._record(summary, self._poll_message(queue_url, message, step, dlq_name, profile))
            except DlqDispatchError as exc:
                # The rest of this batch becomes visible again when its window lapses.
                self.metrics.record_worker_error(error_type="dlq_dispatch_error")
                log_event(
                    self.logger,
                    "poll_batch_aborted",
                    queue_name=queue_name,
                    dlq_name=dlq_name,
                    error=str(exc),
                )
            handled += len(summary.outcomes)
        log_event(self.logger, "poll_stopped", queue_name=queue_name, handled=handled)
        return handled

    def _poll_message(
        self,
        queue_url: str,
        message: QueueMessage,
        processor: Processor | None,
        dlq_name: str | None,
        profile: ReceiveProfile,
    ) -> MessageOutcome:
        if processor is None:
            return self._acknowledge(queue_url, message, profile.extension_seconds)
        result = run_processor(processor, message)
        if result.ok:
            return self._acknowledge(queue_url, message, profile.extension_seconds)
        log_event(
            self.logger,
            "message_processing_failed",
            queue_url=queue_url,
            message_id=message.message_id,
            reason=result.reason,
        )
        if dlq_name:
            self._redirect(queue_url, dlq_name, message)
        else:
            self._extend(queue_url, message, self.config.failure_visibility_seconds)
        return MessageOutcome(message.message_id, message.body, FAILED, result.reason)

    def retry_and_redirect(self, queue_name: str, dlq_name: str) -> BatchSummary:
        """Delay redelivery of one batch and copy every message to the DLQ.

        Nothing is deleted from the source queue: the messages come back after
        the extended window unless the queue's redrive policy moves them.
        """
        self._require_valid(queue_name)
        self._require_valid(dlq_name)
        queue_url = self.transport.resolve_url(queue_name)
        summary = BatchSummary(operation="retry_and_redirect", queue_name=queue_name, dlq_name=dlq_name)
        for message in self._receive(queue_url, self.config.batch):
            try:
                self._redirect(queue_url, dlq_name, message)
            except DlqDispatchError as exc:
                exc.summary = summary
                raise
            self._record(summary, MessageOutcome(message.message_id, message.body, REDIRECTED))
        return summary

    def mark_as_read(self, queue_name: str) -> BatchSummary:
        self._require_valid(queue_name)
        queue_url = self.transport.resolve_url(queue_name)
        summary = BatchSummary(operation="mark_as_read", queue_name=queue_name)
        for message in self._receive(queue_url, self.config.batch):
            if self._delete(queue_url, message):
                outcome = MessageOutcome(message.message_id, message.body, COMPLETED)
            else:
                outcome = MessageOutcome(message.message_id, message.body, ERROR, "delete failed")
            self._record(summary, outcome)
        return summary

    def process_and_handle_failures(
        self,
        queue_name: str,
        dlq_name: str,
        processor: Processor | None = None,
    ) -> BatchSummary:
        """Process one batch, deleting successes and dead-lettering failures.

        A message whose delete call fails is treated like a processing failure
        because its state in the source queue is unknown. Processing may
        therefore repeat on redelivery; consumers must be idempotent.
        """
        self._require_valid(queue_name)
        self._require_valid(dlq_name)
        step = processor or self.processor or log_message
        queue_url = self.transport.resolve_url(queue_name)
        summary = BatchSummary(
            operation="process_and_handle_failures",
            queue_name=queue_name,
            dlq_name=dlq_name,
        )
        for message in self._receive(queue_url, self.config.batch):
            result = run_processor(step, message)
            if result.ok and self._delete(queue_url, message):
                self._record(summary, MessageOutcome(message.message_id, message.body, COMPLETED))
                continue
            reason = result.reason if not result.ok else "delete failed"
            log_event(
                self.logger,
                "message_processing_failed",
                queue_name=queue_name,
                dlq_name=dlq_name,
                message_id=message.message_id,
                reason=reason,
            )
            try:
                self._redirect(queue_url, dlq_name, message)
            except DlqDispatchError as exc:
                exc.summary = summary
                raise
            self._record(summary, MessageOutcome(message.message_id, message.body, FAILED, reason))
        return summary

    def send_message(self, queue_name: str, body: str, attributes: Optional[Dict[str, str]] = None) -> str:
        self._require_valid(queue_name)
        queue_url = self.transport.resolve_url(queue_name)
        message_id = self.transport.send(queue_url, body, attributes)
        log_event(self.logger, "message_sent", queue_name=queue_name, message_id=message_id, body=body)
        return message_id

    def get_message_count(self, queue_name: str) -> int:
        queue_url = self.transport.resolve_url(queue_name)
        count = self.transport.get_approx_message_count(queue_url)
        log_event(self.logger, "queue_message_count", queue_name=queue_name, queue_url=queue_url, count=count)
        return count

    def list_queues(self) -> List[str]:
        return sorted(self.directory.refresh())
