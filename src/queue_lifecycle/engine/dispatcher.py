from __future__ import annotations

from queue_lifecycle.adapters.queue.sqs import QueueMessage, SqsTransport
from queue_lifecycle.util.errors import DlqDispatchError, TransportError
from queue_lifecycle.util.logging import get_logger, log_event


class DeadLetterDispatcher:
    def __init__(self, transport: SqsTransport) -> None:
        self.transport = transport
        self.logger = get_logger(self.__class__.__name__)

    def send_to_dlq(self, dlq_name: str, message: QueueMessage) -> str:
        # The DLQ URL is resolved on every call; a stale URL would misdirect messages.
        try:
            dlq_url = self.transport.resolve_url(dlq_name)
            attributes = {**message.attributes, **message.typed_attributes}
            copy_id = self.transport.send(dlq_url, message.body, attributes)
        except TransportError as exc:
            log_event(
                self.logger,
                "dlq_dispatch_failed",
                dlq_name=dlq_name,
                message_id=message.message_id,
                error=str(exc),
            )
            raise DlqDispatchError(dlq_name, message.message_id, str(exc)) from exc
        log_event(
            self.logger,
            "message_sent_to_dlq",
            dlq_name=dlq_name,
            message_id=message.message_id,
            dlq_message_id=copy_id,
            body=message.body,
        )
        return copy_id
