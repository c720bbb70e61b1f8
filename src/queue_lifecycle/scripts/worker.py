from __future__ import annotations

import os
import signal
import threading
from typing import Any, Optional

from queue_lifecycle.adapters.queue.sqs import SqsTransport
from queue_lifecycle.app.config.loader import resolve_consumer_config
from queue_lifecycle.app.models.config import ConsumerConfig
from queue_lifecycle.engine.directory import QueueDirectory
from queue_lifecycle.engine.lifecycle import MessageLifecycleController
from queue_lifecycle.engine.processing import Processor
from queue_lifecycle.util.logging import get_logger, log_event


def build_controller(config: ConsumerConfig, *, processor: Processor | None = None) -> MessageLifecycleController:
    transport = SqsTransport(region=config.region, endpoint_url=config.endpoint_url)
    directory = QueueDirectory(transport)
    directory.refresh()
    return MessageLifecycleController(transport, directory, config=config, processor=processor)


class QueueWorker:
    def __init__(
        self,
        controller: MessageLifecycleController,
        *,
        queue_name: str,
        dlq_name: str | None = None,
        processor: Processor | None = None,
    ) -> None:
        self.controller = controller
        self.queue_name = queue_name
        self.dlq_name = dlq_name
        self.processor = processor
        self.stop_event = threading.Event()
        self.handled = 0
        self.error: Optional[BaseException] = None
        self._thread: Optional[threading.Thread] = None
        self.logger = get_logger(self.__class__.__name__)

    def run(self) -> int:
        self.handled = self.controller.poll_forever(
            self.queue_name,
            self.stop_event,
            processor=self.processor,
            dlq_name=self.dlq_name,
        )
        return self.handled

    def _run_in_thread(self) -> None:
        try:
            self.run()
        except Exception as exc:
            self.error = exc
            log_event(self.logger, "worker_crashed", queue_name=self.queue_name, error=str(exc))
            raise

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            raise RuntimeError(f"worker for {self.queue_name} already running")
        self.stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_in_thread,
            name=f"queue-worker-{self.queue_name}",
            daemon=True,
        )
        self._thread.start()
        log_event(self.logger, "worker_started", queue_name=self.queue_name, dlq_name=self.dlq_name)

    def stop(self, timeout: float | None = None) -> bool:
        self.stop_event.set()
        if self._thread:
            self._thread.join(timeout=timeout)
        stopped = not self.is_running()
        log_event(self.logger, "worker_stop_requested", queue_name=self.queue_name, stopped=stopped)
        return stopped

    def is_running(self) -> bool:
        return bool(self._thread and self._thread.is_alive())

    def join(self, timeout: float | None = None) -> None:
        if self._thread:
            self._thread.join(timeout=timeout)


def main() -> None:
    queue_name = os.getenv("WORKER_QUEUE_NAME")
    if not queue_name:
        raise RuntimeError("WORKER_QUEUE_NAME not configured")
    dlq_name = os.getenv("WORKER_DLQ_NAME") or None
    config = resolve_consumer_config()
    worker = QueueWorker(build_controller(config), queue_name=queue_name, dlq_name=dlq_name)

    def _request_stop(signum: int, _frame: Any) -> None:
        log_event(worker.logger, "worker_signal_received", signal=signum)
        worker.stop_event.set()

    signal.signal(signal.SIGINT, _request_stop)
    signal.signal(signal.SIGTERM, _request_stop)
    worker.start()
    while worker.is_running():
        worker.join(timeout=1)
    if worker.error:
        raise SystemExit(1)


if __name__ == "__main__":
    main()
