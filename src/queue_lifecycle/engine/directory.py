from __future__ import annotations

import logging
import threading
from typing import FrozenSet, Iterable, Optional

from queue_lifecycle.adapters.queue.sqs import SqsTransport
from queue_lifecycle.util.logging import get_logger, log_event


class QueueDirectory:
    """Cache of known queue names used to reject mistyped or foreign queues.

    Nothing is valid until ``refresh()`` has run at least once. Lookups never
    trigger a list call; the host decides when to refresh.
    """

    def __init__(self, transport: SqsTransport, names: Optional[Iterable[str]] = None) -> None:
        self.transport = transport
        self._lock = threading.Lock()
        self._names: FrozenSet[str] = frozenset(names or ())
        self.logger = get_logger(self.__class__.__name__)

    @property
    def names(self) -> FrozenSet[str]:
        return self._names

    def refresh(self) -> FrozenSet[str]:
        # A failed list call leaves the previous snapshot in place.
        names = frozenset(self.transport.list_queue_names())
        with self._lock:
            self._names = names
        log_event(self.logger, "queue_directory_refreshed", queue_count=len(names))
        return names

    def is_valid(self, name: str | None) -> bool:
        if not name:
            return False
        # Readers see either the old or the new snapshot, never a partial one.
        valid = name in self._names
        if self.logger.isEnabledFor(logging.DEBUG):
            log_event(self.logger, "queue_validity_checked", level=logging.DEBUG, queue_name=name, valid=valid)
        return valid
