import sys
from pathlib import Path
from typing import Dict, List, Optional

import pytest
import freezegun
from freezegun import freeze_time
from freezegun import config as freezegun_config

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))
SRC_ROOT = PROJECT_ROOT / "src"
if str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))

from queue_lifecycle.adapters.queue.sqs import QueueMessage  # noqa: E402
from queue_lifecycle.util.errors import QueueNotFoundError  # noqa: E402

DEFAULT_ENV = {
    "AWS_ACCESS_KEY_ID": "test-access-key",
    "AWS_SECRET_ACCESS_KEY": "test-secret-key",
    "AWS_SESSION_TOKEN": "test-session",
    "AWS_DEFAULT_REGION": "us-east-1",
    "CLOUDWATCH_METRICS_ENABLED": "false",
}


@pytest.fixture(autouse=True)
def _test_env(monkeypatch):
    for key, value in DEFAULT_ENV.items():
        monkeypatch.setenv(key, value)
    yield


class FakeTransport:
    """In-memory transport that records every call the controller makes."""

    def __init__(self, queues: Optional[Dict[str, List[str]]] = None) -> None:
        self.queues: Dict[str, List[QueueMessage]] = {}
        self.calls: List[tuple] = []
        self.failing: Dict[str, Exception] = {}
        self.sent: Dict[str, List[tuple]] = {}
        self._next_id = 0
        for name, bodies in (queues or {}).items():
            self.queues[name] = []
            for body in bodies:
                self.enqueue(name, body)

    def url(self, name: str) -> str:
        return f"https://sqs.us-east-1.amazonaws.com/123456789012/{name}"

    def enqueue(self, name: str, body: str, attributes: Optional[Dict[str, str]] = None) -> QueueMessage:
        self._next_id += 1
        message = QueueMessage(
            message_id=f"msg-{self._next_id}",
            receipt_handle=f"rh-{self._next_id}",
            body=body,
            attributes=dict(attributes or {}),
        )
        self.queues.setdefault(name, []).append(message)
        return message

    def _check(self, operation: str) -> None:
        error = self.failing.get(operation)
        if error:
            raise error

    def resolve_url(self, queue_name: str) -> str:
        self.calls.append(("resolve_url", queue_name))
        self._check("resolve_url")
        if queue_name not in self.queues:
            raise QueueNotFoundError(queue_name)
        return self.url(queue_name)

    def send(self, queue_url: str, body: str, attributes: Optional[Dict[str, str]] = None) -> str:
        self.calls.append(("send", queue_url, body, attributes))
        self._check("send")
        name = queue_url.rsplit("/", 1)[-1]
        self.sent.setdefault(name, []).append((body, attributes))
        return self.enqueue(name, body, attributes).message_id

    def receive(self, queue_url, max_batch, visibility_timeout_seconds=None, wait_time_seconds=None):
        self.calls.append(("receive", queue_url, max_batch, visibility_timeout_seconds, wait_time_seconds))
        self._check("receive")
        name = queue_url.rsplit("/", 1)[-1]
        return list(self.queues.get(name, [])[:max_batch])

    def change_visibility(self, queue_url: str, receipt_handle: str, timeout_seconds: int) -> None:
        self.calls.append(("change_visibility", queue_url, receipt_handle, timeout_seconds))
        self._check("change_visibility")

    def delete(self, queue_url: str, receipt_handle: str) -> None:
        self.calls.append(("delete", queue_url, receipt_handle))
        self._check("delete")
        name = queue_url.rsplit("/", 1)[-1]
        self.queues[name] = [m for m in self.queues.get(name, []) if m.receipt_handle != receipt_handle]

    def list_queue_names(self):
        self.calls.append(("list_queue_names",))
        self._check("list_queue_names")
        return set(self.queues)

    def get_approx_message_count(self, queue_url: str) -> int:
        self.calls.append(("get_approx_message_count", queue_url))
        return len(self.queues.get(queue_url.rsplit("/", 1)[-1], []))

    def calls_named(self, operation: str) -> List[tuple]:
        return [call for call in self.calls if call[0] == operation]


@pytest.fixture
def fake_transport_factory():
    return FakeTransport


@pytest.fixture
def freezer():
    # freezegun's default ignore list contains the prefix "queue", which also
    # matches "queue_lifecycle" and would leave this package's modules unfrozen.
    original = list(freezegun_config.settings.default_ignore_list)
    freezegun.configure(default_ignore_list=[m for m in original if m != "queue"])
    try:
        with freeze_time("2020-01-01T00:00:00Z") as frozen_datetime:
            yield frozen_datetime
    finally:
        freezegun.configure(default_ignore_list=original)
