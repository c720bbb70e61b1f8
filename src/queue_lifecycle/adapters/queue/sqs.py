from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Mapping, Optional, Set, Union

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from queue_lifecycle.util.errors import QueueNotFoundError, TransportError

NON_EXISTENT_QUEUE_CODES = {"AWS.SimpleQueueService.NonExistentQueue", "QueueDoesNotExist"}
MAX_BATCH_SIZE = 10
MAX_WAIT_SECONDS = 20
ATTRIBUTE_VALUE_KEYS = ("DataType", "StringValue", "BinaryValue")

AttributeValue = Union[str, Dict[str, Any]]


@dataclass
class QueueMessage:
    message_id: str
    receipt_handle: str
    body: str
    attributes: Dict[str, str] = field(default_factory=dict)
    receive_count: int = 1
    # Message attributes exactly as the queue returned them, binary ones included.
    typed_attributes: Dict[str, Dict[str, Any]] = field(default_factory=dict)


def queue_name_from_url(queue_url: str) -> str:
    return queue_url.rstrip("/").rsplit("/", 1)[-1]


def _from_message_attributes(raw: Dict[str, Dict[str, Any]]) -> Dict[str, str]:
    # Binary attributes have no string form; they survive in typed_attributes.
    attributes: Dict[str, str] = {}
    for name, value in raw.items():
        if "StringValue" in value:
            attributes[name] = value["StringValue"]
    return attributes


def _typed_message_attributes(raw: Dict[str, Dict[str, Any]]) -> Dict[str, Dict[str, Any]]:
    return {
        name: {key: value[key] for key in ATTRIBUTE_VALUE_KEYS if key in value}
        for name, value in raw.items()
    }


def _to_message_attributes(attributes: Mapping[str, AttributeValue]) -> Dict[str, Dict[str, Any]]:
    encoded: Dict[str, Dict[str, Any]] = {}
    for name, value in attributes.items():
        if isinstance(value, dict):
            encoded.update(_typed_message_attributes({name: value}))
        else:
            encoded[name] = {"DataType": "String", "StringValue": value}
    return encoded


class SqsTransport:
    def __init__(
        self,
        *,
        region: str | None = None,
        endpoint_url: str | None = None,
        client: Any = None,
    ) -> None:
        if client is None:
            kwargs: Dict[str, Any] = {}
            if region:
                kwargs["region_name"] = region
            if endpoint_url:
                kwargs["endpoint_url"] = endpoint_url
            client = boto3.client("sqs", **kwargs)
        self.client = client

    @contextmanager
    def _translate(self, operation: str) -> Iterator[None]:
        try:
            yield
        except ClientError as exc:
            raise TransportError(operation, str(exc)) from exc
        except BotoCoreError as exc:
            raise TransportError(operation, str(exc)) from exc

    def resolve_url(self, queue_name: str) -> str:
        try:
            response = self.client.get_queue_url(QueueName=queue_name)
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code", "")
            if code in NON_EXISTENT_QUEUE_CODES:
                raise QueueNotFoundError(queue_name) from exc
            raise TransportError("resolve_url", str(exc)) from exc
        except BotoCoreError as exc:
            raise TransportError("resolve_url", str(exc)) from exc
        return response["QueueUrl"]

    def send(self, queue_url: str, body: str, attributes: Optional[Mapping[str, AttributeValue]] = None) -> str:
        params: Dict[str, Any] = {"QueueUrl": queue_url, "MessageBody": body}
        if attributes:
            params["MessageAttributes"] = _to_message_attributes(attributes)
        with self._translate("send"):
            response = self.client.send_message(**params)
        return response["MessageId"]

    def receive(
        self,
        queue_url: str,
        max_batch: int,
        visibility_timeout_seconds: int | None = None,
        wait_time_seconds: int | None = None,
    ) -> List[QueueMessage]:
        params: Dict[str, Any] = {
            "QueueUrl": queue_url,
            "MaxNumberOfMessages": max(1, min(max_batch, MAX_BATCH_SIZE)),
            "AttributeNames": ["ApproximateReceiveCount"],
            "MessageAttributeNames": ["All"],
        }
        if visibility_timeout_seconds is not None:
            params["VisibilityTimeout"] = visibility_timeout_seconds
        if wait_time_seconds is not None:
            params["WaitTimeSeconds"] = max(0, min(wait_time_seconds, MAX_WAIT_SECONDS))
        with self._translate("receive"):
            response = self.client.receive_message(**params)
        messages = []
        for message in response.get("Messages", []):
            system_attributes = message.get("Attributes", {})
            raw_attributes = message.get("MessageAttributes", {})
            messages.append(
                QueueMessage(
                    message_id=message["MessageId"],
                    receipt_handle=message["ReceiptHandle"],
                    body=message.get("Body", ""),
                    attributes=_from_message_attributes(raw_attributes),
                    receive_count=int(system_attributes.get("ApproximateReceiveCount", "1")),
                    typed_attributes=_typed_message_attributes(raw_attributes),
                )
            )
        return messages

    def change_visibility(self, queue_url: str, receipt_handle: str, timeout_seconds: int) -> None:
        with self._translate("change_visibility"):
            self.client.change_message_visibility(
                QueueUrl=queue_url,
                ReceiptHandle=receipt_handle,
                VisibilityTimeout=timeout_seconds,
            )

    def delete(self, queue_url: str, receipt_handle: str) -> None:
        with self._translate("delete"):
            self.client.delete_message(QueueUrl=queue_url, ReceiptHandle=receipt_handle)

    def list_queue_names(self) -> Set[str]:
        names: Set[str] = set()
        with self._translate("list_queues"):
            paginator = self.client.get_paginator("list_queues")
            for page in paginator.paginate():
                names.update(queue_name_from_url(url) for url in page.get("QueueUrls", []))
        return names

    def get_approx_message_count(self, queue_url: str) -> int:
        with self._translate("get_queue_attributes"):
            response = self.client.get_queue_attributes(
                QueueUrl=queue_url,
                AttributeNames=["ApproximateNumberOfMessages"],
            )
        value = response.get("Attributes", {}).get("ApproximateNumberOfMessages")
        return int(value) if value is not None else 0
