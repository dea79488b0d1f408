"""Simple Queue Service API wrapper over the Query protocol."""

import hashlib
from dataclasses import dataclass, field
from urllib.parse import urlparse

from gaws.config import get_logger
from gaws.errors import MalformedResponseError
from gaws.services.query import QueryService, find_text

logger = get_logger(__name__)


def _md5(text: str) -> str:
    return hashlib.md5(text.encode("utf-8")).hexdigest()


def _indexed(prefix: str, values) -> dict[str, str]:
    """Flatten a list into Query protocol members: Prefix.1, Prefix.2, ..."""
    return {f"{prefix}.{i}": value for i, value in enumerate(values, start=1)}


def _attributes(element) -> dict[str, str]:
    return {find_text(a, "Name"): find_text(a, "Value") for a in element.findall("Attribute")}


@dataclass
class Message:
    """A message received from a queue."""
    message_id: str
    receipt_handle: str
    body: str
    md5_of_body: str
    attributes: dict[str, str] = field(default_factory=dict)


@dataclass
class SendMessageResult:
    message_id: str
    md5_of_message_body: str


class Queue:
    """A queue addressed by its URL."""

    def __init__(self, url: str, service: "SimpleQueueService"):
        self.url = url
        self.service = service

    @property
    def name(self) -> str:
        return urlparse(self.url).path.rstrip("/").rsplit("/", 1)[-1]

    def __repr__(self):
        return f"Queue(url={self.url!r})"

    def __eq__(self, other):
        if not isinstance(other, Queue):
            return NotImplemented
        return self.url == other.url

    def __hash__(self):
        return hash(self.url)

    def send_message(self, body: str, delay_seconds: int | None = None) -> SendMessageResult:
        """Send a message and check the MD5 digest the service computed."""
        root = self.service._call("SendMessage", {
            "MessageBody": body,
            "DelaySeconds": delay_seconds,
        }, url=self.url)

        result = SendMessageResult(
            message_id=find_text(root, "SendMessageResult/MessageId"),
            md5_of_message_body=find_text(root, "SendMessageResult/MD5OfMessageBody"),
        )
        if result.md5_of_message_body != _md5(body):
            raise MalformedResponseError(
                f"MD5 mismatch for sent message {result.message_id}: "
                f"expected {_md5(body)}, got {result.md5_of_message_body}"
            )
        return result

    def receive_messages(
        self,
        max_number_of_messages: int = 1,
        visibility_timeout: int | None = None,
        wait_time_seconds: int | None = None,
        attribute_names: list[str] | None = None,
    ) -> list[Message]:
        """Receive up to max_number_of_messages (1-10) messages."""
        params = {
            "MaxNumberOfMessages": max_number_of_messages,
            "VisibilityTimeout": visibility_timeout,
            "WaitTimeSeconds": wait_time_seconds,
        }
        params.update(_indexed("AttributeName", attribute_names or []))
        root = self.service._call("ReceiveMessage", params, url=self.url)

        messages = []
        for element in root.findall("ReceiveMessageResult/Message"):
            message = Message(
                message_id=find_text(element, "MessageId"),
                receipt_handle=find_text(element, "ReceiptHandle"),
                body=find_text(element, "Body"),
                md5_of_body=find_text(element, "MD5OfBody"),
                attributes=_attributes(element),
            )
            if message.md5_of_body != _md5(message.body):
                raise MalformedResponseError(
                    f"MD5 mismatch for received message {message.message_id}"
                )
            messages.append(message)

        logger.debug(f"[SQS] Received {len(messages)} messages from {self.name}")
        return messages

    def delete_message(self, receipt_handle: str) -> str:
        """Delete a received message. Returns the request id."""
        root = self.service._call("DeleteMessage", {"ReceiptHandle": receipt_handle}, url=self.url)
        return find_text(root, "ResponseMetadata/RequestId")

    def get_attributes(self, attribute_names=("All",)) -> dict[str, str]:
        """Get queue attributes such as ApproximateNumberOfMessages."""
        root = self.service._call(
            "GetQueueAttributes", _indexed("AttributeName", attribute_names), url=self.url
        )
        result = root.find("GetQueueAttributesResult")
        return _attributes(result) if result is not None else {}

    def delete(self) -> None:
        """Delete the queue (DeleteQueue)."""
        logger.info(f"[SQS] Deleting queue {self.url}")
        self.service._call("DeleteQueue", url=self.url)


class SimpleQueueService(QueryService):
    """The SQS endpoint of one region."""

    service_name = "sqs"
    api_version = "2012-11-05"

    def queue(self, url: str) -> Queue:
        return Queue(url, self)

    def create_queue(self, name: str, attributes: dict[str, str] | None = None) -> Queue:
        """Create a queue, or return the existing one with identical attributes."""
        params = {"QueueName": name}
        for i, (key, value) in enumerate((attributes or {}).items(), start=1):
            params[f"Attribute.{i}.Name"] = key
            params[f"Attribute.{i}.Value"] = value

        logger.info(f"[SQS] Creating queue {name}")
        root = self._call("CreateQueue", params)
        return self._queue_from(root, "CreateQueueResult/QueueUrl", "CreateQueue")

    def get_queue_url(self, name: str) -> Queue:
        root = self._call("GetQueueUrl", {"QueueName": name})
        return self._queue_from(root, "GetQueueUrlResult/QueueUrl", "GetQueueUrl")

    def list_queues(self, prefix: str | None = None) -> list[Queue]:
        """List queues, optionally only those whose name starts with prefix."""
        root = self._call("ListQueues", {"QueueNamePrefix": prefix})
        return [Queue(e.text or "", self) for e in root.findall("ListQueuesResult/QueueUrl")]

    def _queue_from(self, root, path: str, action: str) -> Queue:
        url = find_text(root, path)
        if not url:
            raise MalformedResponseError(f"{action} response has no QueueUrl")
        return Queue(url, self)
