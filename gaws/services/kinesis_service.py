"""Kinesis Data Streams API wrapper over the JSON 1.1 protocol.

See http://docs.aws.amazon.com/kinesis/latest/APIReference/ for the operations.
"""

import base64
import binascii
import json
import threading
from dataclasses import dataclass, field

from gaws.config import get_logger
from gaws.errors import MalformedResponseError
from gaws.services.base import AWSService
from gaws.services.retry import make_retry_predicate, parse_json_error
from gaws.services.stream_consumer import StreamConsumer

logger = get_logger(__name__)

TARGET_PREFIX = "Kinesis_20131202"
CONTENT_TYPE = "application/x-amz-json-1.1"

KINESIS_THROTTLING_TYPES = frozenset({
    "ProvisionedThroughputExceededException",
    "ThrottlingException",
    "Throttling",
})

kinesis_retry_predicate = make_retry_predicate(parse_json_error, KINESIS_THROTTLING_TYPES)

SHARD_ITERATOR_TYPES = (
    "AT_SEQUENCE_NUMBER",
    "AFTER_SEQUENCE_NUMBER",
    "TRIM_HORIZON",
    "LATEST",
)


@dataclass
class Record:
    """A data record read from a stream. ``data`` is base64 encoded."""
    data: str
    partition_key: str = ""
    sequence_number: str = ""
    approximate_arrival_timestamp: float | None = None

    @classmethod
    def from_dict(cls, raw: dict) -> "Record":
        return cls(
            data=raw["Data"],
            partition_key=raw.get("PartitionKey", ""),
            sequence_number=raw.get("SequenceNumber", ""),
            approximate_arrival_timestamp=raw.get("ApproximateArrivalTimestamp"),
        )

    def bytes(self) -> bytes:
        """Decode the record payload."""
        try:
            return base64.b64decode(self.data, validate=True)
        except (binascii.Error, ValueError) as e:
            raise MalformedResponseError(
                f"Record {self.sequence_number or '<unknown>'} has invalid base64 data: {e}"
            ) from e


@dataclass
class HashKeyRange:
    starting_hash_key: str
    ending_hash_key: str


@dataclass
class SequenceNumberRange:
    starting_sequence_number: str
    ending_sequence_number: str = ""  # empty while the shard is open


@dataclass
class Shard:
    """A shard in a Kinesis stream."""
    shard_id: str
    hash_key_range: HashKeyRange
    sequence_number_range: SequenceNumberRange
    parent_shard_id: str = ""
    adjacent_parent_shard_id: str = ""
    stream: "Stream | None" = field(default=None, repr=False, compare=False)

    @classmethod
    def from_dict(cls, raw: dict, stream: "Stream | None" = None) -> "Shard":
        hash_keys = raw["HashKeyRange"]
        sequence_numbers = raw["SequenceNumberRange"]
        return cls(
            shard_id=raw["ShardId"],
            hash_key_range=HashKeyRange(
                starting_hash_key=hash_keys["StartingHashKey"],
                ending_hash_key=hash_keys["EndingHashKey"],
            ),
            sequence_number_range=SequenceNumberRange(
                starting_sequence_number=sequence_numbers["StartingSequenceNumber"],
                ending_sequence_number=sequence_numbers.get("EndingSequenceNumber", ""),
            ),
            parent_shard_id=raw.get("ParentShardId", ""),
            adjacent_parent_shard_id=raw.get("AdjacentParentShardId", ""),
            stream=stream,
        )

    def get_shard_iterator(
        self,
        shard_iterator_type: str,
        starting_sequence_number: str | None = None,
    ) -> str:
        """Get a shard iterator for this shard.

        Args:
            shard_iterator_type: AT_SEQUENCE_NUMBER, AFTER_SEQUENCE_NUMBER, TRIM_HORIZON or LATEST
            starting_sequence_number: Required by the *_SEQUENCE_NUMBER types

        Returns:
            The shard iterator string.
        """
        if shard_iterator_type not in SHARD_ITERATOR_TYPES:
            raise ValueError(
                f"Unknown shard iterator type {shard_iterator_type!r}, "
                f"expected one of {', '.join(SHARD_ITERATOR_TYPES)}"
            )
        if self.stream is None:
            raise ValueError(f"Shard {self.shard_id} is not attached to a stream")

        payload = {
            "ShardId": self.shard_id,
            "ShardIteratorType": shard_iterator_type,
            "StreamName": self.stream.name,
        }
        if starting_sequence_number:
            payload["StartingSequenceNumber"] = starting_sequence_number

        return self.stream.service._call_and_parse(
            "GetShardIterator", payload, lambda doc: doc["ShardIterator"]
        )


@dataclass
class StreamDescription:
    stream_name: str
    stream_arn: str
    stream_status: str
    shards: list[Shard]
    has_more_shards: bool = False


@dataclass
class PutRecordResult:
    shard_id: str
    sequence_number: str


@dataclass
class ListStreamsResult:
    streams: list["Stream"]
    has_more_streams: bool = False


@dataclass
class GetRecordsResult:
    records: list[Record]
    next_shard_iterator: str | None = None  # None once the shard is closed and drained
    millis_behind_latest: int | None = None

    @classmethod
    def from_dict(cls, raw: dict) -> "GetRecordsResult":
        return cls(
            records=[Record.from_dict(r) for r in raw.get("Records", [])],
            next_shard_iterator=raw.get("NextShardIterator"),
            millis_behind_latest=raw.get("MillisBehindLatest"),
        )


class Stream:
    """A Kinesis stream bound to the service that owns it."""

    def __init__(self, name: str, service: "KinesisService"):
        self.name = name
        self.service = service

    def __repr__(self):
        return f"Stream(name={self.name!r}, endpoint={self.service.endpoint!r})"

    def __eq__(self, other):
        if not isinstance(other, Stream):
            return NotImplemented
        return self.name == other.name and self.service is other.service

    def __hash__(self):
        return hash((self.name, id(self.service)))

    def put_record(
        self,
        partition_key: str,
        data: bytes,
        explicit_hash_key: str | None = None,
        sequence_number_for_ordering: str | None = None,
    ) -> PutRecordResult:
        """Put a single data record on the stream."""
        payload = {
            "StreamName": self.name,
            "Data": base64.b64encode(data).decode("ascii"),
            "PartitionKey": partition_key,
        }
        if explicit_hash_key:
            payload["ExplicitHashKey"] = explicit_hash_key
        if sequence_number_for_ordering:
            payload["SequenceNumberForOrdering"] = sequence_number_for_ordering

        return self.service._call_and_parse(
            "PutRecord",
            payload,
            lambda doc: PutRecordResult(shard_id=doc["ShardId"], sequence_number=doc["SequenceNumber"]),
        )

    def delete(self) -> None:
        """Delete the stream (DeleteStream)."""
        logger.info(f"[KINESIS] Deleting stream {self.name}")
        self.service._call("DeleteStream", {"StreamName": self.name})

    def describe(
        self,
        limit: int | None = None,
        exclusive_start_shard_id: str | None = None,
    ) -> StreamDescription:
        """Describe the stream and its shards (one page, see has_more_shards)."""
        payload = {"StreamName": self.name}
        if limit:
            payload["Limit"] = limit
        if exclusive_start_shard_id:
            payload["ExclusiveStartShardId"] = exclusive_start_shard_id

        def parse(doc):
            raw = doc["StreamDescription"]
            return StreamDescription(
                stream_name=raw["StreamName"],
                stream_arn=raw.get("StreamARN", ""),
                stream_status=raw["StreamStatus"],
                shards=[Shard.from_dict(s, stream=self) for s in raw.get("Shards", [])],
                has_more_shards=bool(raw.get("HasMoreShards", False)),
            )

        return self.service._call_and_parse("DescribeStream", payload, parse)

    def get_records(
        self,
        shard_iterator: str,
        limit: int | None = None,
        cancel: threading.Event | None = None,
    ) -> GetRecordsResult:
        """Read a batch of records from the position of a shard iterator.

        Setting cancel aborts the call while it is backing off between retries.
        """
        payload = {"ShardIterator": shard_iterator}
        if limit:
            payload["Limit"] = limit
        return self.service._call_and_parse(
            "GetRecords", payload, GetRecordsResult.from_dict, cancel=cancel
        )

    def merge_shards(self, shard_to_merge: str, adjacent_shard_to_merge: str) -> None:
        """Merge two adjacent shards."""
        logger.info(f"[KINESIS] Merging {shard_to_merge} with {adjacent_shard_to_merge} in {self.name}")
        self.service._call("MergeShards", {
            "StreamName": self.name,
            "ShardToMerge": shard_to_merge,
            "AdjacentShardToMerge": adjacent_shard_to_merge,
        })

    def split_shard(self, shard_to_split: str, new_starting_hash_key: str) -> None:
        """Split a shard in two at new_starting_hash_key."""
        logger.info(f"[KINESIS] Splitting {shard_to_split} at {new_starting_hash_key} in {self.name}")
        self.service._call("SplitShard", {
            "StreamName": self.name,
            "ShardToSplit": shard_to_split,
            "NewStartingHashKey": new_starting_hash_key,
        })

    def stream_records(self, shard_iterator: str, limit: int | None = None, **kwargs) -> StreamConsumer:
        """Start a background consumer that polls the shard from shard_iterator.

        Extra keyword arguments are passed to StreamConsumer.
        """
        consumer = StreamConsumer(
            fetch=lambda iterator, cancel=None: self.get_records(iterator, limit=limit, cancel=cancel),
            shard_iterator=shard_iterator,
            name=self.name,
            **kwargs,
        )
        consumer.start()
        return consumer


class KinesisService(AWSService):
    """The Kinesis endpoint of one region."""

    service_name = "kinesis"
    retry_predicate = staticmethod(kinesis_retry_predicate)

    def _call(self, operation: str, payload: dict, cancel: threading.Event | None = None) -> bytes:
        headers = {
            "X-Amz-Target": f"{TARGET_PREFIX}.{operation}",
            "Content-Type": CONTENT_TYPE,
        }
        return self._send(json.dumps(payload).encode("utf-8"), headers, cancel=cancel)

    def _call_and_parse(self, operation: str, payload: dict, parse, cancel: threading.Event | None = None):
        body = self._call(operation, payload, cancel=cancel)
        try:
            return parse(json.loads(body))
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise MalformedResponseError(
                f"{operation} returned an unexpected response: {e!r}", body=body
            ) from e

    def stream(self, name: str) -> Stream:
        return Stream(name, self)

    def create_stream(self, name: str, shard_count: int) -> Stream:
        """Create a stream. It starts in the CREATING state."""
        logger.info(f"[KINESIS] Creating stream {name} with {shard_count} shards")
        self._call("CreateStream", {"StreamName": name, "ShardCount": shard_count})
        return Stream(name, self)

    def list_streams(
        self,
        limit: int | None = None,
        exclusive_start_stream_name: str | None = None,
    ) -> ListStreamsResult:
        """List one page of streams; has_more_streams tells if more exist."""
        payload = {}
        if limit:
            payload["Limit"] = limit
        if exclusive_start_stream_name:
            payload["ExclusiveStartStreamName"] = exclusive_start_stream_name

        def parse(doc):
            return ListStreamsResult(
                streams=[Stream(name, self) for name in doc["StreamNames"]],
                has_more_streams=bool(doc.get("HasMoreStreams", False)),
            )

        result = self._call_and_parse("ListStreams", payload, parse)
        logger.debug(f"[KINESIS] Listed {len(result.streams)} streams (more={result.has_more_streams})")
        return result
