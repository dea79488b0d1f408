"""Python bindings for Kinesis, CloudFormation and SQS over their signed HTTP APIs."""

from gaws.errors import (
    AWSError,
    ExceededMaxRetriesError,
    GawsError,
    MalformedResponseError,
    RequestCancelledError,
    TransportError,
    UnknownRegionError,
)
from gaws.regions import AWSRegion, get_endpoint, register_region
from gaws.services.cloudformation_service import CloudFormationService, Template
from gaws.services.kinesis_service import KinesisService, Record, Shard, Stream
from gaws.services.retry import AWSRequest, RequestSender, Signer
from gaws.services.sqs_service import Queue, SimpleQueueService
from gaws.services.stream_consumer import ConsumerStatus, StreamConsumer

__version__ = "0.2.0"

__all__ = [
    "AWSError",
    "AWSRegion",
    "AWSRequest",
    "CloudFormationService",
    "ConsumerStatus",
    "ExceededMaxRetriesError",
    "GawsError",
    "KinesisService",
    "MalformedResponseError",
    "Queue",
    "Record",
    "RequestCancelledError",
    "RequestSender",
    "Shard",
    "Signer",
    "SimpleQueueService",
    "Stream",
    "StreamConsumer",
    "Template",
    "TransportError",
    "UnknownRegionError",
    "get_endpoint",
    "register_region",
]
