"""Signed AWS requests with retry classification and exponential backoff."""

import json
import threading
import time
from dataclasses import dataclass, field
from typing import Callable

import boto3
import requests
from botocore.auth import SigV4Auth
from botocore.awsrequest import AWSRequest as BotocoreRequest

from gaws.config import BACKOFF_BASE_DELAY, HTTP_TIMEOUT, MAX_TRIES, get_logger
from gaws.errors import (
    AWSError,
    ExceededMaxRetriesError,
    GawsError,
    MalformedResponseError,
    RequestCancelledError,
    TransportError,
)

logger = get_logger(__name__)

# (status_code, body) -> (should_retry, error or None)
RetryPredicate = Callable[[int, bytes], tuple[bool, Exception | None]]

THROTTLING_TYPES = frozenset({"Throttling", "ThrottlingException"})

# Cache the default credential chain per process
_credentials = {}


def get_default_credentials(region: str):
    """Resolve credentials through the boto3 default chain, cached per region."""
    if region not in _credentials:
        credentials = boto3.Session(region_name=region).get_credentials()
        if credentials is None:
            raise GawsError(
                "No AWS credentials found",
                hint="Set AWS_ACCESS_KEY_ID/AWS_SECRET_ACCESS_KEY or configure a profile.",
            )
        _credentials[region] = credentials
    return _credentials[region]


def parse_json_error(body: bytes) -> tuple[str, str]:
    """Decode a ``{"__type": ..., "message": ...}`` error document.

    Raises ValueError when the body is not a JSON object.
    """
    document = json.loads(body)
    if not isinstance(document, dict):
        raise ValueError(f"expected a JSON object, got {type(document).__name__}")

    error_type = str(document.get("__type", ""))
    # Some services qualify the type, e.g. "com.amazonaws.kinesis#ResourceNotFoundException"
    error_type = error_type.rsplit("#", 1)[-1]
    message = str(document.get("message", document.get("Message", "")))
    return error_type, message


def make_retry_predicate(
    parse_error: Callable[[bytes], tuple[str, str]],
    throttling_types: frozenset[str],
) -> RetryPredicate:
    """Build a retry predicate for one service's error vocabulary.

    - status < 400: success, no retry
    - unparseable error body: MalformedResponseError, no retry
    - status >= 500: retry
    - 4xx whose type is in throttling_types: retry
    - any other 4xx: permanent AWSError
    """

    def predicate(status_code: int, body: bytes) -> tuple[bool, Exception | None]:
        if status_code < 400:
            return False, None

        try:
            error_type, message = parse_error(body)
        except ValueError as e:
            return False, MalformedResponseError(
                f"Could not parse error response (status={status_code}): {e}",
                status_code=status_code,
                body=body,
            )

        error = AWSError(error_type, message, status_code=status_code, body=body)
        if status_code >= 500:
            return True, error
        if error_type in throttling_types:
            return True, error
        return False, error

    return predicate


json_retry_predicate = make_retry_predicate(parse_json_error, THROTTLING_TYPES)


@dataclass
class AWSRequest:
    """A request to AWS, kept unsigned so every attempt can be signed afresh."""
    url: str
    method: str = "POST"
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    retry_predicate: RetryPredicate = json_retry_predicate


class Signer:
    """Attaches SigV4 headers for one service in one region."""

    def __init__(self, service_name: str, region: str, credentials=None):
        self.service_name = service_name
        self.region = region
        self._credentials = credentials

    @property
    def credentials(self):
        if self._credentials is None:
            self._credentials = get_default_credentials(self.region)
        return self._credentials

    def sign(self, request: AWSRequest) -> dict[str, str]:
        """Return the request headers with the SigV4 signature added."""
        unsigned = BotocoreRequest(
            method=request.method,
            url=request.url,
            data=request.body,
            headers=dict(request.headers),
        )
        frozen = self.credentials.get_frozen_credentials()
        SigV4Auth(frozen, self.service_name, self.region).add_auth(unsigned)
        return dict(unsigned.headers.items())


def backoff_delay(attempt: int, base_delay: float = BACKOFF_BASE_DELAY) -> float:
    """Seconds to sleep after a failed attempt (100ms * 2**attempt by default)."""
    return base_delay * (2 ** attempt)


class RequestSender:
    """Sends signed requests, retrying transient failures with exponential backoff."""

    def __init__(
        self,
        signer: Signer,
        max_tries: int | None = None,
        session: requests.Session | None = None,
        timeout: float = HTTP_TIMEOUT,
        base_delay: float = BACKOFF_BASE_DELAY,
    ):
        self.signer = signer
        self.max_tries = MAX_TRIES if max_tries is None else max_tries
        if self.max_tries < 1:
            raise ValueError("max_tries must be >= 1")
        self.session = session or requests.Session()
        self.timeout = timeout
        self.base_delay = base_delay

    def do(self, request: AWSRequest, cancel: threading.Event | None = None) -> bytes:
        """Make the request and return the response body.

        When cancel is given, backoff waits on it and a set event aborts the
        request instead of sleeping through the remaining attempts.

        Raises:
            TransportError: the request could not be sent or read (never retried)
            AWSError / MalformedResponseError: permanent failure from the predicate
            ExceededMaxRetriesError: every attempt failed transiently
            RequestCancelledError: cancel was set during a backoff wait
        """
        last_body = b""
        last_error = None

        for attempt in range(1, self.max_tries + 1):
            headers = self.signer.sign(request)
            try:
                response = self.session.request(
                    request.method,
                    request.url,
                    headers=headers,
                    data=request.body,
                    timeout=self.timeout,
                )
                body = response.content
            except requests.RequestException as e:
                raise TransportError(f"{request.method} {request.url} failed: {e}") from e

            should_retry, error = request.retry_predicate(response.status_code, body)
            if not should_retry:
                if error is not None:
                    raise error
                return body

            last_body, last_error = body, error
            if attempt < self.max_tries:
                delay = backoff_delay(attempt, self.base_delay)
                logger.warning(
                    f"[RETRY] {request.url} returned {response.status_code} ({error}), "
                    f"attempt {attempt}/{self.max_tries}. Retrying in {delay:.1f}s"
                )
                if cancel is None:
                    time.sleep(delay)
                elif cancel.wait(delay):
                    logger.info(f"[RETRY] Cancelled {request.url} after attempt {attempt}")
                    raise RequestCancelledError(
                        f"{request.method} {request.url} cancelled after {attempt} attempts",
                        hint=f"Last error: {error}",
                    )

        logger.error(f"[RETRY] Max tries ({self.max_tries}) exceeded for {request.url}: {last_error}")
        raise ExceededMaxRetriesError(
            attempts=self.max_tries,
            last_error=last_error,
            body=last_body,
        )
