"""Exception hierarchy for gaws."""

from __future__ import annotations


class GawsError(Exception):
    """Base exception for all gaws errors."""

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint = hint


class TransportError(GawsError):
    """The request never produced an HTTP response. Not retried."""


class MalformedResponseError(GawsError):
    """A response body could not be parsed into the expected shape."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        body: bytes = b"",
        hint: str | None = None,
    ) -> None:
        super().__init__(message, hint=hint)
        self.status_code = status_code
        self.body = body


class AWSError(GawsError):
    """The error document returned by an AWS service.

    ``type`` is the service error code (``__type`` for JSON services,
    ``Code`` for Query services).
    """

    def __init__(
        self,
        type: str,
        message: str,
        *,
        status_code: int | None = None,
        body: bytes = b"",
        hint: str | None = None,
    ) -> None:
        super().__init__(f"{type}: {message}", hint=hint)
        self.type = type
        self.message = message
        self.status_code = status_code
        self.body = body

    def __eq__(self, other):
        if not isinstance(other, AWSError):
            return NotImplemented
        return (self.type, self.message) == (other.type, other.message)

    def __hash__(self):
        return hash((self.type, self.message))


class ExceededMaxRetriesError(GawsError):
    """Every attempt of a request failed with a transient error."""

    type = "GawsExceededMaxRetries"
    message = "The maximum number of retries for this request was exceeded."

    def __init__(
        self,
        *,
        attempts: int,
        last_error: BaseException | None = None,
        body: bytes = b"",
    ) -> None:
        super().__init__(
            f"{self.type}: {self.message}",
            hint=f"Last error after {attempts} attempts: {last_error}",
        )
        self.attempts = attempts
        self.last_error = last_error
        self.body = body


class UnknownRegionError(GawsError):
    """No endpoint is known for the requested region or service."""


class RequestCancelledError(GawsError):
    """The request was cancelled while waiting to retry."""
