"""Common plumbing for the service clients."""

import threading

from gaws.config import AWS_REGION
from gaws.regions import get_endpoint
from gaws.services.retry import AWSRequest, RequestSender, Signer, json_retry_predicate


class AWSService:
    """An AWS service endpoint plus the sender used to talk to it.

    Args:
        endpoint: Explicit endpoint URL; looked up from the region catalog when omitted
        region: Region used for endpoint lookup and signing (defaults to AWS_REGION)
        credentials: botocore credentials; the boto3 default chain is used when omitted
        max_tries: Attempts per request (defaults to MAX_TRIES)
        session: requests.Session to send with
    """

    service_name = ""
    retry_predicate = staticmethod(json_retry_predicate)

    def __init__(self, endpoint=None, *, region=None, credentials=None, max_tries=None, session=None):
        self.region = region or AWS_REGION
        self.endpoint = endpoint or get_endpoint(self.service_name, self.region)
        self.sender = RequestSender(
            Signer(self.service_name, self.region, credentials),
            max_tries=max_tries,
            session=session,
        )

    def __repr__(self):
        return f"{type(self).__name__}(endpoint={self.endpoint!r})"

    def _send(
        self,
        body: bytes,
        headers: dict[str, str],
        url: str | None = None,
        cancel: threading.Event | None = None,
    ) -> bytes:
        request = AWSRequest(
            url=url or self.endpoint,
            headers=headers,
            body=body,
            retry_predicate=self.retry_predicate,
        )
        return self.sender.do(request, cancel=cancel)
