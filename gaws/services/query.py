"""Query protocol support: form-encoded requests and XML responses.

CloudFormation and SQS both speak this protocol. Errors come back as::

    <ErrorResponse>
      <Error><Type>Sender</Type><Code>Throttling</Code><Message>Rate exceeded</Message></Error>
      <RequestId>...</RequestId>
    </ErrorResponse>
"""

import xml.etree.ElementTree as ET
from urllib.parse import urlencode

from gaws.errors import MalformedResponseError
from gaws.services.base import AWSService
from gaws.services.retry import make_retry_predicate

QUERY_THROTTLING_TYPES = frozenset({"Throttling", "RequestThrottled", "ThrottlingException"})

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded; charset=utf-8"


def parse_xml(body: bytes) -> ET.Element:
    """Parse an XML document and drop namespaces from every tag."""
    try:
        root = ET.fromstring(body)
    except ET.ParseError as e:
        raise ValueError(f"invalid XML: {e}") from e
    for element in root.iter():
        if "}" in element.tag:
            element.tag = element.tag.split("}", 1)[1]
    return root


def find_text(element: ET.Element, path: str, default: str = "") -> str:
    found = element.find(path)
    if found is None or found.text is None:
        return default
    return found.text


def parse_query_error(body: bytes) -> tuple[str, str]:
    """Decode an ErrorResponse document into (code, message)."""
    root = parse_xml(body)
    error = root if root.tag == "Error" else root.find(".//Error")
    if error is None:
        raise ValueError(f"no Error element in <{root.tag}>")
    return find_text(error, "Code"), find_text(error, "Message")


query_retry_predicate = make_retry_predicate(parse_query_error, QUERY_THROTTLING_TYPES)


class QueryService(AWSService):
    """A service called with Action/Version form parameters."""

    api_version = ""
    retry_predicate = staticmethod(query_retry_predicate)

    def _call(self, action: str, params: dict | None = None, url: str | None = None) -> ET.Element:
        """Invoke an action and return the parsed response root."""
        form = {"Action": action, "Version": self.api_version}
        form.update({k: v for k, v in (params or {}).items() if v is not None})
        body = urlencode(form).encode("utf-8")

        response = self._send(body, {"Content-Type": FORM_CONTENT_TYPE}, url=url)
        try:
            return parse_xml(response)
        except ValueError as e:
            raise MalformedResponseError(
                f"{action} returned an unreadable response: {e}", body=response
            ) from e
