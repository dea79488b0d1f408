"""Shared test doubles for the HTTP layer."""

import json
from types import SimpleNamespace

import requests

TEST_ENDPOINT = "https://test.amazonaws.com"

NOT_FOUND = {"__type": "NotFound", "message": "Could not find something"}
THROTTLING = {"__type": "Throttling", "message": "You have been throttled"}
INTERNAL = {"__type": "InternalFailure", "message": "Something broke"}


def make_response(status_code: int = 200, body=b"OK") -> requests.Response:
    """Build a requests.Response with a fully buffered body."""
    if isinstance(body, (dict, list)):
        body = json.dumps(body)
    if isinstance(body, str):
        body = body.encode("utf-8")
    response = requests.Response()
    response.status_code = status_code
    response._content = body
    return response


class FakeSession:
    """Stands in for requests.Session, replaying scripted responses.

    Each request consumes the next item; the last item repeats forever.
    Exceptions in the script are raised instead of returned.
    """

    def __init__(self, *script):
        self.script = list(script) or [make_response()]
        self.calls = []

    def request(self, method, url, headers=None, data=None, timeout=None):
        self.calls.append(SimpleNamespace(
            method=method, url=url, headers=headers or {}, data=data, timeout=timeout,
        ))
        item = self.script.pop(0) if len(self.script) > 1 else self.script[0]
        if isinstance(item, BaseException):
            raise item
        return item

    def json_bodies(self):
        return [json.loads(call.data) for call in self.calls]

    def targets(self):
        return [call.headers.get("X-Amz-Target") for call in self.calls]
