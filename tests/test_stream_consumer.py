"""Tests for the background stream consumer."""

import queue
import threading
import time

import pytest
import requests

from gaws.errors import TransportError
from gaws.services.kinesis_service import GetRecordsResult, KinesisService, Record
from gaws.services.stream_consumer import ConsumerStatus, StreamConsumer

from helpers import INTERNAL, TEST_ENDPOINT, FakeSession, make_response

WAIT = 5  # seconds; generous upper bound for thread handoffs


def _wait_for(condition, timeout=WAIT):
    deadline = time.monotonic() + timeout
    while not condition():
        assert time.monotonic() < deadline, "condition not met in time"
        time.sleep(0.01)


def _batch(*payloads, next_iterator="next"):
    return GetRecordsResult(
        records=[Record(data=p, sequence_number=str(i)) for i, p in enumerate(payloads)],
        next_shard_iterator=next_iterator,
    )


class ScriptedFetch:
    """Returns scripted batches and records the iterators it was called with."""

    def __init__(self, *script):
        self.script = list(script)
        self.iterators = []

    def __call__(self, iterator, cancel=None):
        self.iterators.append(iterator)
        item = self.script.pop(0) if len(self.script) > 1 else self.script[0]
        if isinstance(item, BaseException):
            raise item
        return item


def test_record_then_transport_error(credentials):
    """One record arrives on the records queue before the error on the errors queue."""
    session = FakeSession(
        make_response(200, {
            "NextShardIterator": "iter-2",
            "Records": [{"Data": "SGVsbG8gV29ybGQ=", "PartitionKey": "k", "SequenceNumber": "1"}],
        }),
        requests.ConnectionError("connection reset"),
    )
    service = KinesisService(TEST_ENDPOINT, credentials=credentials, session=session)

    consumer = service.stream("foo").stream_records("iter-1")
    record = consumer.records.get(timeout=WAIT)
    error = consumer.errors.get(timeout=WAIT)
    consumer.stop(WAIT)

    assert record.bytes() == b"Hello World"
    assert isinstance(error, TransportError)
    assert consumer.records.empty()
    assert consumer.status == ConsumerStatus.FAILED
    assert [body["ShardIterator"] for body in session.json_bodies()] == ["iter-1", "iter-2"]


def test_error_held_back_until_record_taken(credentials):
    session = FakeSession(
        make_response(200, {
            "NextShardIterator": "iter-2",
            "Records": [{"Data": "SGVsbG8gV29ybGQ=", "PartitionKey": "k", "SequenceNumber": "1"}],
        }),
        requests.ConnectionError("connection reset"),
    )
    service = KinesisService(TEST_ENDPOINT, credentials=credentials, session=session)
    consumer = service.stream("foo").stream_records("iter-1")
    _wait_for(lambda: len(session.calls) == 2)

    # The failing fetch already happened, but the record is still unread.
    with pytest.raises(queue.Empty):
        consumer.errors.get(timeout=0.3)

    record = consumer.records.get(timeout=WAIT)
    error = consumer.errors.get(timeout=WAIT)
    consumer.stop(WAIT)

    assert record.bytes() == b"Hello World"
    assert isinstance(error, TransportError)
    assert consumer.records.empty()


def test_iteration_yields_records_then_raises():
    fetch = ScriptedFetch(_batch("YQ==", "Yg=="), RuntimeError("boom"))
    consumer = StreamConsumer(fetch, "start", name="foo").start()

    seen = []
    with pytest.raises(RuntimeError, match="boom"):
        for record in consumer:
            seen.append(record.bytes())

    assert seen == [b"a", b"b"]
    assert fetch.iterators == ["start", "next"]


def test_closed_shard_completes():
    fetch = ScriptedFetch(_batch("YQ==", next_iterator=None))
    with StreamConsumer(fetch, "start").start() as consumer:
        assert [r.bytes() for r in consumer] == [b"a"]

    assert consumer.status == ConsumerStatus.COMPLETED
    assert consumer.records_delivered == 1
    assert consumer.errors.empty()


def test_stop_ends_polling_promptly():
    fetched = threading.Event()

    def fetch(iterator, cancel=None):
        fetched.set()
        return _batch()  # always empty

    consumer = StreamConsumer(fetch, "start", poll_interval=60).start()
    assert fetched.wait(WAIT)

    consumer.stop(WAIT)

    assert not consumer.is_running
    assert consumer.status == ConsumerStatus.STOPPED


def test_stop_while_blocked_on_full_queue():
    fetch = ScriptedFetch(_batch("YQ==", "Yg==", "Yw=="))
    consumer = StreamConsumer(fetch, "start").start()

    # Nobody reads; the thread blocks publishing the second record.
    first = consumer.records.get(timeout=WAIT)
    consumer.stop(WAIT)

    assert first.bytes() == b"a"
    assert not consumer.is_running
    assert consumer.status == ConsumerStatus.STOPPED
    assert fetch.iterators == ["start"]


def test_cannot_start_twice():
    consumer = StreamConsumer(ScriptedFetch(_batch(next_iterator=None)), "start").start()
    with pytest.raises(RuntimeError):
        consumer.start()
    consumer.stop(WAIT)


def test_stop_interrupts_retry_backoff(credentials):
    session = FakeSession(make_response(500, INTERNAL))
    service = KinesisService(TEST_ENDPOINT, credentials=credentials, max_tries=5, session=session)
    service.sender.base_delay = 30  # first backoff would be a minute

    consumer = service.stream("foo").stream_records("iter-1")
    _wait_for(lambda: len(session.calls) == 1)

    started = time.monotonic()
    consumer.stop(WAIT)

    assert time.monotonic() - started < 2
    assert not consumer.is_running
    assert consumer.status == ConsumerStatus.STOPPED
    assert consumer.errors.empty()
    assert len(session.calls) == 1
