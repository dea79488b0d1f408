"""Background polling consumer for a Kinesis shard."""

import queue
import threading
from datetime import datetime
from enum import Enum
from typing import Callable

from gaws.config import POLL_INTERVAL, get_logger
from gaws.errors import RequestCancelledError

logger = get_logger(__name__)
audit = get_logger("audit.stream_consumer")

# How long a blocked publish waits before re-checking the stop event
PUBLISH_WAIT = 0.1  # seconds


class ConsumerStatus(str, Enum):
    """Status of a stream consumer."""
    PENDING = "pending"       # Created, thread not started
    RUNNING = "running"       # Polling the shard
    COMPLETED = "completed"   # Shard closed and fully read
    STOPPED = "stopped"       # stop() was called
    FAILED = "failed"         # A fetch raised; error published on .errors


class StreamConsumer:
    """Polls a shard on a daemon thread and hands records over one by one.

    Records arrive on ``records`` and the terminating exception, if any, on
    ``errors``. Both queues hold a single item, so the polling thread blocks
    until the reader takes the previous record, and an error is only
    published once every record before it has been taken. Iterating the consumer yields
    records in order and raises the error after the last delivered record.

    Args:
        fetch: Called with a shard iterator and ``cancel=<stop event>``, returns
            a batch exposing ``records`` and ``next_shard_iterator``
        shard_iterator: Where to start reading
        name: Label for logs
        poll_interval: Seconds to wait after an empty batch
    """

    def __init__(
        self,
        fetch: Callable,
        shard_iterator: str,
        name: str = "stream",
        poll_interval: float = POLL_INTERVAL,
    ):
        self.name = name
        self.shard_iterator = shard_iterator
        self.poll_interval = poll_interval
        self.records: queue.Queue = queue.Queue(maxsize=1)
        self.errors: queue.Queue = queue.Queue(maxsize=1)
        self.status = ConsumerStatus.PENDING
        self.error: Exception | None = None
        self.records_delivered = 0
        self.started_at: datetime | None = None
        self.completed_at: datetime | None = None
        self._fetch = fetch
        self._thread: threading.Thread | None = None
        self._stop_event = threading.Event()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> "StreamConsumer":
        """Start the polling thread."""
        if self._thread is not None:
            raise RuntimeError(f"Consumer for {self.name} was already started")

        self.started_at = datetime.utcnow()
        logger.info(f"[STREAM_CONSUMER] Starting consumer for {self.name}")
        audit.info(
            "Stream consumer started",
            extra={"audit_data": {
                "event": "stream_consumer_start",
                "stream_name": self.name,
            }},
        )

        self._thread = threading.Thread(
            target=self._consume_loop,
            name=f"stream-consumer-{self.name}",
            daemon=True,
        )
        self._thread.start()
        return self

    def stop(self, timeout: float | None = None) -> None:
        """Signal the polling thread to stop and wait for it to exit."""
        self._stop_event.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop()

    def __iter__(self):
        while True:
            try:
                yield self.records.get(timeout=PUBLISH_WAIT)
                continue
            except queue.Empty:
                pass

            if self.is_running:
                continue

            # The thread is gone; anything it published is already queued.
            try:
                yield self.records.get_nowait()
                continue
            except queue.Empty:
                pass
            try:
                raise self.errors.get_nowait()
            except queue.Empty:
                return

    def _publish(self, record) -> bool:
        """Block until the record is taken off the queue; False if stopped first."""
        while not self._stop_event.is_set():
            try:
                self.records.put(record, timeout=PUBLISH_WAIT)
            except queue.Full:
                continue
            self.records_delivered += 1
            return True
        return False

    def _wait_until_drained(self) -> None:
        """Block until the reader has taken every published record, or stop is set."""
        while not self.records.empty():
            if self._stop_event.wait(PUBLISH_WAIT):
                return

    def _consume_loop(self):
        """Background thread: fetch batches and publish their records."""
        self.status = ConsumerStatus.RUNNING

        try:
            while not self._stop_event.is_set():
                batch = self._fetch(self.shard_iterator, cancel=self._stop_event)
                logger.debug(f"[STREAM_CONSUMER] {self.name}: fetched {len(batch.records)} records")

                for record in batch.records:
                    if not self._publish(record):
                        break
                if self._stop_event.is_set():
                    break

                if not batch.next_shard_iterator:
                    logger.info(f"[STREAM_CONSUMER] Shard closed for {self.name}")
                    self.status = ConsumerStatus.COMPLETED
                    return

                self.shard_iterator = batch.next_shard_iterator
                if not batch.records:
                    self._stop_event.wait(self.poll_interval)

            self.status = ConsumerStatus.STOPPED

        except RequestCancelledError:
            logger.info(f"[STREAM_CONSUMER] Fetch cancelled by stop for {self.name}")
            self.status = ConsumerStatus.STOPPED

        except Exception as e:
            logger.error(f"[STREAM_CONSUMER] Error consuming {self.name}: {e}")
            self.status = ConsumerStatus.FAILED
            self.error = e
            self._wait_until_drained()
            self.errors.put(e)

        finally:
            self.completed_at = datetime.utcnow()
            audit.info(
                "Stream consumer completed",
                extra={"audit_data": {
                    "event": "stream_consumer_complete",
                    "stream_name": self.name,
                    "status": self.status.value,
                    "records_delivered": self.records_delivered,
                    "error": str(self.error) if self.error else None,
                }},
            )
