"""Queue consumer feeding a fixed pool of report worker threads.

The calling thread long-polls the job queue and hands each message to a
bounded intake buffer; ``concurrency`` worker threads drain it. A message is
deleted from the queue only after its build succeeded; anything else is left
to the queue's visibility timeout and redrive policy.
"""

import asyncio
import logging
import queue
import threading
import uuid
from typing import Awaitable, Callable, Optional, Protocol

from pydantic import ValidationError

from reportgen.features.reports.errors import MalformedJobError, QueueTransportError
from reportgen.features.reports.models import Report
from reportgen.features.reports.queue import QueueMessage
from reportgen.features.reports.schemas import ReportJobMessage

logger = logging.getLogger(__name__)

BuildFn = Callable[[uuid.UUID, uuid.UUID], Awaitable[Report]]


class JobQueue(Protocol):
    def resolve_queue_url(self) -> str: ...

    def receive_batch(self, max_messages: int, wait_seconds: int) -> list[QueueMessage]: ...

    def delete_message(self, receipt_handle: str) -> None: ...


def parse_job(message: QueueMessage) -> ReportJobMessage:
    if not message.body or not message.body.strip():
        raise MalformedJobError(f"empty body in message {message.message_id}")
    try:
        return ReportJobMessage.model_validate_json(message.body)
    except ValidationError as exc:
        raise MalformedJobError(f"failed to parse message {message.message_id}: {exc}") from exc


class ReportWorkerPool:
    def __init__(
        self,
        job_queue: JobQueue,
        build: BuildFn,
        concurrency: int,
        job_timeout: float = 10.0,
        wait_seconds: int = 20,
        delete_malformed: bool = False,
        poll_interval: float = 0.5,
        receive_error_backoff: float = 1.0,
    ):
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self._queue = job_queue
        self._build = build
        self._concurrency = concurrency
        self._job_timeout = job_timeout
        self._wait_seconds = wait_seconds
        self._delete_malformed = delete_malformed
        self._poll_interval = poll_interval
        self._receive_error_backoff = receive_error_backoff
        self._intake: "queue.Queue[QueueMessage]" = queue.Queue(maxsize=concurrency)
        self._busy: set[int] = set()
        self._busy_lock = threading.Lock()

    @property
    def concurrency(self) -> int:
        return self._concurrency

    def busy_slots(self) -> int:
        with self._busy_lock:
            return len(self._busy)

    def run(self, stop_event: threading.Event) -> None:
        """Consume the queue until ``stop_event`` is set, then wait for the workers."""
        queue_url = self._queue.resolve_queue_url()
        logger.info("Job queue resolved", extra={"queue_url": queue_url, "concurrency": self._concurrency})

        workers = [
            threading.Thread(
                target=self._worker_loop,
                args=(slot, stop_event),
                name=f"report-worker-{slot}",
            )
            for slot in range(self._concurrency)
        ]
        for worker in workers:
            worker.start()

        try:
            self._receive_loop(stop_event)
        finally:
            stop_event.set()
            for worker in workers:
                worker.join()
        logger.info("Worker pool stopped")

    def _receive_loop(self, stop_event: threading.Event) -> None:
        while not stop_event.is_set():
            try:
                messages = self._queue.receive_batch(self._concurrency, self._wait_seconds)
            except QueueTransportError:
                logger.exception("Failed to receive messages")
                stop_event.wait(self._receive_error_backoff)
                continue

            for message in messages:
                if not self._dispatch(message, stop_event):
                    return

    def _dispatch(self, message: QueueMessage, stop_event: threading.Event) -> bool:
        while not stop_event.is_set():
            try:
                self._intake.put(message, timeout=self._poll_interval)
                return True
            except queue.Full:
                continue
        return False

    def _worker_loop(self, slot: int, stop_event: threading.Event) -> None:
        logger.info("Worker started", extra={"worker_id": slot})
        while not stop_event.is_set():
            try:
                message = self._intake.get(timeout=self._poll_interval)
            except queue.Empty:
                continue

            with self._busy_lock:
                self._busy.add(slot)
            try:
                self.process_message(message)
            except Exception:
                logger.exception(
                    "Failed to process message",
                    extra={"worker_id": slot, "message_id": message.message_id},
                )
            finally:
                with self._busy_lock:
                    self._busy.discard(slot)
                self._intake.task_done()
        logger.info("Worker shutting down", extra={"worker_id": slot})

    def process_message(self, message: QueueMessage) -> Optional[Report]:
        """Build the report referenced by ``message`` and acknowledge it.

        Build errors and timeouts propagate and the message stays on the
        queue. Malformed bodies return ``None``.
        """
        try:
            job = parse_job(message)
        except MalformedJobError:
            logger.warning("Discarding malformed job message", exc_info=True, extra={"message_id": message.message_id})
            if self._delete_malformed:
                self._delete(message)
            return None

        report = asyncio.run(self._run_build(job))
        if self._delete(message):
            logger.info(
                "Processed and deleted message",
                extra={
                    "message_id": message.message_id,
                    "report_id": str(job.report_id),
                    "status": report.status.value,
                },
            )
        return report

    async def _run_build(self, job: ReportJobMessage) -> Report:
        return await asyncio.wait_for(self._build(job.user_id, job.report_id), timeout=self._job_timeout)

    def _delete(self, message: QueueMessage) -> bool:
        try:
            self._queue.delete_message(message.receipt_handle)
        except QueueTransportError:
            logger.exception("Failed to delete message", extra={"message_id": message.message_id})
            return False
        return True
