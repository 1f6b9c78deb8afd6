import asyncio
import threading
import time
import uuid
from datetime import datetime
from typing import Optional

from reportgen.features.reports.errors import (
    ArtifactStoreError,
    QueueTransportError,
    ReportNotFoundError,
    ReportPersistenceError,
)
from reportgen.features.reports.models import Report
from reportgen.features.reports.queue import QueueMessage
from reportgen.features.reports.schemas import ReportJobMessage
from reportgen.features.reports.source import Monster


def clone_report(report: Report) -> Report:
    return Report(**{column.key: getattr(report, column.key) for column in Report.__table__.columns})


def make_report(**overrides) -> Report:
    values = {
        "user_id": uuid.uuid4(),
        "id": uuid.uuid4(),
        "report_type": "monsters",
        "created_at": datetime(2026, 1, 1, 12, 0, 0),
    }
    values.update(overrides)
    return Report(**values)


def make_monster(**overrides) -> Monster:
    values = {
        "name": "bokoblin",
        "id": 1,
        "category": "monsters",
        "description": "A common monster.",
        "image": "https://example.test/bokoblin.png",
        "common_locations": ["Hyrule Field", "Great Plateau"],
        "drops": ["bokoblin horn"],
        "dlc": False,
    }
    values.update(overrides)
    return Monster(**values)


class InMemoryReportRepository:
    """Thread-safe stand-in for the SQL repository; hands out copies only."""

    def __init__(self, *reports: Report, yield_on_read: bool = False):
        self._reports: dict[tuple[uuid.UUID, uuid.UUID], Report] = {}
        self._lock = threading.Lock()
        self._yield_on_read = yield_on_read
        self.fail_saves = False
        self.save_count = 0
        for report in reports:
            self.put(report)

    def put(self, report: Report) -> None:
        with self._lock:
            self._reports[(report.user_id, report.id)] = clone_report(report)

    def stored(self, user_id: uuid.UUID, report_id: uuid.UUID) -> Report:
        with self._lock:
            return clone_report(self._reports[(user_id, report_id)])

    async def get_by_identity(self, user_id: uuid.UUID, report_id: uuid.UUID) -> Report:
        with self._lock:
            report = self._reports.get((user_id, report_id))
            snapshot = clone_report(report) if report is not None else None
        if self._yield_on_read:
            await asyncio.sleep(0)
        if snapshot is None:
            raise ReportNotFoundError(user_id, report_id)
        return snapshot

    async def save(self, report: Report) -> Report:
        if self.fail_saves:
            raise ReportPersistenceError(f"failed to update report {report.id}")
        if report.completed_at is not None and report.failed_at is not None:
            raise ReportPersistenceError("report cannot be both completed and failed")
        with self._lock:
            self._reports[(report.user_id, report.id)] = clone_report(report)
            self.save_count += 1
        return report

    async def mark_started(self, report: Report, started_at: datetime) -> Optional[Report]:
        if self.fail_saves:
            raise ReportPersistenceError(f"failed to mark report {report.id} as started")
        with self._lock:
            stored = self._reports[(report.user_id, report.id)]
            if stored.started_at is not None:
                return None
            stored.started_at = started_at
            stored.completed_at = None
            stored.failed_at = None
            stored.error_message = None
            stored.download_url = None
            stored.download_url_expires_at = None
            stored.output_file_path = None
            return clone_report(stored)


class FakeSource:
    def __init__(self, records: list[Monster] | None = None, error: Exception | None = None, delay: float = 0.0):
        self.records = records if records is not None else [make_monster()]
        self.error = error
        self.delay = delay
        self.calls = 0
        self._lock = threading.Lock()

    async def fetch_records(self) -> list[Monster]:
        with self._lock:
            self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return list(self.records)


class FakeArtifactStore:
    def __init__(self, fail: bool = False):
        self.objects: dict[str, bytes] = {}
        self.put_count = 0
        self.fail = fail
        self._lock = threading.Lock()

    async def put(self, key: str, data: bytes) -> None:
        if self.fail:
            raise ArtifactStoreError(f"failed to upload report to {key}")
        with self._lock:
            self.objects[key] = data
            self.put_count += 1

    async def presigned_url(self, key: str, expires_in: int) -> str:
        return f"https://artifacts.test/{key}?expires={expires_in}"


class FakeJobQueue:
    """In-process queue with SQS-like receive/delete semantics."""

    def __init__(self, messages: list[QueueMessage] | None = None, receive_errors: int = 0):
        self._pending = list(messages or [])
        self._lock = threading.Lock()
        self.receive_errors = receive_errors
        self.deleted: list[str] = []
        self.sent: list[ReportJobMessage] = []
        self.receive_requests: list[int] = []
        self.resolve_error: Exception | None = None

    def resolve_queue_url(self) -> str:
        if self.resolve_error is not None:
            raise self.resolve_error
        return "https://sqs.test/000000000000/reports"

    def receive_batch(self, max_messages: int, wait_seconds: int) -> list[QueueMessage]:
        with self._lock:
            self.receive_requests.append(max_messages)
            if self.receive_errors:
                self.receive_errors -= 1
                raise QueueTransportError("connection reset")
            batch = self._pending[:max_messages]
            del self._pending[:max_messages]
        if not batch:
            time.sleep(0.01)
        return batch

    def delete_message(self, receipt_handle: str) -> None:
        with self._lock:
            self.deleted.append(receipt_handle)

    def send_job(self, job: ReportJobMessage) -> str:
        with self._lock:
            self.sent.append(job)
        return f"msg-{len(self.sent)}"


def job_message(user_id: uuid.UUID, report_id: uuid.UUID, handle: str) -> QueueMessage:
    body = ReportJobMessage(user_id=user_id, report_id=report_id).model_dump_json(by_alias=True)
    return QueueMessage(message_id=f"id-{handle}", receipt_handle=handle, body=body)


def wait_until(predicate, timeout: float = 5.0, interval: float = 0.01) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()
