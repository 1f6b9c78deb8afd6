import asyncio
import logging
import uuid
from datetime import datetime
from typing import Callable, Optional, Protocol

from reportgen.features.reports.encoding import artifact_key, encode_records
from reportgen.features.reports.errors import EmptyDatasetError
from reportgen.features.reports.models import Report, utcnow
from reportgen.features.reports.source import Monster

logger = logging.getLogger(__name__)


class ReportStore(Protocol):
    async def get_by_identity(self, user_id: uuid.UUID, report_id: uuid.UUID) -> Report: ...

    async def save(self, report: Report) -> Report: ...

    async def mark_started(self, report: Report, started_at: datetime) -> Optional[Report]: ...


class RecordSource(Protocol):
    async def fetch_records(self) -> list[Monster]: ...


class ArtifactStore(Protocol):
    async def put(self, key: str, data: bytes) -> None: ...


class ReportBuilder:
    """Moves one report from ``requested`` through ``processing`` to a terminal state.

    A report whose ``started_at`` is already set is returned untouched, so a
    redelivered job never fetches or uploads twice.
    """

    def __init__(
        self,
        repository: ReportStore,
        source: RecordSource,
        artifacts: ArtifactStore,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._repository = repository
        self._source = source
        self._artifacts = artifacts
        self._clock = clock

    async def build(self, user_id: uuid.UUID, report_id: uuid.UUID) -> Report:
        report = await self._repository.get_by_identity(user_id, report_id)
        if report.started_at is not None:
            logger.info(
                "Report already started, skipping",
                extra={"report_id": str(report_id), "status": report.status.value},
            )
            return report

        started_at = self._clock()
        claimed = None
        try:
            claimed = await self._repository.mark_started(report, started_at)
            if claimed is not None:
                report = claimed
                report = await self._generate(report, user_id, report_id)
        except asyncio.CancelledError:
            if claimed is not None:
                await self._record_failure(report, report_id, started_at, "report build was cancelled")
            raise
        except Exception as exc:
            await self._record_failure(report, report_id, started_at, str(exc))
            raise

        if claimed is None:
            logger.info("Report claimed by another worker", extra={"report_id": str(report_id)})
            return await self._repository.get_by_identity(user_id, report_id)
        return report

    async def _generate(self, report: Report, user_id: uuid.UUID, report_id: uuid.UUID) -> Report:
        records = await self._source.fetch_records()
        if not records:
            raise EmptyDatasetError("no monsters data returned from source")

        payload = encode_records(records)
        key = artifact_key(user_id, report_id)
        await self._artifacts.put(key, payload)

        report.output_file_path = key
        report.completed_at = self._clock()
        report = await self._repository.save(report)
        logger.info("Generated report", extra={"report_id": str(report_id), "records": len(records)})
        return report

    async def _record_failure(
        self, report: Report, report_id: uuid.UUID, started_at: datetime, message: str
    ) -> None:
        # Attributes are only written here; the instance may be expired after a rollback.
        now = self._clock()
        report.started_at = started_at
        report.completed_at = None
        report.output_file_path = None
        report.failed_at = now
        report.error_message = message[:1024]
        try:
            await self._repository.save(report)
        except Exception:
            logger.exception("Failed to record report failure", extra={"report_id": str(report_id)})
