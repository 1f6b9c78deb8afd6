import logging
import uuid
from datetime import datetime, timedelta, timezone

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from reportgen.core.config import settings
from reportgen.features.reports.errors import ArtifactStoreError, QueueTransportError
from reportgen.features.reports.models import Report, ReportStatus, utcnow
from reportgen.features.reports.queue import SqsQueueClient
from reportgen.features.reports.repository import ReportRepository
from reportgen.features.reports.schemas import ReportCreateCommand, ReportJobMessage, ReportMessage
from reportgen.features.reports.storage import S3ArtifactStore

logger = logging.getLogger(__name__)


class ReportService:
    def __init__(
        self,
        session: AsyncSession,
        report_repo: ReportRepository,
        job_queue: SqsQueueClient,
        artifacts: S3ArtifactStore,
    ):
        self._session = session
        self._report_repo = report_repo
        self._job_queue = job_queue
        self._artifacts = artifacts

    async def create_report(self, user_id: uuid.UUID, command: ReportCreateCommand) -> ReportMessage:
        report = Report(user_id=user_id, report_type=command.report_type)
        self._report_repo.add(report)
        await self._session.commit()
        await self._session.refresh(report)

        job = ReportJobMessage(user_id=report.user_id, report_id=report.id)
        try:
            await run_in_threadpool(self._job_queue.send_job, job)
        except QueueTransportError:
            logger.exception("Failed to enqueue report", extra={"report_id": str(report.id)})
            raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Report queue unavailable")

        return self._to_message(report)

    async def list_reports(self, user_id: uuid.UUID) -> list[ReportMessage]:
        reports = await self._report_repo.list_for_user(user_id)
        return [self._to_message(report) for report in reports]

    async def get_report(self, user_id: uuid.UUID, report_id: uuid.UUID) -> ReportMessage:
        report = await self._report_repo.find_by_identity(user_id, report_id)
        if not report:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Report not found")

        if report.status == ReportStatus.completed and self._link_expired(report):
            await self._refresh_download_url(report)

        return self._to_message(report)

    async def _refresh_download_url(self, report: Report) -> None:
        ttl = settings.download_url_ttl_seconds
        try:
            url = await self._artifacts.presigned_url(report.output_file_path, ttl)
        except ArtifactStoreError:
            logger.exception("Failed to presign report", extra={"report_id": str(report.id)})
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Report download unavailable")
        report.download_url = url
        report.download_url_expires_at = utcnow() + timedelta(seconds=ttl)
        await self._report_repo.save(report)

    @staticmethod
    def _link_expired(report: Report) -> bool:
        if not report.download_url or report.download_url_expires_at is None:
            return True
        expires_at = report.download_url_expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return expires_at <= datetime.now(timezone.utc)

    @staticmethod
    def _to_message(report: Report) -> ReportMessage:
        return ReportMessage(
            id=str(report.id),
            report_type=report.report_type,
            status=report.status,
            output_file_path=report.output_file_path,
            download_url=report.download_url,
            download_url_expires_at=report.download_url_expires_at,
            error_message=report.error_message,
            created_at=report.created_at,
            started_at=report.started_at,
            completed_at=report.completed_at,
            failed_at=report.failed_at,
        )
