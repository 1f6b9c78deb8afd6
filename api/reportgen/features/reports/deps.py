from functools import lru_cache

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from reportgen.core.aws import create_s3_client, create_sqs_client
from reportgen.core.config import settings
from reportgen.db.session import get_session
from reportgen.features.reports.queue import SqsQueueClient
from reportgen.features.reports.repository import ReportRepository
from reportgen.features.reports.service import ReportService
from reportgen.features.reports.storage import S3ArtifactStore


@lru_cache
def get_job_queue() -> SqsQueueClient:
    return SqsQueueClient(create_sqs_client(settings), settings.sqs_queue)


@lru_cache
def get_artifact_store() -> S3ArtifactStore:
    return S3ArtifactStore(create_s3_client(settings), settings.s3_bucket)


def get_report_repository(session: AsyncSession = Depends(get_session)) -> ReportRepository:
    return ReportRepository(session)


def get_report_service(
    session: AsyncSession = Depends(get_session),
    report_repo: ReportRepository = Depends(get_report_repository),
    job_queue: SqsQueueClient = Depends(get_job_queue),
    artifacts: S3ArtifactStore = Depends(get_artifact_store),
) -> ReportService:
    return ReportService(session, report_repo, job_queue, artifacts)
