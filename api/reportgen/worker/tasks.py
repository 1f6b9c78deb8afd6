import uuid
from typing import Optional

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from reportgen.core.config import Settings
from reportgen.features.reports.builder import ReportBuilder
from reportgen.features.reports.models import Report
from reportgen.features.reports.repository import ReportRepository
from reportgen.features.reports.source import SourceDataClient
from reportgen.features.reports.storage import S3ArtifactStore


class ReportBuildTask:
    """Builds one report per call with its own engine, session and HTTP client.

    Every job runs on a fresh event loop in a worker thread, so nothing bound
    to a loop is kept between calls.
    """

    def __init__(
        self,
        settings: Settings,
        artifacts: S3ArtifactStore,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._settings = settings
        self._artifacts = artifacts
        self._transport = transport

    async def __call__(self, user_id: uuid.UUID, report_id: uuid.UUID) -> Report:
        engine = create_async_engine(self._settings.database_url, poolclass=NullPool)
        sessionmaker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
        timeout = httpx.Timeout(self._settings.source_data_timeout_seconds)
        try:
            async with sessionmaker() as session, httpx.AsyncClient(timeout=timeout, transport=self._transport) as http:
                builder = ReportBuilder(
                    ReportRepository(session),
                    SourceDataClient(http, self._settings.source_data_url),
                    self._artifacts,
                )
                return await builder.build(user_id, report_id)
        finally:
            await engine.dispose()
