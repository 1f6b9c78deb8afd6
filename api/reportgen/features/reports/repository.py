import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import inspect, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from reportgen.features.reports.errors import ReportNotFoundError, ReportPersistenceError
from reportgen.features.reports.models import Report


class ReportRepository:
    def __init__(self, session: AsyncSession):
        self._session = session

    def add(self, report: Report) -> None:
        self._session.add(report)

    async def get_by_identity(self, user_id: uuid.UUID, report_id: uuid.UUID) -> Report:
        report = await self.find_by_identity(user_id, report_id)
        if report is None:
            raise ReportNotFoundError(user_id, report_id)
        return report

    async def find_by_identity(self, user_id: uuid.UUID, report_id: uuid.UUID) -> Optional[Report]:
        # Another worker may have claimed the row since this session loaded it.
        result = await self._session.execute(
            select(Report)
            .where(Report.user_id == user_id, Report.id == report_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_for_user(self, user_id: uuid.UUID) -> list[Report]:
        result = await self._session.execute(
            select(Report).where(Report.user_id == user_id).order_by(Report.created_at.desc())
        )
        return list(result.scalars().all())

    async def save(self, report: Report) -> Report:
        self._session.add(report)
        identity = inspect(report).identity or (report.user_id, report.id)
        try:
            await self._session.commit()
        except SQLAlchemyError as exc:
            await self._session.rollback()
            raise ReportPersistenceError(
                f"failed to update report {identity[1]} for user {identity[0]}: {exc}"
            ) from exc
        return report

    async def mark_started(self, report: Report, started_at: datetime) -> Optional[Report]:
        """Claim a requested report for building.

        Returns ``None`` when another builder already set ``started_at``.
        """
        user_id, report_id = inspect(report).identity or (report.user_id, report.id)
        statement = (
            update(Report)
            .where(
                Report.user_id == user_id,
                Report.id == report_id,
                Report.started_at.is_(None),
            )
            .values(
                started_at=started_at,
                completed_at=None,
                failed_at=None,
                error_message=None,
                download_url=None,
                download_url_expires_at=None,
                output_file_path=None,
            )
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self._session.execute(statement)
            await self._session.commit()
            if result.rowcount == 0:
                return None
            await self._session.refresh(report)
        except SQLAlchemyError as exc:
            await self._session.rollback()
            raise ReportPersistenceError(f"failed to mark report {report_id} as started: {exc}") from exc
        return report
