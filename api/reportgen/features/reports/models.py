import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, DateTime, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from reportgen.db.base import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ReportStatus(str, enum.Enum):
    requested = "requested"
    processing = "processing"
    completed = "completed"
    failed = "failed"


class Report(Base):
    __tablename__ = "reports"
    __table_args__ = (
        CheckConstraint("completed_at IS NULL OR failed_at IS NULL", name="ck_reports_single_terminal_state"),
    )

    user_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, index=True)
    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    report_type: Mapped[str] = mapped_column(String(64), nullable=False)
    output_file_path: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    download_url: Mapped[str | None] = mapped_column(String(4096), nullable=True)
    download_url_expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    error_message: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    failed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def is_done(self) -> bool:
        return self.completed_at is not None or self.failed_at is not None

    @property
    def status(self) -> ReportStatus:
        if self.started_at is None:
            return ReportStatus.requested
        if self.completed_at is not None:
            return ReportStatus.completed
        if self.failed_at is not None:
            return ReportStatus.failed
        return ReportStatus.processing
