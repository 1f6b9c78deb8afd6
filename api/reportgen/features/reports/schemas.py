import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from reportgen.features.reports.models import ReportStatus


class ReportJobMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: uuid.UUID = Field(..., alias="userId")
    report_id: uuid.UUID = Field(..., alias="reportId")


class ReportCreateCommand(BaseModel):
    report_type: str = Field(..., min_length=1, max_length=64)


class ReportMessage(BaseModel):
    id: str
    report_type: str
    status: ReportStatus
    output_file_path: str | None = None
    download_url: str | None = None
    download_url_expires_at: datetime | None = None
    error_message: str | None = None
    created_at: datetime
    started_at: datetime | None = None
    completed_at: datetime | None = None
    failed_at: datetime | None = None
