import uuid

from fastapi import APIRouter, Depends, status

from reportgen.features.auth.deps import get_current_user_id
from reportgen.features.reports.deps import get_report_service
from reportgen.features.reports.schemas import ReportCreateCommand, ReportMessage
from reportgen.features.reports.service import ReportService

router = APIRouter(prefix="/reports", tags=["reports"])


@router.post("", response_model=ReportMessage, status_code=status.HTTP_201_CREATED)
async def create_report(
    command: ReportCreateCommand,
    service: ReportService = Depends(get_report_service),
    user_id: uuid.UUID = Depends(get_current_user_id),
) -> ReportMessage:
    return await service.create_report(user_id, command)


@router.get("", response_model=list[ReportMessage])
async def list_reports(
    service: ReportService = Depends(get_report_service),
    user_id: uuid.UUID = Depends(get_current_user_id),
) -> list[ReportMessage]:
    return await service.list_reports(user_id)


@router.get("/{report_id}", response_model=ReportMessage)
async def get_report(
    report_id: uuid.UUID,
    service: ReportService = Depends(get_report_service),
    user_id: uuid.UUID = Depends(get_current_user_id),
) -> ReportMessage:
    return await service.get_report(user_id, report_id)
