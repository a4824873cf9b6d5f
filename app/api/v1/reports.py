"""Report generation and retrieval. Reports are audit records and cannot be deleted."""

from typing import Annotated

from fastapi import APIRouter, Depends, status

from app.api.v1.auth import get_current_user, require_writer
from app.api.v1.deps import get_pipeline
from app.schemas.auth import CurrentUser
from app.schemas.report import ReportListResponse, ReportOut, ReportRequest
from app.schemas.results import GenerateReportResult
from app.services.context import PipelineContext
from app.services.report import generate_report, get_recent_reports, get_report, list_reports

router = APIRouter()


def _listing(reports) -> ReportListResponse:
    items = [ReportOut.model_validate(r) for r in reports]
    return ReportListResponse(count=len(items), reports=items)


@router.post("", response_model=GenerateReportResult, status_code=status.HTTP_201_CREATED)
async def post_report(
    body: ReportRequest,
    ctx: Annotated[PipelineContext, Depends(get_pipeline)],
    user: Annotated[CurrentUser, Depends(require_writer)],
) -> GenerateReportResult:
    """
    Snapshot the current status of the given services into a report.

    Unknown service ids are ignored; 422 when none of them exist.
    """
    return await generate_report(
        ctx,
        body.title,
        body.service_ids,
        body.format,
        generated_by=user.id or None,
    )


@router.get("", response_model=ReportListResponse)
def get_reports(
    ctx: Annotated[PipelineContext, Depends(get_pipeline)],
    _user: Annotated[CurrentUser, Depends(get_current_user)],
) -> ReportListResponse:
    return _listing(list_reports(ctx))


@router.get("/recent/{limit}", response_model=ReportListResponse)
def get_reports_recent(
    limit: int,
    ctx: Annotated[PipelineContext, Depends(get_pipeline)],
    _user: Annotated[CurrentUser, Depends(get_current_user)],
) -> ReportListResponse:
    return _listing(get_recent_reports(ctx, limit))


@router.get("/{report_id}", response_model=ReportOut)
def get_report_by_id(
    report_id: int,
    ctx: Annotated[PipelineContext, Depends(get_pipeline)],
    _user: Annotated[CurrentUser, Depends(get_current_user)],
) -> ReportOut:
    return ReportOut.model_validate(get_report(ctx, report_id))
