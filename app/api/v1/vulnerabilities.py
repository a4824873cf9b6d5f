"""Vulnerability status transitions."""

from typing import Annotated

from fastapi import APIRouter, Depends

from app.api.v1.auth import require_writer
from app.api.v1.deps import get_pipeline
from app.schemas.auth import CurrentUser
from app.schemas.results import VulnerabilityStatusResult
from app.schemas.vulnerability import VulnerabilityStatusUpdate
from app.services.context import PipelineContext
from app.services.vulnerability_ingest import update_vulnerability_status

router = APIRouter()


@router.put("/{vulnerability_id}/status", response_model=VulnerabilityStatusResult)
async def put_vulnerability_status(
    vulnerability_id: int,
    body: VulnerabilityStatusUpdate,
    ctx: Annotated[PipelineContext, Depends(get_pipeline)],
    _user: Annotated[CurrentUser, Depends(require_writer)],
) -> VulnerabilityStatusResult:
    """Move a vulnerability to a new status and re-evaluate every service it affects."""
    return await update_vulnerability_status(ctx, vulnerability_id, body.status)
