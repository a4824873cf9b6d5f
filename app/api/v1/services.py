"""Service registry endpoints plus the per-service ingestion paths (stack scan, vulnerabilities)."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.v1.auth import get_current_user, require_writer
from app.api.v1.deps import get_pipeline
from app.core.database import get_db
from app.schemas.auth import CurrentUser
from app.schemas.results import RecordVulnerabilityResult, ScanServiceResult, ScanVulnerabilitiesResult
from app.schemas.service import ScanRequest, ServiceCreate, ServiceDetail, ServiceOut
from app.schemas.vulnerability import RecordVulnerabilityRequest
from app.services.context import PipelineContext
from app.services.registry import create_service, get_service_detail, list_services
from app.services.stack_scan import scan_service
from app.services.vulnerability_ingest import record_vulnerability, scan_vulnerabilities

router = APIRouter()


@router.post("", response_model=ServiceOut, status_code=status.HTTP_201_CREATED)
def post_service(
    body: ServiceCreate,
    db: Annotated[Session, Depends(get_db)],
    _user: Annotated[CurrentUser, Depends(require_writer)],
) -> ServiceOut:
    """Register a service. Returns 409 if the name is taken."""
    return ServiceOut.model_validate(create_service(db, body))


@router.get("", response_model=list[ServiceOut])
def get_services(
    db: Annotated[Session, Depends(get_db)],
    _user: Annotated[CurrentUser, Depends(get_current_user)],
    status_filter: Annotated[str | None, Query(alias="status")] = None,
) -> list[ServiceOut]:
    return [ServiceOut.model_validate(s) for s in list_services(db, status=status_filter)]


@router.get("/{service_id}", response_model=ServiceDetail)
def get_service(
    service_id: int,
    db: Annotated[Session, Depends(get_db)],
    _user: Annotated[CurrentUser, Depends(get_current_user)],
) -> ServiceDetail:
    """Service with its components and (component, vulnerability) pairs."""
    return get_service_detail(db, service_id)


@router.post("/{service_id}/scan", response_model=ScanServiceResult)
async def post_scan(
    service_id: int,
    body: ScanRequest,
    ctx: Annotated[PipelineContext, Depends(get_pipeline)],
    _user: Annotated[CurrentUser, Depends(require_writer)],
) -> ScanServiceResult:
    """
    Record the components a stack scan discovered on the service.

    Safe to repeat: the same component list creates no new records and no new
    notifications.
    """
    return await scan_service(ctx, service_id, body.components)


@router.post("/{service_id}/vulnerabilities", response_model=RecordVulnerabilityResult)
async def post_vulnerability(
    service_id: int,
    body: RecordVulnerabilityRequest,
    ctx: Annotated[PipelineContext, Depends(get_pipeline)],
    _user: Annotated[CurrentUser, Depends(require_writer)],
) -> RecordVulnerabilityResult:
    """Attach a vulnerability to one of the service's components."""
    return await record_vulnerability(ctx, service_id, body.component_id, body.vulnerability)


@router.post("/{service_id}/scan-vulnerabilities", response_model=ScanVulnerabilitiesResult)
async def post_scan_vulnerabilities(
    service_id: int,
    ctx: Annotated[PipelineContext, Depends(get_pipeline)],
    _user: Annotated[CurrentUser, Depends(require_writer)],
) -> ScanVulnerabilitiesResult:
    """Query the configured vulnerability source for every component of the service."""
    return await scan_vulnerabilities(ctx, service_id)
