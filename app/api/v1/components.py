"""Component queries and the version check endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.v1.auth import get_current_user, require_writer
from app.api.v1.deps import get_pipeline
from app.core.database import get_db
from app.schemas.auth import CurrentUser
from app.schemas.component import ComponentListResponse, ComponentOut
from app.schemas.results import CheckAllUpdatesResult, ComponentUpdateResult
from app.services.context import PipelineContext
from app.services.registry import components_with_updates, get_component, list_components
from app.services.version_check import check_all_updates, check_component_update

router = APIRouter()


def _listing(components) -> ComponentListResponse:
    items = [ComponentOut.model_validate(c) for c in components]
    return ComponentListResponse(count=len(items), components=items)


@router.get("", response_model=ComponentListResponse)
def get_components(
    db: Annotated[Session, Depends(get_db)],
    _user: Annotated[CurrentUser, Depends(get_current_user)],
) -> ComponentListResponse:
    return _listing(list_components(db))


@router.get("/updates-available", response_model=ComponentListResponse)
def get_components_with_updates(
    db: Annotated[Session, Depends(get_db)],
    _user: Annotated[CurrentUser, Depends(get_current_user)],
) -> ComponentListResponse:
    return _listing(components_with_updates(db))


@router.get("/type/{component_type}", response_model=ComponentListResponse)
def get_components_by_type(
    component_type: str,
    db: Annotated[Session, Depends(get_db)],
    _user: Annotated[CurrentUser, Depends(get_current_user)],
) -> ComponentListResponse:
    return _listing(list_components(db, type=component_type))


@router.post("/check-all-updates", response_model=CheckAllUpdatesResult)
async def post_check_all_updates(
    ctx: Annotated[PipelineContext, Depends(get_pipeline)],
    _user: Annotated[CurrentUser, Depends(require_writer)],
) -> CheckAllUpdatesResult:
    """
    Check every component against the version source.

    Components the source cannot answer for are skipped and counted; the batch
    itself does not fail.
    """
    return await check_all_updates(ctx)


@router.get("/{component_id}", response_model=ComponentOut)
def get_component_by_id(
    component_id: int,
    db: Annotated[Session, Depends(get_db)],
    _user: Annotated[CurrentUser, Depends(get_current_user)],
) -> ComponentOut:
    return ComponentOut.model_validate(get_component(db, component_id))


@router.post("/{component_id}/check-updates", response_model=ComponentUpdateResult)
async def post_check_updates(
    component_id: int,
    ctx: Annotated[PipelineContext, Depends(get_pipeline)],
    _user: Annotated[CurrentUser, Depends(require_writer)],
) -> ComponentUpdateResult:
    """Check one component. Returns 502 when the version source is unavailable."""
    return await check_component_update(ctx, component_id)
