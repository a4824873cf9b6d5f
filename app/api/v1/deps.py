"""Request-scoped pipeline dependency."""

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.database import get_db
from app.services.context import PipelineContext, build_pipeline


def get_pipeline(
    request: Request,
    db: Annotated[Session, Depends(get_db)],
) -> PipelineContext:
    """Build the pipeline context for this request; collaborators set on app.state take precedence."""
    state = request.app.state
    return build_pipeline(
        db,
        get_settings(),
        version_source=getattr(state, "version_source", None),
        vulnerability_source=getattr(state, "vulnerability_source", None),
        delivery=getattr(state, "delivery", None),
    )
