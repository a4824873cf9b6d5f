"""Pydantic schemas for components: scan input, API output and version check results."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class DiscoveredComponent(BaseModel):
    """One component reported by a stack scan. Validated by app.services.validation before any write."""

    name: str = Field(..., description="Component name (e.g. Node.js, Express).")
    version: str = Field(..., description="Declared version, dot-separated.")
    type: str = Field(
        ...,
        description="language, framework, library, database, container, or other.",
    )
    ecosystem: str | None = Field(
        default=None,
        description="Package ecosystem (npm, PyPI) for registry/OSV lookups; optional.",
    )
    description: str | None = None
    website: str | None = None
    license: str | None = None


class ComponentOut(BaseModel):
    """Component as returned by the API."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    version: str
    type: str
    ecosystem: str | None = None
    latest_version: str | None = None
    update_available: bool = False
    last_checked: datetime | None = None
    description: str | None = None
    website: str | None = None
    license: str | None = None


class ComponentListResponse(BaseModel):
    count: int
    components: list[ComponentOut]


class UpdateCheckBatchResult(BaseModel):
    """Counters for a check-all-updates run. Failed items are skipped, not fatal."""

    total: int = Field(default=0, ge=0, description="Components considered.")
    updated: int = Field(default=0, ge=0, description="Components whose version info was persisted.")
    with_updates: int = Field(default=0, ge=0, description="Components with an update available.")
    upstream_unavailable: int = Field(
        default=0, ge=0, description="Components skipped because the version source failed."
    )
    dropped: int = Field(
        default=0, ge=0, description="Components skipped after store retries were exhausted."
    )
