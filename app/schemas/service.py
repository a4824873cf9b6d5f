"""Pydantic schemas for services and their explicit aggregates."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.component import ComponentOut, DiscoveredComponent
from app.schemas.vulnerability import VulnerabilityOut


class ServiceCreate(BaseModel):
    name: str = Field(..., description="Unique service name.")
    description: str | None = None
    repository_url: str | None = None
    environment: str = Field(
        default="development",
        description="development, testing, staging, or production.",
    )


class ServiceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str | None = None
    repository_url: str | None = None
    environment: str
    status: str
    last_scan: datetime | None = None


class ServiceVulnerabilityOut(BaseModel):
    component: ComponentOut
    vulnerability: VulnerabilityOut


class ServiceDetail(ServiceOut):
    """Service with its components and (component, vulnerability) pairs, fetched explicitly."""

    components: list[ComponentOut] = Field(default_factory=list)
    vulnerabilities: list[ServiceVulnerabilityOut] = Field(default_factory=list)


class ScanRequest(BaseModel):
    components: list[DiscoveredComponent] = Field(
        ...,
        description="Components discovered on the service by the stack scanner.",
    )
