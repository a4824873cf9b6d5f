"""Return shapes of the exposed pipeline operations: the mutated entity plus notifications created."""

from pydantic import BaseModel, Field

from app.schemas.component import ComponentOut, UpdateCheckBatchResult
from app.schemas.notification import NotificationOut
from app.schemas.report import ReportOut
from app.schemas.service import ServiceOut
from app.schemas.vulnerability import VulnerabilityOut, VulnerabilityScanResult


class ScanServiceResult(BaseModel):
    service: ServiceOut
    components: list[ComponentOut]
    notifications: list[NotificationOut] = Field(default_factory=list)


class ComponentUpdateResult(BaseModel):
    component: ComponentOut
    notifications: list[NotificationOut] = Field(default_factory=list)


class CheckAllUpdatesResult(BaseModel):
    results: UpdateCheckBatchResult
    notifications: list[NotificationOut] = Field(default_factory=list)


class RecordVulnerabilityResult(BaseModel):
    service: ServiceOut
    vulnerability: VulnerabilityOut
    notifications: list[NotificationOut] = Field(default_factory=list)


class VulnerabilityStatusResult(BaseModel):
    vulnerability: VulnerabilityOut
    services: list[ServiceOut] = Field(default_factory=list)
    notifications: list[NotificationOut] = Field(default_factory=list)


class ScanVulnerabilitiesResult(BaseModel):
    service: ServiceOut
    results: VulnerabilityScanResult
    notifications: list[NotificationOut] = Field(default_factory=list)


class GenerateReportResult(BaseModel):
    report: ReportOut
    notifications: list[NotificationOut] = Field(default_factory=list)
