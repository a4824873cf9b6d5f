"""Pydantic request/response schemas."""

from app.schemas.common import (
    SEVERITY_ORDER,
    SEVERITY_VALUES,
    ComponentType,
    NotificationType,
    ReportFormat,
    ServiceStatus,
    SeverityLevel,
)
from app.schemas.component import ComponentOut, DiscoveredComponent, UpdateCheckBatchResult
from app.schemas.events import NotificationEvent, StatusChanged, Trigger
from app.schemas.health import HealthResponse
from app.schemas.notification import NotificationCreate, NotificationOut
from app.schemas.report import ReportOut, ReportRequest, ReportSummary
from app.schemas.service import ServiceCreate, ServiceDetail, ServiceOut
from app.schemas.vulnerability import VulnerabilityIn, VulnerabilityOut

__all__ = [
    "SEVERITY_ORDER",
    "SEVERITY_VALUES",
    "ComponentOut",
    "ComponentType",
    "DiscoveredComponent",
    "HealthResponse",
    "NotificationCreate",
    "NotificationEvent",
    "NotificationOut",
    "NotificationType",
    "ReportFormat",
    "ReportOut",
    "ReportRequest",
    "ReportSummary",
    "ServiceCreate",
    "ServiceDetail",
    "ServiceOut",
    "ServiceStatus",
    "SeverityLevel",
    "StatusChanged",
    "Trigger",
    "UpdateCheckBatchResult",
    "VulnerabilityIn",
    "VulnerabilityOut",
]
