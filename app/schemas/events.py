"""Pipeline events: re-evaluation triggers, status changes and notification requests."""

from typing import Literal

from pydantic import BaseModel, Field

from app.schemas.common import NotificationType, ServiceStatus, SeverityLevel

TriggerKind = Literal[
    "scan_completed",
    "component_update_observed",
    "vulnerability_observed",
    "vulnerability_status_changed",
]

# Fact kinds that make up the notification deduplication key.
FactKind = Literal["update", "vulnerability", "recovery", "report", "user", "system"]


class Trigger(BaseModel):
    """Why a service is being re-evaluated, with the fact that caused it when there is one."""

    kind: TriggerKind
    component_id: int | None = None
    vulnerability_id: int | None = None


class StatusChanged(BaseModel):
    """Emitted by the re-evaluator when a service's derived status changes."""

    service_id: int
    old_status: ServiceStatus
    new_status: ServiceStatus
    cause: Trigger
    regression: bool = Field(..., description="True when the service moved to a less safe status.")
    revision: int = Field(..., description="Service revision written with the new status.")


class NotificationEvent(BaseModel):
    """Everything the dispatcher needs to create one deduplicated notification."""

    service_id: int | None
    fact_kind: FactKind
    fact_id: int
    type: NotificationType
    severity: SeverityLevel
    title: str
    message: str
    link: str | None = None
    recipients: list[int] | None = Field(
        None,
        description="Users to address explicitly instead of those opted in to the type.",
    )

    @property
    def dedup_key(self) -> str:
        return f"{self.fact_kind}:{self.service_id or 0}:{self.fact_id}"
