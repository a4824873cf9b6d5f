"""Pydantic schemas for notifications and per-user preferences."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.common import AdHocNotificationType, SeverityLevel


class NotificationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    message: str
    type: str
    severity: str
    service_id: int | None = None
    audience: str
    read: bool
    link: str | None = None
    expires_at: datetime | None = None
    created_at: datetime | None = None


class NotificationListResponse(BaseModel):
    count: int
    notifications: list[NotificationOut]


class NotificationPreferences(BaseModel):
    """Per-type opt-in flags; types not listed keep their current value."""

    preferences: dict[str, bool] = Field(
        ...,
        description="Map of notification type (vulnerability, update, report, system, user) to opted in.",
    )


class MarkAllReadResponse(BaseModel):
    count: int = Field(..., ge=0, description="Notifications marked read.")


class NotificationCreate(BaseModel):
    """An announcement posted by an admin or developer rather than derived from a fact."""

    title: str = Field(..., min_length=1, max_length=512)
    message: str = Field(..., min_length=1)
    type: AdHocNotificationType = "system"
    severity: SeverityLevel = "info"
    service_id: int | None = Field(None, ge=1)
    link: str | None = Field(None, max_length=1024)
    recipients: list[int] | None = Field(
        None,
        description="User ids to address. Omitted: users opted in to the type. Critical and high also reach every admin and developer.",
    )
    fact_id: int | None = Field(
        None,
        ge=1,
        description="Client-chosen id; posting the same type, service and id again creates nothing new.",
    )


class NotificationCreateResult(BaseModel):
    created: bool
    notification: NotificationOut | None = None
