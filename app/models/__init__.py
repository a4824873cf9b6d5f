"""SQLAlchemy ORM models."""

from app.models.base import Base
from app.models.component import Component
from app.models.notification import Notification, NotificationKey, NotificationRecipient
from app.models.report import Report
from app.models.service import Service, ServiceComponent, ServiceVulnerability
from app.models.user import User
from app.models.vulnerability import Vulnerability

__all__ = [
    "Base",
    "Component",
    "Notification",
    "NotificationKey",
    "NotificationRecipient",
    "Report",
    "Service",
    "ServiceComponent",
    "ServiceVulnerability",
    "User",
    "Vulnerability",
]
