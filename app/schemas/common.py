"""Shared literal types and orderings used across schemas, models and services."""

from typing import Literal

# Reusable severity levels for validation and type safety across schemas.
SeverityLevel = Literal["critical", "high", "medium", "low", "info"]

SEVERITY_VALUES: frozenset[str] = frozenset({"critical", "high", "medium", "low", "info"})

# Most severe first; index is the aggregation order.
SEVERITY_ORDER: tuple[SeverityLevel, ...] = ("critical", "high", "medium", "low", "info")

ComponentType = Literal["language", "framework", "library", "database", "container", "other"]

COMPONENT_TYPES: frozenset[str] = frozenset(
    {"language", "framework", "library", "database", "container", "other"}
)

VulnerabilityStatus = Literal["open", "fixed", "mitigated", "false_positive", "wont_fix"]

VULNERABILITY_STATUSES: frozenset[str] = frozenset(
    {"open", "fixed", "mitigated", "false_positive", "wont_fix"}
)

ServiceStatus = Literal["secure", "vulnerable", "outdated", "unknown"]

SERVICE_STATUSES: frozenset[str] = frozenset({"secure", "vulnerable", "outdated", "unknown"})

Environment = Literal["development", "testing", "staging", "production"]

ENVIRONMENTS: frozenset[str] = frozenset({"development", "testing", "staging", "production"})

NotificationType = Literal["vulnerability", "update", "report", "system", "user"]

NOTIFICATION_TYPES: frozenset[str] = frozenset(
    {"vulnerability", "update", "report", "system", "user"}
)

# Types an admin or developer can post directly.
AdHocNotificationType = Literal["user", "system"]

NotificationAudience = Literal["privileged", "opted_in"]

ReportFormat = Literal["pdf", "html", "json", "csv"]

REPORT_FORMATS: frozenset[str] = frozenset({"pdf", "html", "json", "csv"})

UserRole = Literal["admin", "developer", "viewer"]

USER_ROLES: frozenset[str] = frozenset({"admin", "developer", "viewer"})

# Roles that receive critical/high notifications regardless of preferences.
PRIVILEGED_ROLES: tuple[UserRole, ...] = ("admin", "developer")
