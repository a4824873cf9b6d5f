"""Explicit input validation, run before any store write.

Each validator raises app.core.errors.ValidationError on the first violated
rule and returns the normalized values otherwise.
"""

from app.core.errors import ValidationError
from app.schemas.common import (
    COMPONENT_TYPES,
    ENVIRONMENTS,
    NOTIFICATION_TYPES,
    REPORT_FORMATS,
    SEVERITY_VALUES,
    VULNERABILITY_STATUSES,
)
from app.schemas.component import DiscoveredComponent
from app.schemas.notification import NotificationCreate
from app.schemas.service import ServiceCreate
from app.schemas.vulnerability import VulnerabilityIn

NAME_MAX_LEN = 255
VERSION_MAX_LEN = 128
TITLE_MAX_LEN = 512
MESSAGE_MAX_LEN = 10_000
MAX_COMPONENTS_PER_SCAN = 1_000
MAX_SERVICES_PER_REPORT = 500


def _required_text(value: str | None, field: str, max_len: int) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{field} is required.")
    text = str(value).strip()
    if len(text) > max_len:
        raise ValidationError(f"{field} must be at most {max_len} characters.")
    return text


def one_of(value: str | None, field: str, allowed: frozenset[str]) -> str:
    normalized = (value or "").strip().lower()
    if normalized not in allowed:
        raise ValidationError(f"{field} must be one of {sorted(allowed)}, got {value!r}.")
    return normalized


def validate_id(value: object, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValidationError(f"{field} must be a positive integer.")
    return value


def validate_component(component: DiscoveredComponent) -> DiscoveredComponent:
    return component.model_copy(
        update={
            "name": _required_text(component.name, "Component name", NAME_MAX_LEN),
            "version": _required_text(component.version, "Component version", VERSION_MAX_LEN),
            "type": one_of(component.type, "Component type", COMPONENT_TYPES),
            "ecosystem": (component.ecosystem or "").strip() or None,
        }
    )


def validate_scan(components: list[DiscoveredComponent]) -> list[DiscoveredComponent]:
    if components is None:
        raise ValidationError("Component list is required.")
    if len(components) > MAX_COMPONENTS_PER_SCAN:
        raise ValidationError(f"At most {MAX_COMPONENTS_PER_SCAN} components are allowed per scan.")
    return [validate_component(c) for c in components]


def validate_vulnerability(vulnerability: VulnerabilityIn) -> VulnerabilityIn:
    cvss = vulnerability.cvss_score
    if cvss is not None and not 0 <= cvss <= 10:
        raise ValidationError("cvss_score must be between 0 and 10.")
    cve_id = (vulnerability.cve_id or "").strip() or None
    return vulnerability.model_copy(
        update={
            "cve_id": cve_id,
            "title": _required_text(vulnerability.title, "Vulnerability title", TITLE_MAX_LEN),
            "severity": one_of(vulnerability.severity, "Severity", SEVERITY_VALUES),
            "description": (vulnerability.description or "").strip(),
        }
    )


def validate_vulnerability_status(status: str) -> str:
    return one_of(status, "Vulnerability status", VULNERABILITY_STATUSES)


def validate_service(service: ServiceCreate) -> ServiceCreate:
    return service.model_copy(
        update={
            "name": _required_text(service.name, "Service name", NAME_MAX_LEN),
            "environment": one_of(service.environment, "Environment", ENVIRONMENTS),
        }
    )


def validate_report_request(title: str, service_ids: list[int], format: str) -> tuple[str, list[int], str]:
    clean_title = _required_text(title, "Report title", TITLE_MAX_LEN)
    if not service_ids:
        raise ValidationError("At least one service id is required.")
    if len(service_ids) > MAX_SERVICES_PER_REPORT:
        raise ValidationError(f"At most {MAX_SERVICES_PER_REPORT} services are allowed per report.")
    ids = [validate_id(sid, "Service id") for sid in service_ids]
    # Keep first occurrence order; duplicates would double-count a service.
    unique_ids = list(dict.fromkeys(ids))
    return clean_title, unique_ids, one_of(format, "Report format", REPORT_FORMATS)


def validate_preferences(preferences: dict[str, bool]) -> dict[str, bool]:
    out: dict[str, bool] = {}
    for key, value in preferences.items():
        out[one_of(key, "Notification type", NOTIFICATION_TYPES)] = bool(value)
    return out


def validate_notification_request(request: NotificationCreate) -> NotificationCreate:
    recipients = request.recipients
    if recipients is not None:
        recipients = sorted({validate_id(r, "Recipient id") for r in recipients})
    return request.model_copy(
        update={
            "title": _required_text(request.title, "Notification title", TITLE_MAX_LEN),
            "message": _required_text(request.message, "Notification message", MESSAGE_MAX_LEN),
            "link": (request.link or "").strip() or None,
            "recipients": recipients,
        }
    )
