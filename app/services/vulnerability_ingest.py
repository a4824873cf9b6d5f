"""Vulnerability ingestion: record facts on a service, scan a service against the vulnerability source, transition status."""

import logging

from app.core.errors import NotFoundError, StackwatchError, UpstreamUnavailable
from app.models import Component, Notification, Service, Vulnerability
from app.schemas.events import Trigger
from app.schemas.notification import NotificationOut
from app.schemas.results import (
    RecordVulnerabilityResult,
    ScanVulnerabilitiesResult,
    VulnerabilityStatusResult,
)
from app.schemas.service import ServiceOut
from app.schemas.vulnerability import VulnerabilityIn, VulnerabilityOut, VulnerabilityScanResult
from app.services.context import PipelineContext
from app.services.pipeline import reevaluate_and_notify
from app.services.validation import validate_id, validate_vulnerability, validate_vulnerability_status
from app.store.queries import (
    add_component_to_service,
    attach_vulnerability,
    get_service_fresh,
    load_service_graph,
    services_referencing_vulnerability,
    set_vulnerability_status,
    upsert_vulnerability,
)
from app.store.repository import Repository
from app.store.retry import with_store_retry

logger = logging.getLogger(__name__)


def _retrying(ctx: PipelineContext, operation, label: str):
    return with_store_retry(
        ctx.session,
        operation,
        attempts=ctx.settings.STORE_RETRY_ATTEMPTS,
        base_delay=ctx.settings.STORE_RETRY_BASE_DELAY_SEC,
        label=label,
    )


async def _record(
    ctx: PipelineContext,
    service_id: int,
    component_id: int,
    record: VulnerabilityIn,
) -> tuple[Service, Vulnerability, list[Notification]]:
    session = ctx.session

    async def _write() -> Vulnerability:
        if get_service_fresh(session, service_id) is None:
            raise NotFoundError(f"Service {service_id} not found.")
        if Repository(session, Component).get(component_id) is None:
            raise NotFoundError(f"Component {component_id} not found.")
        vulnerability, created = upsert_vulnerability(session, **record.model_dump())
        if created:
            logger.info(
                "New %s vulnerability %s",
                vulnerability.severity,
                vulnerability.natural_key,
                extra={"vulnerability_id": vulnerability.id},
            )
        # A vulnerability can only be attached through a component the service has.
        add_component_to_service(session, service_id, component_id)
        attach_vulnerability(session, service_id, component_id, vulnerability.id)
        session.commit()
        return vulnerability

    vulnerability = await _retrying(ctx, _write, f"vulnerability ingest for service {service_id}")
    trigger = Trigger(
        kind="vulnerability_observed",
        component_id=component_id,
        vulnerability_id=vulnerability.id,
    )
    result, notifications = await reevaluate_and_notify(ctx, service_id, trigger)
    return result.service, vulnerability, notifications


async def record_vulnerability(
    ctx: PipelineContext,
    service_id: int,
    component_id: int,
    vulnerability: VulnerabilityIn,
) -> RecordVulnerabilityResult:
    """
    Attach a vulnerability fact to a (service, component) pair and re-evaluate the service.

    The vulnerability is upserted by CVE id (or title when there is none), so
    recording the same fact again creates nothing and notifies nobody.
    """
    service_id = validate_id(service_id, "Service id")
    component_id = validate_id(component_id, "Component id")
    record = validate_vulnerability(vulnerability)
    service, stored, notifications = await _record(ctx, service_id, component_id, record)
    return RecordVulnerabilityResult(
        service=ServiceOut.model_validate(service),
        vulnerability=VulnerabilityOut.model_validate(stored),
        notifications=[NotificationOut.model_validate(n) for n in notifications],
    )


async def scan_vulnerabilities(ctx: PipelineContext, service_id: int) -> ScanVulnerabilitiesResult:
    """
    Query the vulnerability source for every component of a service and record what it returns.

    Components the source cannot answer for are skipped and counted; records
    that fail validation or storage are dropped and counted.
    """
    service_id = validate_id(service_id, "Service id")
    graph = load_service_graph(ctx.session, service_id)
    if graph is None:
        raise NotFoundError(f"Service {service_id} not found.")
    counts = VulnerabilityScanResult()
    notifications: list[Notification] = []
    for component in graph.components:
        counts.components_checked += 1
        try:
            records = await ctx.vulnerability_source.vulnerabilities_for(
                component.name, component.version, component.ecosystem
            )
        except UpstreamUnavailable as e:
            counts.upstream_unavailable += 1
            logger.warning(
                "Vulnerability source unavailable for %s %s: %s",
                component.name,
                component.version,
                e,
                extra={"service_id": service_id, "component_id": component.id},
            )
            continue
        for record in records:
            try:
                _, _, created = await _record(
                    ctx, service_id, component.id, validate_vulnerability(record)
                )
            except StackwatchError as e:
                counts.dropped += 1
                logger.warning(
                    "Dropped vulnerability %r for %s: %s",
                    record.cve_id or record.title,
                    component.name,
                    e,
                    extra={"service_id": service_id, "component_id": component.id},
                )
                continue
            counts.vulnerabilities_recorded += 1
            notifications.extend(created)

    logger.info(
        "Vulnerability scan of service %s: %s components, %s recorded",
        service_id,
        counts.components_checked,
        counts.vulnerabilities_recorded,
        extra={"service_id": service_id, **counts.model_dump()},
    )
    service = get_service_fresh(ctx.session, service_id)
    return ScanVulnerabilitiesResult(
        service=ServiceOut.model_validate(service),
        results=counts,
        notifications=[NotificationOut.model_validate(n) for n in notifications],
    )


async def update_vulnerability_status(
    ctx: PipelineContext,
    vulnerability_id: int,
    status: str,
) -> VulnerabilityStatusResult:
    """Transition a vulnerability's status and re-evaluate every service it is attached to."""
    vulnerability_id = validate_id(vulnerability_id, "Vulnerability id")
    status = validate_vulnerability_status(status)
    session = ctx.session

    async def _write() -> None:
        if not set_vulnerability_status(session, vulnerability_id, status):
            raise NotFoundError(f"Vulnerability {vulnerability_id} not found.")
        session.commit()

    await _retrying(ctx, _write, f"status update of vulnerability {vulnerability_id}")
    vulnerability = Repository(session, Vulnerability).get(vulnerability_id)
    session.refresh(vulnerability)
    logger.info(
        "Vulnerability %s is now %s",
        vulnerability.natural_key,
        status,
        extra={"vulnerability_id": vulnerability_id},
    )

    trigger = Trigger(kind="vulnerability_status_changed", vulnerability_id=vulnerability_id)
    services: list[Service] = []
    notifications: list[Notification] = []
    for service in services_referencing_vulnerability(session, vulnerability_id):
        try:
            result, created = await reevaluate_and_notify(ctx, service.id, trigger)
        except StackwatchError as e:
            # The status change is stored; the next trigger on this service picks it up.
            logger.warning(
                "Re-evaluation of service %s after status change of %s failed: %s",
                service.id,
                vulnerability.natural_key,
                e,
                extra={"vulnerability_id": vulnerability_id, "service_id": service.id},
            )
            continue
        services.append(result.service)
        notifications.extend(created)
    return VulnerabilityStatusResult(
        vulnerability=VulnerabilityOut.model_validate(vulnerability),
        services=[ServiceOut.model_validate(s) for s in services],
        notifications=[NotificationOut.model_validate(n) for n in notifications],
    )
