"""Stack scan adapter: record the components discovered on a service."""

import logging
from datetime import datetime, timezone

from app.core.errors import NotFoundError
from app.models import Component
from app.schemas.component import ComponentOut, DiscoveredComponent
from app.schemas.events import Trigger
from app.schemas.notification import NotificationOut
from app.schemas.results import ScanServiceResult
from app.schemas.service import ServiceOut
from app.services.context import PipelineContext
from app.services.pipeline import reevaluate_and_notify
from app.services.validation import validate_id, validate_scan
from app.store.queries import (
    add_component_to_service,
    get_service_fresh,
    set_last_scan,
    upsert_component,
)
from app.store.retry import with_store_retry

logger = logging.getLogger(__name__)


async def scan_service(
    ctx: PipelineContext,
    service_id: int,
    components: list[DiscoveredComponent],
) -> ScanServiceResult:
    """
    Upsert every discovered component, add it to the service, stamp last_scan
    and re-evaluate. Repeating the same scan creates no new rows and no new
    notifications.
    """
    service_id = validate_id(service_id, "Service id")
    discovered = validate_scan(components)
    session = ctx.session

    async def _write() -> list[Component]:
        if get_service_fresh(session, service_id) is None:
            raise NotFoundError(f"Service {service_id} not found.")
        stored: list[Component] = []
        for item in discovered:
            component, created = upsert_component(
                session,
                item.name,
                item.version,
                item.type,
                ecosystem=item.ecosystem,
                description=item.description,
                website=item.website,
                license=item.license,
            )
            if created:
                logger.info("New component %s %s", component.name, component.version)
            add_component_to_service(session, service_id, component.id)
            stored.append(component)
        set_last_scan(session, service_id, datetime.now(timezone.utc))
        session.commit()
        return stored

    stored = await with_store_retry(
        session,
        _write,
        attempts=ctx.settings.STORE_RETRY_ATTEMPTS,
        base_delay=ctx.settings.STORE_RETRY_BASE_DELAY_SEC,
        label=f"stack scan of service {service_id}",
    )
    logger.info(
        "Scanned service %s: %s components",
        service_id,
        len(stored),
        extra={"service_id": service_id, "component_count": len(stored)},
    )
    result, notifications = await reevaluate_and_notify(
        ctx, service_id, Trigger(kind="scan_completed")
    )
    return ScanServiceResult(
        service=ServiceOut.model_validate(result.service),
        components=[ComponentOut.model_validate(c) for c in stored],
        notifications=[NotificationOut.model_validate(n) for n in notifications],
    )
