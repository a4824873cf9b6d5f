"""Version check adapter: compare each component's version with the latest known release."""

import asyncio
import logging
from datetime import datetime, timezone

from app.core.errors import NotFoundError, StackwatchError, UpstreamUnavailable
from app.models import Component, Notification
from app.schemas.component import ComponentOut, UpdateCheckBatchResult
from app.schemas.events import Trigger
from app.schemas.notification import NotificationOut
from app.schemas.results import CheckAllUpdatesResult, ComponentUpdateResult
from app.services.context import PipelineContext
from app.services.pipeline import reevaluate_and_notify
from app.services.validation import validate_id
from app.services.versioning import is_newer
from app.store.queries import services_referencing_component, touch_services_for_component
from app.store.repository import Repository
from app.store.retry import with_store_retry

logger = logging.getLogger(__name__)


async def _persist_check(ctx: PipelineContext, component_id: int, latest: str) -> Component:
    """Store the check result on the shared component row (last writer wins)."""
    repo = Repository(ctx.session, Component)

    async def _write() -> Component:
        component = repo.get(component_id)
        if component is None:
            raise NotFoundError(f"Component {component_id} not found.")
        repo.update(
            component_id,
            latest_version=latest,
            update_available=is_newer(component.version, latest),
            last_checked=datetime.now(timezone.utc),
        )
        touch_services_for_component(ctx.session, component_id)
        ctx.session.commit()
        return component

    return await with_store_retry(
        ctx.session,
        _write,
        attempts=ctx.settings.STORE_RETRY_ATTEMPTS,
        base_delay=ctx.settings.STORE_RETRY_BASE_DELAY_SEC,
        label=f"version check of component {component_id}",
    )


async def _propagate(ctx: PipelineContext, component: Component) -> tuple[list[Notification], int]:
    """
    Re-evaluate every service that references component. A service whose
    re-evaluation fails is logged and skipped; the next check retries it.
    Returns the notifications created and the number of services that failed.
    """
    trigger = Trigger(kind="component_update_observed", component_id=component.id)
    notifications: list[Notification] = []
    failed = 0
    for service in services_referencing_component(ctx.session, component.id):
        try:
            _, created = await reevaluate_and_notify(ctx, service.id, trigger)
        except StackwatchError as e:
            failed += 1
            logger.warning(
                "Re-evaluation of service %s after checking %s %s failed: %s",
                service.id,
                component.name,
                component.version,
                e,
                extra={"component_id": component.id, "service_id": service.id},
            )
            continue
        notifications.extend(created)
    return notifications, failed


async def check_component_update(ctx: PipelineContext, component_id: int) -> ComponentUpdateResult:
    """
    Check one component. Source failures propagate as UpstreamUnavailable and
    leave the component unchanged.
    """
    component_id = validate_id(component_id, "Component id")
    component = Repository(ctx.session, Component).get(component_id)
    if component is None:
        raise NotFoundError(f"Component {component_id} not found.")
    latest = await ctx.version_source.latest_version(component.name, component.type, component.ecosystem)
    component = await _persist_check(ctx, component_id, latest)
    logger.info(
        "Checked %s %s: latest %s, update available: %s",
        component.name,
        component.version,
        latest,
        component.update_available,
        extra={"component_id": component.id},
    )
    notifications, _ = await _propagate(ctx, component)
    return ComponentUpdateResult(
        component=ComponentOut.model_validate(component),
        notifications=[NotificationOut.model_validate(n) for n in notifications],
    )


async def _fetch_latest(
    ctx: PipelineContext,
    component: Component,
    semaphore: asyncio.Semaphore,
) -> str | UpstreamUnavailable:
    async with semaphore:
        try:
            return await ctx.version_source.latest_version(
                component.name, component.type, component.ecosystem
            )
        except UpstreamUnavailable as e:
            return e


async def check_all_updates(ctx: PipelineContext) -> CheckAllUpdatesResult:
    """
    Check every component. Lookups run concurrently (bounded by CHECK_CONCURRENCY);
    results are persisted one component at a time so a failure partway through
    leaves earlier components updated. Failing components are skipped and counted.
    """
    components = Repository(ctx.session, Component).find_all(order_by=Component.id)
    counts = UpdateCheckBatchResult(total=len(components))
    semaphore = asyncio.Semaphore(ctx.settings.CHECK_CONCURRENCY)
    fetched = await asyncio.gather(*(_fetch_latest(ctx, c, semaphore) for c in components))

    notifications: list[Notification] = []
    for component, latest in zip(components, fetched):
        label = f"{component.name} {component.version}"
        if isinstance(latest, UpstreamUnavailable):
            counts.upstream_unavailable += 1
            logger.warning("Skipping %s: %s", label, latest, extra={"component_id": component.id})
            continue
        try:
            stored = await _persist_check(ctx, component.id, latest)
        except StackwatchError as e:
            counts.dropped += 1
            logger.warning("Dropped version check of %s: %s", label, e, extra={"component_id": component.id})
            continue
        counts.updated += 1
        if stored.update_available:
            counts.with_updates += 1
        try:
            created, failed = await _propagate(ctx, stored)
        except StackwatchError as e:
            # The component row is stored; the next check re-evaluates its services.
            counts.dropped += 1
            logger.warning(
                "Re-evaluation after checking %s failed: %s",
                label,
                e,
                extra={"component_id": component.id},
            )
            continue
        notifications.extend(created)
        if failed:
            counts.dropped += 1

    logger.info(
        "Checked %s components: %s updated, %s with updates, %s upstream unavailable, %s dropped",
        counts.total,
        counts.updated,
        counts.with_updates,
        counts.upstream_unavailable,
        counts.dropped,
        extra=counts.model_dump(),
    )
    return CheckAllUpdatesResult(
        results=counts,
        notifications=[NotificationOut.model_validate(n) for n in notifications],
    )
