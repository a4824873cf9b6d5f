"""Shared tail of every ingestion path: re-evaluate a service, then dispatch what it decided."""

from app.models import Notification
from app.schemas.events import NotificationEvent, Trigger
from app.services.context import PipelineContext
from app.services.dispatcher import DispatchResult, dispatch
from app.services.status import Reevaluation, reevaluate
from app.store.retry import with_store_retry


async def dispatch_with_retry(ctx: PipelineContext, events: list[NotificationEvent]) -> list[Notification]:
    """
    Dispatch events in order, retrying store failures per event so a failure on
    one event does not re-run the ones already stored. Returns the notifications
    newly created.
    """
    settings = ctx.settings
    created: list[Notification] = []
    for event in events:

        async def _dispatch(event: NotificationEvent = event) -> DispatchResult:
            return await dispatch(ctx, event)

        result = await with_store_retry(
            ctx.session,
            _dispatch,
            attempts=settings.STORE_RETRY_ATTEMPTS,
            base_delay=settings.STORE_RETRY_BASE_DELAY_SEC,
            label=f"dispatch of notification {event.dedup_key}",
        )
        if result.created:
            created.append(result.notification)
    return created


async def reevaluate_and_notify(
    ctx: PipelineContext,
    service_id: int,
    trigger: Trigger,
) -> tuple[Reevaluation, list[Notification]]:
    """
    Run the re-evaluator for one service (store failures retried with backoff)
    and dispatch its notification events. Returns the re-evaluation and the
    notifications newly created.
    """
    settings = ctx.settings

    async def _run() -> Reevaluation:
        return reevaluate(
            ctx.session,
            service_id,
            trigger,
            max_attempts=settings.REEVALUATE_MAX_ATTEMPTS,
            notify_on_recovery=settings.NOTIFY_ON_RECOVERY,
        )

    result = await with_store_retry(
        ctx.session,
        _run,
        attempts=settings.STORE_RETRY_ATTEMPTS,
        base_delay=settings.STORE_RETRY_BASE_DELAY_SEC,
        label=f"re-evaluation of service {service_id}",
    )

    notifications = await dispatch_with_retry(ctx, result.events)
    return result, notifications
