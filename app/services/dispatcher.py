"""Notification dispatcher: deduplicated creation, recipient resolution and best-effort delivery.

A notification is created at most once per (fact kind, service, fact id). The
row is committed before any delivery attempt; a failed delivery is retried
once immediately, then logged and left alone.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from app.core.errors import DeliveryError, ValidationError
from app.models import Notification, Service
from app.schemas.common import PRIVILEGED_ROLES
from app.schemas.events import NotificationEvent
from app.schemas.notification import NotificationCreate
from app.services.context import PipelineContext
from app.services.validation import validate_notification_request
from app.store.queries import (
    active_user_ids,
    insert_notification_if_absent,
    recipient_ids,
    users_opted_in,
    users_with_role,
)
from app.store.repository import Repository
from app.store.retry import with_store_retry

logger = logging.getLogger(__name__)

# Severities that go to every privileged user regardless of preferences.
BROADCAST_SEVERITIES: frozenset[str] = frozenset({"critical", "high"})

DELIVERY_ATTEMPTS = 2


@dataclass
class DispatchResult:
    notification: Notification | None
    created: bool
    recipients: set[int] = field(default_factory=set)
    delivered: bool = False


def audience_for(severity: str) -> str:
    return "privileged" if severity in BROADCAST_SEVERITIES else "opted_in"


def privileged_users(ctx: PipelineContext) -> set[int]:
    users: set[int] = set()
    for role in PRIVILEGED_ROLES:
        users |= users_with_role(ctx.session, role)
    return users


def resolve_recipients(ctx: PipelineContext, notification: Notification) -> set[int]:
    """Expand a stored notification's audience to concrete user ids."""
    explicit = recipient_ids(ctx.session, notification.id)
    if notification.audience == "privileged":
        return privileged_users(ctx) | explicit
    return explicit


async def _deliver(ctx: PipelineContext, notification: Notification, recipients: set[int]) -> bool:
    for attempt in range(1, DELIVERY_ATTEMPTS + 1):
        try:
            await ctx.delivery.deliver(notification, recipients)
            return True
        except DeliveryError as e:
            logger.warning(
                "Delivery of notification %s failed (attempt %s/%s): %s",
                notification.id,
                attempt,
                DELIVERY_ATTEMPTS,
                e,
                extra={"notification_id": notification.id},
            )
        except Exception:
            logger.exception(
                "Delivery of notification %s raised (attempt %s/%s)",
                notification.id,
                attempt,
                DELIVERY_ATTEMPTS,
                extra={"notification_id": notification.id},
            )
    return False


async def dispatch(ctx: PipelineContext, event: NotificationEvent) -> DispatchResult:
    """
    Create the notification for event unless one with the same dedup key exists, then deliver it.

    Re-dispatching an event whose key was already used returns created=False
    and does not deliver again. The notification is the existing row, or None
    when that row has since been deleted.
    """
    session = ctx.session
    audience = audience_for(event.severity)
    if event.recipients is not None:
        stored_recipients = set(event.recipients)
    elif audience == "opted_in":
        stored_recipients = users_opted_in(session, event.type)
    else:
        stored_recipients = set()
    values = {
        "dedup_key": event.dedup_key,
        "fact_kind": event.fact_kind,
        "title": event.title,
        "message": event.message,
        "type": event.type,
        "severity": event.severity,
        "service_id": event.service_id,
        "audience": audience,
        "link": event.link,
        "expires_at": datetime.now(timezone.utc) + timedelta(days=ctx.settings.NOTIFICATION_TTL_DAYS),
    }
    notification, created = insert_notification_if_absent(session, values, stored_recipients)
    session.commit()
    if not created:
        logger.debug("Notification key %s already used; skipping", event.dedup_key)
        return DispatchResult(notification=notification, created=False)

    recipients = resolve_recipients(ctx, notification)
    logger.info(
        "Created %s notification %s for service %s",
        notification.type,
        notification.id,
        notification.service_id,
        extra={
            "notification_id": notification.id,
            "dedup_key": event.dedup_key,
            "audience": audience,
            "recipient_count": len(recipients),
        },
    )
    if not recipients:
        return DispatchResult(notification=notification, created=True)
    delivered = await _deliver(ctx, notification, recipients)
    return DispatchResult(
        notification=notification,
        created=True,
        recipients=recipients,
        delivered=delivered,
    )


def _generated_fact_id() -> int:
    # Positive and within a signed 64-bit range.
    return (uuid.uuid4().int >> 65) or 1


async def create_notification(ctx: PipelineContext, request: NotificationCreate) -> DispatchResult:
    """
    Post an announcement through the same deduplicated path as derived notifications.

    The request type doubles as the fact kind. Without a fact_id every call
    creates a new notification. ValidationError for an unknown service or for
    recipient ids that are not active users.
    """
    request = validate_notification_request(request)
    session = ctx.session
    if request.service_id is not None and Repository(session, Service).get(request.service_id) is None:
        raise ValidationError(f"Service {request.service_id} does not exist.")
    if request.recipients is not None:
        unknown = set(request.recipients) - active_user_ids(session, request.recipients)
        if unknown:
            raise ValidationError(f"Unknown or inactive recipients: {sorted(unknown)}.")
    event = NotificationEvent(
        service_id=request.service_id,
        fact_kind=request.type,
        fact_id=request.fact_id or _generated_fact_id(),
        type=request.type,
        severity=request.severity,
        title=request.title,
        message=request.message,
        link=request.link,
        recipients=request.recipients,
    )

    async def _post() -> DispatchResult:
        return await dispatch(ctx, event)

    return await with_store_retry(
        session,
        _post,
        attempts=ctx.settings.STORE_RETRY_ATTEMPTS,
        base_delay=ctx.settings.STORE_RETRY_BASE_DELAY_SEC,
        label=f"posting notification {event.dedup_key}",
    )
