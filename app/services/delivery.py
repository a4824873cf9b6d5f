"""Notification delivery channels. Delivery is best-effort and happens after the notification is stored."""

import logging
from typing import TYPE_CHECKING, Any, Protocol

import httpx

from app.core.errors import DeliveryError
from app.models import Notification

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)


class DeliveryChannel(Protocol):
    async def deliver(self, notification: Notification, recipients: set[int]) -> None:
        """Send notification to recipients; raise DeliveryError on failure."""
        ...


def _payload(notification: Notification, recipients: set[int]) -> dict[str, Any]:
    return {
        "id": notification.id,
        "title": notification.title,
        "message": notification.message,
        "type": notification.type,
        "severity": notification.severity,
        "service_id": notification.service_id,
        "link": notification.link,
        "recipients": sorted(recipients),
    }


class LogDeliveryChannel:
    """Writes the notification to the log; used when no webhook is configured."""

    async def deliver(self, notification: Notification, recipients: set[int]) -> None:
        logger.info(
            "Delivering notification %s: %s",
            notification.id,
            notification.title,
            extra={"notification_id": notification.id, "recipient_count": len(recipients)},
        )


class WebhookDeliveryChannel:
    """POSTs a JSON payload per notification to a configured URL."""

    def __init__(self, url: str, timeout: float, client: httpx.AsyncClient | None = None) -> None:
        self.url = url
        self.timeout = timeout
        self._client = client

    async def _post(self, payload: dict[str, Any]) -> httpx.Response:
        if self._client is not None:
            return await self._client.post(self.url, json=payload, timeout=self.timeout)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.post(self.url, json=payload)

    async def deliver(self, notification: Notification, recipients: set[int]) -> None:
        try:
            resp = await self._post(_payload(notification, recipients))
        except httpx.HTTPError as e:
            raise DeliveryError(f"Webhook delivery of notification {notification.id} failed.", cause=e) from e
        if resp.status_code >= 400:
            raise DeliveryError(
                f"Webhook returned {resp.status_code} for notification {notification.id}."
            )


def get_delivery_channel(settings: "Settings") -> DeliveryChannel:
    if settings.NOTIFY_WEBHOOK_URL:
        return WebhookDeliveryChannel(settings.NOTIFY_WEBHOOK_URL, settings.NOTIFY_REQUEST_TIMEOUT_SEC)
    return LogDeliveryChannel()
