"""Data retention: delete notifications past their expiry."""

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

from app.store.queries import delete_expired_notifications

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)


def run_retention(session: Session, settings: "Settings", now: datetime | None = None) -> int:
    """
    Delete notifications whose expires_at has passed. Reports are audit records and are kept,
    and so are the dedup keys, so an expired fact is not notified again.

    Returns the number of notifications deleted. Idempotent: safe to run repeatedly.
    """
    if not settings.RETENTION_ENABLED:
        logger.info("Retention is disabled (RETENTION_ENABLED=false); skipping.")
        return 0

    now = now or datetime.now(timezone.utc)
    deleted_count = delete_expired_notifications(session, now)
    session.commit()

    if deleted_count > 0:
        logger.info(
            "Retention run: now=%s, notifications_deleted=%s",
            now.isoformat(),
            deleted_count,
        )
    return deleted_count
