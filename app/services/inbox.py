"""Per-user notification inbox: listing, read flags, deletion and preferences."""

import logging
from collections.abc import Sequence

from sqlalchemy.orm import Session

from app.core.errors import NotFoundError
from app.models import Notification, User
from app.schemas.auth import CurrentUser
from app.schemas.common import PRIVILEGED_ROLES
from app.services.validation import validate_id, validate_preferences
from app.store.queries import (
    delete_notification,
    delete_recipient,
    mark_all_read,
    notification_for_user,
    notifications_for_user,
    recipient_ids,
)
from app.store.repository import Repository

logger = logging.getLogger(__name__)


def list_notifications(session: Session, user: CurrentUser, unread_only: bool = False) -> Sequence[Notification]:
    return notifications_for_user(session, user, unread_only=unread_only)


def _addressed(session: Session, user: CurrentUser, notification_id: int) -> Notification:
    notification_id = validate_id(notification_id, "Notification id")
    notification = notification_for_user(session, user, notification_id)
    if notification is None:
        raise NotFoundError(f"Notification {notification_id} not found.")
    return notification


def mark_read(session: Session, user: CurrentUser, notification_id: int) -> Notification:
    notification = _addressed(session, user, notification_id)
    notification.read = True
    session.commit()
    return notification


def mark_all_notifications_read(session: Session, user: CurrentUser) -> int:
    count = mark_all_read(session, user)
    session.commit()
    return count


def remove_notification(session: Session, user: CurrentUser, notification_id: int) -> None:
    """
    Remove a notification from the caller's inbox.

    An admin or developer removing a privileged-audience row deletes it for
    every privileged user. Anyone else only drops their own recipient entry;
    an opted_in row is deleted once nobody is left to see it.
    """
    notification = _addressed(session, user, notification_id)
    if notification.audience == "privileged" and user.role in PRIVILEGED_ROLES:
        delete_notification(session, notification.id)
        logger.info("Deleted notification %s", notification.id, extra={"user_id": user.id})
    else:
        delete_recipient(session, notification.id, user.id)
        if notification.audience == "opted_in" and not recipient_ids(session, notification.id):
            delete_notification(session, notification.id)
        logger.info(
            "Removed notification %s from the inbox of user %s",
            notification.id,
            user.id,
            extra={"user_id": user.id},
        )
    session.commit()


def update_preferences(session: Session, user_id: int, preferences: dict[str, bool]) -> dict[str, bool]:
    """Merge per-type opt-in flags into the user's preferences; returns the stored result."""
    preferences = validate_preferences(preferences)
    user = Repository(session, User).get(user_id)
    if user is None:
        raise NotFoundError(f"User {user_id} not found.")
    # Reassign so the JSON column is flagged dirty.
    user.notification_preferences = {**(user.notification_preferences or {}), **preferences}
    session.commit()
    return dict(user.notification_preferences)
