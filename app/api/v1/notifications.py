"""Notification inbox for the current user, and posting announcements."""

from typing import Annotated

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from app.api.v1.auth import get_current_user, require_writer
from app.api.v1.deps import get_pipeline
from app.core.database import get_db
from app.schemas.auth import CurrentUser
from app.schemas.notification import (
    MarkAllReadResponse,
    NotificationCreate,
    NotificationCreateResult,
    NotificationListResponse,
    NotificationOut,
    NotificationPreferences,
)
from app.services.context import PipelineContext
from app.services.dispatcher import create_notification
from app.services.inbox import (
    list_notifications,
    mark_all_notifications_read,
    mark_read,
    remove_notification,
    update_preferences,
)

router = APIRouter()


def _listing(notifications) -> NotificationListResponse:
    items = [NotificationOut.model_validate(n) for n in notifications]
    return NotificationListResponse(count=len(items), notifications=items)


@router.get("", response_model=NotificationListResponse)
def get_notifications(
    db: Annotated[Session, Depends(get_db)],
    user: Annotated[CurrentUser, Depends(get_current_user)],
) -> NotificationListResponse:
    """Unexpired notifications addressed to the current user, newest first."""
    return _listing(list_notifications(db, user))


@router.post("", response_model=NotificationCreateResult, status_code=status.HTTP_201_CREATED)
async def post_notification(
    body: NotificationCreate,
    response: Response,
    ctx: Annotated[PipelineContext, Depends(get_pipeline)],
    _user: Annotated[CurrentUser, Depends(require_writer)],
) -> NotificationCreateResult:
    """
    Post a user or system notification. Reposting a fact_id already used for the
    same type and service returns 200 with created=false.
    """
    result = await create_notification(ctx, body)
    if not result.created:
        response.status_code = status.HTTP_200_OK
    notification = NotificationOut.model_validate(result.notification) if result.notification else None
    return NotificationCreateResult(created=result.created, notification=notification)


@router.get("/unread", response_model=NotificationListResponse)
def get_unread_notifications(
    db: Annotated[Session, Depends(get_db)],
    user: Annotated[CurrentUser, Depends(get_current_user)],
) -> NotificationListResponse:
    return _listing(list_notifications(db, user, unread_only=True))


@router.put("/read-all", response_model=MarkAllReadResponse)
def put_read_all(
    db: Annotated[Session, Depends(get_db)],
    user: Annotated[CurrentUser, Depends(get_current_user)],
) -> MarkAllReadResponse:
    return MarkAllReadResponse(count=mark_all_notifications_read(db, user))


@router.put("/preferences", response_model=NotificationPreferences)
def put_preferences(
    body: NotificationPreferences,
    db: Annotated[Session, Depends(get_db)],
    user: Annotated[CurrentUser, Depends(get_current_user)],
) -> NotificationPreferences:
    """Opt in or out of notification types. Critical and high notifications reach admins and developers regardless."""
    return NotificationPreferences(preferences=update_preferences(db, user.id, body.preferences))


@router.put("/{notification_id}/read", response_model=NotificationOut)
def put_read(
    notification_id: int,
    db: Annotated[Session, Depends(get_db)],
    user: Annotated[CurrentUser, Depends(get_current_user)],
) -> NotificationOut:
    return NotificationOut.model_validate(mark_read(db, user, notification_id))


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_notification(
    notification_id: int,
    db: Annotated[Session, Depends(get_db)],
    user: Annotated[CurrentUser, Depends(get_current_user)],
) -> None:
    remove_notification(db, user, notification_id)
