"""ORM models for notifications and their explicit recipients."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text, false

from app.models.base import Base, created_at_column


class Notification(Base):
    """
    A user-facing notification, created at most once per dedup_key.

    audience 'privileged' means every admin and developer (resolved at read and
    delivery time, not stored); 'opted_in' means the rows in notification_recipients.
    Only the read flag changes after creation.
    """

    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    dedup_key = Column(String(255), nullable=False, unique=True)
    fact_kind = Column(String(32), nullable=False)
    title = Column(String(512), nullable=False)
    message = Column(Text, nullable=False)
    type = Column(String(32), nullable=False, index=True)
    severity = Column(String(16), nullable=False, default="info", index=True)
    service_id = Column(Integer, ForeignKey("services.id", ondelete="SET NULL"), nullable=True, index=True)
    audience = Column(String(16), nullable=False, default="privileged")
    read = Column(Boolean, nullable=False, default=False, server_default=false(), index=True)
    link = Column(String(1024), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=True, index=True)
    created_at = created_at_column()


class NotificationRecipient(Base):
    """Explicit recipient of an opted_in notification."""

    __tablename__ = "notification_recipients"

    notification_id = Column(
        Integer, ForeignKey("notifications.id", ondelete="CASCADE"), primary_key=True
    )
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True, index=True)


class NotificationKey(Base):
    """
    Every dedup key ever dispatched. Rows are never deleted, so a key stays
    taken after its notification is removed by a user or by retention.
    """

    __tablename__ = "notification_keys"

    dedup_key = Column(String(255), primary_key=True)
    created_at = created_at_column()
