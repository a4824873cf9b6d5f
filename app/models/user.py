"""ORM model for application users (auth, RBAC and notification preferences)."""

from sqlalchemy import Boolean, Column, Integer, String, true

from app.models.base import Base, JSONType, created_at_column


class User(Base):
    """
    User account for JWT authentication and role-based access control.

    role: 'admin', 'developer' or 'viewer'
    notification_preferences: notification type -> opted in (missing means no)
    """

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(255), nullable=False, unique=True, index=True)
    email = Column(String(320), nullable=True, unique=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(32), nullable=False, default="viewer", index=True)
    is_active = Column(Boolean, nullable=False, default=True, server_default=true(), index=True)
    notification_preferences = Column(JSONType, nullable=False, default=dict)
    created_at = created_at_column()
