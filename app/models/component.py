"""ORM model for technical components (languages, frameworks, libraries, ...)."""

from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text, UniqueConstraint, false

from app.models.base import Base, created_at_column, updated_at_column


class Component(Base):
    """
    One (name, version) pair observed in at least one service.

    Shared across services and never deleted while referenced. Only the version
    check mutates latest_version, update_available and last_checked.
    """

    __tablename__ = "components"
    __table_args__ = (
        UniqueConstraint("name", "version", name="uq_components_name_version"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False, index=True)
    version = Column(String(128), nullable=False)
    type = Column(String(32), nullable=False, index=True)
    # Package ecosystem (npm, PyPI, ...) when known; used by registry and OSV lookups.
    ecosystem = Column(String(64), nullable=True)
    latest_version = Column(String(128), nullable=True)
    update_available = Column(Boolean, nullable=False, default=False, server_default=false())
    last_checked = Column(DateTime(timezone=True), nullable=True)
    description = Column(Text, nullable=True)
    website = Column(String(1024), nullable=True)
    license = Column(String(255), nullable=True)
    created_at = created_at_column()
    updated_at = updated_at_column()
