"""ORM models for services and their component/vulnerability associations."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint

from app.models.base import Base, created_at_column, updated_at_column


class Service(Base):
    """
    Aggregate root of the derived state.

    status is computed from the associations below, never supplied directly.
    revision is bumped on every association change and every status write so
    status updates can compare-and-swap against the state they were computed from.
    """

    __tablename__ = "services"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False, unique=True, index=True)
    description = Column(Text, nullable=True)
    repository_url = Column(String(2048), nullable=True)
    environment = Column(String(32), nullable=False, default="development")
    status = Column(String(16), nullable=False, default="unknown", index=True)
    last_scan = Column(DateTime(timezone=True), nullable=True, index=True)
    revision = Column(Integer, nullable=False, default=0)
    created_at = created_at_column()
    updated_at = updated_at_column()


class ServiceComponent(Base):
    """Set membership of a component in a service; id preserves insertion order."""

    __tablename__ = "service_components"
    __table_args__ = (
        UniqueConstraint("service_id", "component_id", name="uq_service_components"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    service_id = Column(Integer, ForeignKey("services.id", ondelete="CASCADE"), nullable=False, index=True)
    component_id = Column(Integer, ForeignKey("components.id"), nullable=False, index=True)
    created_at = created_at_column()


class ServiceVulnerability(Base):
    """A (component, vulnerability) pair observed on a service."""

    __tablename__ = "service_vulnerabilities"
    __table_args__ = (
        UniqueConstraint(
            "service_id",
            "component_id",
            "vulnerability_id",
            name="uq_service_vulnerabilities",
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    service_id = Column(Integer, ForeignKey("services.id", ondelete="CASCADE"), nullable=False, index=True)
    component_id = Column(Integer, ForeignKey("components.id"), nullable=False)
    vulnerability_id = Column(Integer, ForeignKey("vulnerabilities.id"), nullable=False, index=True)
    created_at = created_at_column()
