"""ORM model for generated reports (frozen snapshots)."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, false, func

from app.models.base import Base, JSONType, created_at_column


class Report(Base):
    """Summary snapshot over a set of services. Written once, never updated."""

    __tablename__ = "reports"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(512), nullable=False)
    generated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), index=True)
    format = Column(String(8), nullable=False, default="html")
    service_ids = Column(JSONType, nullable=False, default=list)
    summary = Column(JSONType, nullable=False, default=dict)
    recommendations = Column(JSONType, nullable=False, default=list)
    file_path = Column(String(1024), nullable=True)
    generated_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    is_scheduled = Column(Boolean, nullable=False, default=False, server_default=false())
    created_at = created_at_column()
