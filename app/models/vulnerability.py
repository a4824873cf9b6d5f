"""ORM model for known vulnerabilities."""

from sqlalchemy import Column, DateTime, Float, Integer, String, Text, func

from app.models.base import Base, JSONType, created_at_column, updated_at_column


class Vulnerability(Base):
    """
    A vulnerability record, optionally linked to a CVE.

    natural_key is the CVE id when present, otherwise the normalized title; it
    makes re-ingesting the same fact an upsert. Only status changes after creation.
    """

    __tablename__ = "vulnerabilities"

    id = Column(Integer, primary_key=True, autoincrement=True)
    natural_key = Column(String(600), nullable=False, unique=True)
    cve_id = Column(String(64), nullable=True, index=True)
    title = Column(String(512), nullable=False)
    description = Column(Text, nullable=False, default="")
    severity = Column(String(16), nullable=False, index=True)
    status = Column(String(32), nullable=False, default="open", index=True)
    affected_versions = Column(JSONType, nullable=False, default=list)
    fixed_in_version = Column(String(128), nullable=True)
    references = Column(JSONType, nullable=False, default=list)
    cvss_score = Column(Float, nullable=True)
    remediation = Column(Text, nullable=True)
    discovered_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    created_at = created_at_column()
    updated_at = updated_at_column()
