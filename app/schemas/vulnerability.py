"""Pydantic schemas for vulnerability facts and records."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class VulnerabilityIn(BaseModel):
    """A vulnerability fact from a feed or a user. Validated by app.services.validation before any write."""

    cve_id: str | None = Field(default=None, description="External CVE identifier, if any.")
    title: str = Field(..., description="Short title.")
    description: str = Field(default="", description="Human-readable description.")
    severity: str = Field(..., description="critical, high, medium, low, or info.")
    affected_versions: list[str] = Field(default_factory=list)
    fixed_in_version: str | None = None
    references: list[str] = Field(default_factory=list)
    cvss_score: float | None = Field(default=None, description="CVSS score in range 0.0-10.0.")
    remediation: str | None = None


class VulnerabilityOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    cve_id: str | None = None
    title: str
    description: str
    severity: str
    status: str
    affected_versions: list[str] = Field(default_factory=list)
    fixed_in_version: str | None = None
    references: list[str] = Field(default_factory=list)
    cvss_score: float | None = None
    remediation: str | None = None
    discovered_at: datetime | None = None


class RecordVulnerabilityRequest(BaseModel):
    component_id: int = Field(..., ge=1)
    vulnerability: VulnerabilityIn


class VulnerabilityStatusUpdate(BaseModel):
    status: str = Field(..., description="open, fixed, mitigated, false_positive, or wont_fix.")


class VulnerabilityScanResult(BaseModel):
    """Counters for a vulnerability-source scan of one service."""

    components_checked: int = Field(default=0, ge=0)
    vulnerabilities_recorded: int = Field(default=0, ge=0)
    upstream_unavailable: int = Field(default=0, ge=0)
    dropped: int = Field(default=0, ge=0)
