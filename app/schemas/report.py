"""Pydantic schemas for report generation and snapshots."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class ReportSummary(BaseModel):
    """Counters frozen into a report at generation time."""

    total_services: int = 0
    secure_services: int = 0
    vulnerable_services: int = 0
    outdated_services: int = 0
    unknown_services: int = 0
    critical_vulnerabilities: int = 0
    high_vulnerabilities: int = 0
    medium_vulnerabilities: int = 0
    low_vulnerabilities: int = 0
    info_vulnerabilities: int = 0
    open_vulnerabilities: int = 0


class ReportRequest(BaseModel):
    title: str = Field(..., description="Report title.")
    service_ids: list[int] = Field(..., description="Services to include.")
    format: str = Field(default="html", description="pdf, html, json, or csv.")


class ReportOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    generated_at: datetime | None = None
    format: str
    service_ids: list[int]
    summary: ReportSummary
    recommendations: list[str]
    file_path: str | None = None
    generated_by: int | None = None


class ReportListResponse(BaseModel):
    count: int
    reports: list[ReportOut]
