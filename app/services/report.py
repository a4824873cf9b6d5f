"""Report aggregation: frozen summary snapshots over a set of services."""

import logging
import time
from collections.abc import Callable, Iterable, Sequence
from datetime import datetime, timezone

from app.core.errors import NotFoundError, ValidationError
from app.models import Report
from app.schemas.events import NotificationEvent
from app.schemas.notification import NotificationOut
from app.schemas.report import ReportOut, ReportSummary
from app.schemas.results import GenerateReportResult
from app.services.context import PipelineContext
from app.services.pipeline import dispatch_with_retry
from app.services.validation import validate_id, validate_report_request
from app.store.queries import ServiceGraph, load_service_graph, recent_reports
from app.store.repository import Repository
from app.store.retry import with_store_retry

logger = logging.getLogger(__name__)

DEFAULT_RECENT_LIMIT = 5
MAX_RECENT_LIMIT = 100


def build_summary(graphs: Iterable[ServiceGraph]) -> ReportSummary:
    """
    Tally services by status and vulnerability associations by severity.

    Every (service, component, vulnerability) association counts, whatever the
    vulnerability's status: a vulnerability shared by two services counts twice,
    and one reached through two components of a service counts twice too.
    open_vulnerabilities counts the associations still open.
    """
    summary = ReportSummary()
    for graph in graphs:
        summary.total_services += 1
        status_field = f"{graph.service.status}_services"
        setattr(summary, status_field, getattr(summary, status_field) + 1)
        for _, vulnerability in graph.vulnerabilities:
            if vulnerability.status == "open":
                summary.open_vulnerabilities += 1
            severity_field = f"{vulnerability.severity}_vulnerabilities"
            setattr(summary, severity_field, getattr(summary, severity_field) + 1)
    return summary


# Evaluated top to bottom; every matching rule contributes its line.
RECOMMENDATION_RULES: list[tuple[Callable[[ReportSummary], bool], Callable[[ReportSummary], str]]] = [
    (
        lambda s: s.critical_vulnerabilities > 0,
        lambda s: "Fix critical vulnerabilities immediately by updating the affected components.",
    ),
    (
        lambda s: s.high_vulnerabilities > 0,
        lambda s: "Schedule remediation of high-risk vulnerabilities as soon as possible.",
    ),
    (
        lambda s: s.vulnerable_services > 0,
        lambda s: f"Prioritize updating the {s.vulnerable_services} vulnerable services identified.",
    ),
    (
        lambda s: s.outdated_services > 0,
        lambda s: (
            f"Update the {s.outdated_services} outdated services to pick up the latest "
            "features and security fixes."
        ),
    ),
    (
        lambda s: True,
        lambda s: "Set up continuous monitoring of vulnerabilities and available updates.",
    ),
    (
        lambda s: s.vulnerable_services > 0 or s.critical_vulnerabilities > 0 or s.high_vulnerabilities > 0,
        lambda s: "Run thorough security testing once the vulnerabilities are fixed.",
    ),
]


def build_recommendations(summary: ReportSummary) -> list[str]:
    return [message(summary) for applies, message in RECOMMENDATION_RULES if applies(summary)]


def report_file_path(format: str, now: datetime | None = None) -> str:
    epoch_ms = int((now.timestamp() if now else time.time()) * 1000)
    return f"/reports/{epoch_ms}_report.{format}"


def report_event(report: Report) -> NotificationEvent:
    summary = report.summary or {}
    return NotificationEvent(
        service_id=None,
        fact_kind="report",
        fact_id=report.id,
        type="report",
        severity="info",
        title="Report generated",
        message=(
            f"Report '{report.title}' covers {summary.get('total_services', 0)} services: "
            f"{summary.get('vulnerable_services', 0)} vulnerable, "
            f"{summary.get('outdated_services', 0)} outdated."
        ),
        link=f"/reports/{report.id}",
    )


async def generate_report(
    ctx: PipelineContext,
    title: str,
    service_ids: list[int],
    format: str = "html",
    generated_by: int | None = None,
) -> GenerateReportResult:
    """
    Snapshot the current state of the given services into a new report.

    Unknown service ids are ignored; ValidationError when the list is empty or
    none of the ids exist. Reads only: no service is re-evaluated here.
    """
    title, ids, format = validate_report_request(title, service_ids, format)
    session = ctx.session

    async def _write() -> Report:
        graphs = [g for g in (load_service_graph(session, sid) for sid in ids) if g is not None]
        if not graphs:
            raise ValidationError("None of the requested services exist.")
        summary = build_summary(graphs)
        now = datetime.now(timezone.utc)
        report = Repository(session, Report).create(
            title=title,
            generated_at=now,
            format=format,
            service_ids=[g.service.id for g in graphs],
            summary=summary.model_dump(),
            recommendations=build_recommendations(summary),
            file_path=report_file_path(format, now),
            generated_by=generated_by,
        )
        session.commit()
        return report

    report = await with_store_retry(
        session,
        _write,
        attempts=ctx.settings.STORE_RETRY_ATTEMPTS,
        base_delay=ctx.settings.STORE_RETRY_BASE_DELAY_SEC,
        label="report generation",
    )
    missing = len(ids) - len(report.service_ids)
    logger.info(
        "Generated report %s over %s services (%s unknown ids ignored)",
        report.id,
        len(report.service_ids),
        missing,
        extra={"report_id": report.id},
    )
    notifications = await dispatch_with_retry(ctx, [report_event(report)])
    return GenerateReportResult(
        report=ReportOut.model_validate(report),
        notifications=[NotificationOut.model_validate(n) for n in notifications],
    )


def list_reports(ctx: PipelineContext) -> Sequence[Report]:
    return Repository(ctx.session, Report).find_all(order_by=Report.generated_at.desc())


def get_report(ctx: PipelineContext, report_id: int) -> Report:
    report_id = validate_id(report_id, "Report id")
    report = Repository(ctx.session, Report).get(report_id)
    if report is None:
        raise NotFoundError(f"Report {report_id} not found.")
    return report


def get_recent_reports(ctx: PipelineContext, limit: int = DEFAULT_RECENT_LIMIT) -> Sequence[Report]:
    if limit < 1:
        limit = DEFAULT_RECENT_LIMIT
    return recent_reports(ctx.session, min(limit, MAX_RECENT_LIMIT))
