"""Status re-evaluation: derive a service's status from its current associations.

Rules, in precedence order:
  1. vulnerable: at least one open vulnerability with severity medium or above.
  2. outdated: otherwise, at least one component has an update available.
  3. secure: otherwise.
A service that has never been scanned and has no associations stays unknown.

Low and info vulnerabilities never make a service vulnerable; they are still
notified. The status write is a compare-and-swap on the service revision, so
two concurrent re-evaluations of one service cannot both store a status
computed from stale associations; the loser re-reads and tries again.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import set_committed_value

from app.core.errors import ConflictError, NotFoundError
from app.models import Component, Service, Vulnerability
from app.schemas.events import NotificationEvent, StatusChanged, Trigger
from app.store.queries import ServiceGraph, compare_and_set_status, load_service_graph

logger = logging.getLogger(__name__)

# Severities that make an open vulnerability block the secure/outdated states.
BLOCKING_SEVERITIES: frozenset[str] = frozenset({"critical", "high", "medium"})

# Higher rank = less safe. unknown has no rank: leaving it sets a baseline, not a regression.
STATUS_RANK: dict[str, int] = {"secure": 0, "outdated": 1, "vulnerable": 2}

DEFAULT_MAX_ATTEMPTS = 3


@dataclass
class Reevaluation:
    """Outcome of one re-evaluation: the stored status, the change if any, and notifications to dispatch."""

    service: Service
    old_status: str
    new_status: str
    change: StatusChanged | None = None
    events: list[NotificationEvent] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return self.change is not None


def is_blocking(vulnerability: Vulnerability) -> bool:
    return vulnerability.status == "open" and vulnerability.severity in BLOCKING_SEVERITIES


def compute_status(
    components: Iterable[Component],
    vulnerabilities: Iterable[Vulnerability],
    scanned: bool = True,
) -> str:
    """Pure status function over a service's components and associated vulnerabilities."""
    components = list(components)
    vulnerabilities = list(vulnerabilities)
    if not scanned and not components and not vulnerabilities:
        return "unknown"
    if any(is_blocking(v) for v in vulnerabilities):
        return "vulnerable"
    if any(c.update_available for c in components):
        return "outdated"
    return "secure"


def status_for_graph(graph: ServiceGraph) -> str:
    return compute_status(
        graph.components,
        (v for _, v in graph.vulnerabilities),
        scanned=graph.service.last_scan is not None,
    )


def is_regression(old_status: str, new_status: str) -> bool:
    """True when a service moved to a strictly less safe known status."""
    if old_status not in STATUS_RANK or new_status not in STATUS_RANK:
        return False
    return STATUS_RANK[new_status] > STATUS_RANK[old_status]


def is_recovery(old_status: str, new_status: str) -> bool:
    if old_status not in STATUS_RANK or new_status not in STATUS_RANK:
        return False
    return STATUS_RANK[new_status] < STATUS_RANK[old_status]


def _service_link(service_id: int) -> str:
    return f"/services/{service_id}"


def update_event(service: Service, component: Component) -> NotificationEvent:
    return NotificationEvent(
        service_id=service.id,
        fact_kind="update",
        fact_id=component.id,
        type="update",
        severity="info",
        title="Update available",
        message=(
            f"A new version ({component.latest_version}) is available for {component.name}. "
            f"Current version: {component.version}. Service: {service.name}."
        ),
        link=_service_link(service.id),
    )


def vulnerability_event(
    service: Service, component: Component, vulnerability: Vulnerability
) -> NotificationEvent:
    label = vulnerability.cve_id or vulnerability.title
    return NotificationEvent(
        service_id=service.id,
        fact_kind="vulnerability",
        fact_id=vulnerability.id,
        type="vulnerability",
        severity=vulnerability.severity,
        title=f"{vulnerability.severity.capitalize()} vulnerability detected",
        message=(
            f"{label} affects {component.name} {component.version} in service {service.name}."
        ),
        link=_service_link(service.id),
    )


def recovery_event(service: Service, change: StatusChanged) -> NotificationEvent:
    return NotificationEvent(
        service_id=service.id,
        fact_kind="recovery",
        fact_id=change.revision,
        type="system",
        severity="info",
        title="Service status improved",
        message=f"Service {service.name} is now {change.new_status} (was {change.old_status}).",
        link=_service_link(service.id),
    )


def _regression_cause_event(graph: ServiceGraph, change: StatusChanged) -> NotificationEvent | None:
    """Pick the fact behind a regression: the triggering one when it qualifies, else the first that does."""
    service = graph.service
    trigger = change.cause
    if change.new_status == "outdated":
        outdated = [c for c in graph.components if c.update_available]
        chosen = next((c for c in outdated if c.id == trigger.component_id), None)
        chosen = chosen or (outdated[0] if outdated else None)
        return update_event(service, chosen) if chosen else None
    if change.new_status == "vulnerable":
        blocking = [(c, v) for c, v in graph.vulnerabilities if is_blocking(v)]
        chosen_pair = next((p for p in blocking if p[1].id == trigger.vulnerability_id), None)
        chosen_pair = chosen_pair or (blocking[0] if blocking else None)
        return vulnerability_event(service, *chosen_pair) if chosen_pair else None
    return None


def _decide_events(
    graph: ServiceGraph,
    trigger: Trigger,
    change: StatusChanged | None,
    notify_on_recovery: bool,
) -> list[NotificationEvent]:
    events: list[NotificationEvent] = []
    if trigger.kind == "vulnerability_observed" and trigger.vulnerability_id is not None:
        # Every open vulnerability fact is notification-worthy, whatever its severity.
        for component, vulnerability in graph.vulnerabilities:
            if (
                vulnerability.id == trigger.vulnerability_id
                and component.id == trigger.component_id
                and vulnerability.status == "open"
            ):
                events.append(vulnerability_event(graph.service, component, vulnerability))
                break
    if change is not None and change.regression:
        cause = _regression_cause_event(graph, change)
        if cause is not None and all(cause.dedup_key != e.dedup_key for e in events):
            events.append(cause)
    if change is not None and notify_on_recovery and is_recovery(change.old_status, change.new_status):
        events.append(recovery_event(graph.service, change))
    return events


def reevaluate(
    session: Session,
    service_id: int,
    trigger: Trigger,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    notify_on_recovery: bool = False,
) -> Reevaluation:
    """
    Recompute and persist the status of one service.

    Commits the status write before returning so notifications are only built
    from a durable transition. Raises NotFoundError for an unknown service and
    ConflictError when every compare-and-swap attempt lost to a concurrent writer.
    """
    for attempt in range(1, max_attempts + 1):
        graph = load_service_graph(session, service_id)
        if graph is None:
            raise NotFoundError(f"Service {service_id} not found.")
        service = graph.service
        old_status = service.status
        new_status = status_for_graph(graph)

        if new_status == old_status:
            session.commit()
            return Reevaluation(
                service=service,
                old_status=old_status,
                new_status=new_status,
                events=_decide_events(graph, trigger, None, notify_on_recovery),
            )

        revision = compare_and_set_status(session, service_id, service.revision, new_status)
        if revision is None:
            session.rollback()
            logger.warning(
                "Status write for service %s lost a concurrent update (attempt %s/%s)",
                service_id,
                attempt,
                max_attempts,
                extra={"service_id": service_id, "trigger": trigger.kind},
            )
            continue

        session.commit()
        # Reflect the CAS write on the loaded row without marking it dirty.
        set_committed_value(service, "status", new_status)
        set_committed_value(service, "revision", revision)
        change = StatusChanged(
            service_id=service_id,
            old_status=old_status,
            new_status=new_status,
            cause=trigger,
            regression=is_regression(old_status, new_status),
            revision=revision,
        )
        if change.regression:
            logger.info(
                "Service %s regressed from %s to %s",
                service.name,
                old_status,
                new_status,
                extra={"service_id": service_id, "trigger": trigger.kind},
            )
        else:
            logger.info(
                "Service %s changed from %s to %s",
                service.name,
                old_status,
                new_status,
                extra={"service_id": service_id, "trigger": trigger.kind},
            )
        return Reevaluation(
            service=service,
            old_status=old_status,
            new_status=new_status,
            change=change,
            events=_decide_events(graph, trigger, change, notify_on_recovery),
        )

    raise ConflictError(
        f"Status of service {service_id} kept changing concurrently; gave up after {max_attempts} attempts."
    )
