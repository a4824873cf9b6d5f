"""Service registry and component queries."""

import logging
from collections.abc import Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import ConflictError, NotFoundError
from app.models import Component, Service
from app.schemas.common import COMPONENT_TYPES, SERVICE_STATUSES
from app.schemas.component import ComponentOut
from app.schemas.service import ServiceCreate, ServiceDetail, ServiceOut, ServiceVulnerabilityOut
from app.schemas.vulnerability import VulnerabilityOut
from app.services.validation import one_of, validate_id, validate_service
from app.store.queries import load_service_graph
from app.store.repository import Repository

logger = logging.getLogger(__name__)


def create_service(session: Session, body: ServiceCreate) -> Service:
    """Register a service. Its status stays unknown until the first scan."""
    body = validate_service(body)
    repo = Repository(session, Service)
    if repo.find_one(name=body.name) is not None:
        raise ConflictError(f"Service '{body.name}' already exists.")
    try:
        service = repo.create(
            name=body.name,
            description=body.description,
            repository_url=body.repository_url,
            environment=body.environment,
            status="unknown",
        )
        session.commit()
    except IntegrityError as e:
        session.rollback()
        raise ConflictError(f"Service '{body.name}' already exists.", cause=e) from e
    logger.info("Registered service %s", service.name, extra={"service_id": service.id})
    return service


def list_services(session: Session, status: str | None = None) -> Sequence[Service]:
    repo = Repository(session, Service)
    if status is None:
        return repo.find_all(order_by=Service.name)
    return repo.find_all(order_by=Service.name, status=one_of(status, "Service status", SERVICE_STATUSES))


def get_service_detail(session: Session, service_id: int) -> ServiceDetail:
    service_id = validate_id(service_id, "Service id")
    graph = load_service_graph(session, service_id)
    if graph is None:
        raise NotFoundError(f"Service {service_id} not found.")
    return ServiceDetail(
        **ServiceOut.model_validate(graph.service).model_dump(),
        components=[ComponentOut.model_validate(c) for c in graph.components],
        vulnerabilities=[
            ServiceVulnerabilityOut(
                component=ComponentOut.model_validate(c),
                vulnerability=VulnerabilityOut.model_validate(v),
            )
            for c, v in graph.vulnerabilities
        ],
    )


def list_components(session: Session, type: str | None = None) -> Sequence[Component]:
    repo = Repository(session, Component)
    if type is None:
        return repo.find_all(order_by=Component.name)
    return repo.find_all(order_by=Component.name, type=one_of(type, "Component type", COMPONENT_TYPES))


def components_with_updates(session: Session) -> Sequence[Component]:
    return Repository(session, Component).find_all(order_by=Component.name, update_available=True)


def get_component(session: Session, component_id: int) -> Component:
    component_id = validate_id(component_id, "Component id")
    component = Repository(session, Component).get(component_id)
    if component is None:
        raise NotFoundError(f"Component {component_id} not found.")
    return component

