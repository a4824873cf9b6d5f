"""Per-request pipeline context: the store session plus the external collaborators."""

from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

from app.services.delivery import DeliveryChannel, get_delivery_channel
from app.services.version_source import VersionSource, get_version_source
from app.services.vulnerability_source import VulnerabilitySource, get_vulnerability_source

if TYPE_CHECKING:
    from app.core.config import Settings


@dataclass
class PipelineContext:
    """Everything an ingestion adapter needs, passed in explicitly rather than looked up globally."""

    session: Session
    settings: "Settings"
    version_source: VersionSource
    vulnerability_source: VulnerabilitySource
    delivery: DeliveryChannel


def build_pipeline(
    session: Session,
    settings: "Settings",
    version_source: VersionSource | None = None,
    vulnerability_source: VulnerabilitySource | None = None,
    delivery: DeliveryChannel | None = None,
) -> PipelineContext:
    """Build a context from settings; any collaborator can be overridden (tests, CLIs)."""
    return PipelineContext(
        session=session,
        settings=settings,
        version_source=version_source or get_version_source(settings),
        vulnerability_source=vulnerability_source or get_vulnerability_source(settings),
        delivery=delivery or get_delivery_channel(settings),
    )
