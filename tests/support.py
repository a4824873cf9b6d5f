"""Shared fixtures for database-backed tests: in-memory store, settings and fake collaborators."""

from app.core.config import Settings
from app.core.database import StoreContext
from app.core.errors import DeliveryError
from app.models import Notification, Service, User
from app.schemas.component import DiscoveredComponent
from app.services.context import PipelineContext, build_pipeline
from app.services.version_source import StaticVersionSource
from app.services.vulnerability_source import StaticVulnerabilitySource


def make_store() -> StoreContext:
    store = StoreContext("sqlite://")
    store.create_all()
    return store


def make_settings(**overrides: object) -> Settings:
    values: dict[str, object] = {
        "DATABASE_URL": "sqlite://",
        "STORE_RETRY_BASE_DELAY_SEC": 0,
        "NOTIFY_WEBHOOK_URL": None,
    }
    values.update(overrides)
    return Settings(**values)


class RecordingDelivery:
    """Delivery channel that records calls and fails the first `failures` of them."""

    def __init__(self, failures: int = 0) -> None:
        self.failures = failures
        self.calls: list[tuple[int, set[int]]] = []

    async def deliver(self, notification: Notification, recipients: set[int]) -> None:
        self.calls.append((notification.id, set(recipients)))
        if self.failures > 0:
            self.failures -= 1
            raise DeliveryError("channel down")


def make_pipeline(
    session,
    versions: dict[str, str] | None = None,
    vulnerabilities: dict | None = None,
    delivery: RecordingDelivery | None = None,
    **settings_overrides: object,
) -> PipelineContext:
    return build_pipeline(
        session,
        make_settings(**settings_overrides),
        version_source=StaticVersionSource(versions or {}),
        vulnerability_source=StaticVulnerabilitySource(vulnerabilities or {}),
        delivery=delivery or RecordingDelivery(),
    )


def add_service(session, name: str = "orders-api", **attrs: object) -> Service:
    service = Service(name=name, environment="production", status="unknown", revision=0, **attrs)
    session.add(service)
    session.commit()
    return service


def add_user(
    session,
    username: str,
    role: str = "viewer",
    preferences: dict[str, bool] | None = None,
    is_active: bool = True,
) -> User:
    user = User(
        username=username,
        password_hash="x",
        role=role,
        is_active=is_active,
        notification_preferences=preferences or {},
    )
    session.add(user)
    session.commit()
    return user


def component(name: str, version: str, type: str = "library", **attrs: object) -> DiscoveredComponent:
    return DiscoveredComponent(name=name, version=version, type=type, **attrs)
