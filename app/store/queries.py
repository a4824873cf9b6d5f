"""Entity-specific store queries as free functions.

Mutations here are idempotent by construction: upserts by natural key,
set-add for associations, conditional insert for notifications. Association
changes bump the owning service's revision so a status computed from an
older view of the associations loses its compare-and-swap.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import delete, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models import (
    Component,
    Notification,
    NotificationKey,
    NotificationRecipient,
    Report,
    Service,
    ServiceComponent,
    ServiceVulnerability,
    User,
    Vulnerability,
)
from app.schemas.common import PRIVILEGED_ROLES
from app.store.repository import translate_store_errors


@dataclass
class ServiceGraph:
    """A service with its components and (component, vulnerability) pairs, loaded in one explicit fetch."""

    service: Service
    components: list[Component] = field(default_factory=list)
    vulnerabilities: list[tuple[Component, Vulnerability]] = field(default_factory=list)


def vulnerability_natural_key(cve_id: str | None, title: str) -> str:
    """CVE id when given (upper-cased), else the whitespace-normalized lower-cased title."""
    if cve_id and cve_id.strip():
        return cve_id.strip().upper()
    return "title:" + " ".join(title.split()).lower()


def _bump_revision(session: Session, service_id: int) -> None:
    session.execute(
        update(Service)
        .where(Service.id == service_id)
        .values(revision=Service.revision + 1)
        .execution_options(synchronize_session=False)
    )


@translate_store_errors
def get_service_fresh(session: Session, service_id: int) -> Service | None:
    """Load a service bypassing the identity map so status and revision reflect committed state."""
    stmt = select(Service).where(Service.id == service_id).execution_options(populate_existing=True)
    return session.scalars(stmt).first()


@translate_store_errors
def upsert_component(
    session: Session,
    name: str,
    version: str,
    type: str,
    **attrs: Any,
) -> tuple[Component, bool]:
    """Return the component with this (name, version), creating it if absent. Second item is True if created."""
    stmt = select(Component).where(Component.name == name, Component.version == version)
    existing = session.scalars(stmt).first()
    if existing is not None:
        if existing.ecosystem is None and attrs.get("ecosystem"):
            existing.ecosystem = attrs["ecosystem"]
        return existing, False
    try:
        with session.begin_nested():
            component = Component(name=name, version=version, type=type, **attrs)
            session.add(component)
            session.flush()
    except IntegrityError:
        # Lost a concurrent create of the same identity; reuse the winner's row.
        existing = session.scalars(stmt).first()
        if existing is None:
            raise
        return existing, False
    return component, True


@translate_store_errors
def add_component_to_service(session: Session, service_id: int, component_id: int) -> bool:
    """Set-add a component to a service. Returns False when it was already a member."""
    present = session.scalar(
        select(ServiceComponent.id).where(
            ServiceComponent.service_id == service_id,
            ServiceComponent.component_id == component_id,
        )
    )
    if present is not None:
        return False
    try:
        with session.begin_nested():
            session.add(ServiceComponent(service_id=service_id, component_id=component_id))
            session.flush()
    except IntegrityError:
        return False
    _bump_revision(session, service_id)
    return True


@translate_store_errors
def upsert_vulnerability(session: Session, **values: Any) -> tuple[Vulnerability, bool]:
    """Return the vulnerability with this natural key, creating it if absent. Existing rows are never rewritten."""
    key = vulnerability_natural_key(values.get("cve_id"), values["title"])
    stmt = select(Vulnerability).where(Vulnerability.natural_key == key)
    existing = session.scalars(stmt).first()
    if existing is not None:
        return existing, False
    try:
        with session.begin_nested():
            vulnerability = Vulnerability(natural_key=key, **values)
            session.add(vulnerability)
            session.flush()
    except IntegrityError:
        existing = session.scalars(stmt).first()
        if existing is None:
            raise
        return existing, False
    return vulnerability, True


@translate_store_errors
def attach_vulnerability(
    session: Session,
    service_id: int,
    component_id: int,
    vulnerability_id: int,
) -> bool:
    """Set-add a (component, vulnerability) pair to a service. Returns False when already attached."""
    present = session.scalar(
        select(ServiceVulnerability.id).where(
            ServiceVulnerability.service_id == service_id,
            ServiceVulnerability.component_id == component_id,
            ServiceVulnerability.vulnerability_id == vulnerability_id,
        )
    )
    if present is not None:
        return False
    try:
        with session.begin_nested():
            session.add(
                ServiceVulnerability(
                    service_id=service_id,
                    component_id=component_id,
                    vulnerability_id=vulnerability_id,
                )
            )
            session.flush()
    except IntegrityError:
        return False
    _bump_revision(session, service_id)
    return True


@translate_store_errors
def load_service_graph(session: Session, service_id: int) -> ServiceGraph | None:
    """
    Fetch a service and its associations with explicit joins.

    The service row (and its revision) is read before the associations: any
    association written after this read bumps the revision, so a status
    computed from this graph cannot be stored over a newer one.
    """
    service = get_service_fresh(session, service_id)
    if service is None:
        return None
    components = session.scalars(
        select(Component)
        .join(ServiceComponent, ServiceComponent.component_id == Component.id)
        .where(ServiceComponent.service_id == service_id)
        .order_by(ServiceComponent.id)
        .execution_options(populate_existing=True)
    ).all()
    pairs = session.execute(
        select(Component, Vulnerability)
        .select_from(ServiceVulnerability)
        .join(Component, ServiceVulnerability.component_id == Component.id)
        .join(Vulnerability, ServiceVulnerability.vulnerability_id == Vulnerability.id)
        .where(ServiceVulnerability.service_id == service_id)
        .order_by(ServiceVulnerability.id)
        .execution_options(populate_existing=True)
    ).all()
    return ServiceGraph(
        service=service,
        components=list(components),
        vulnerabilities=[(c, v) for c, v in pairs],
    )


@translate_store_errors
def compare_and_set_status(
    session: Session,
    service_id: int,
    expected_revision: int,
    new_status: str,
) -> int | None:
    """Write status only if the revision is unchanged. Returns the new revision, or None if the CAS lost."""
    result = session.execute(
        update(Service)
        .where(Service.id == service_id, Service.revision == expected_revision)
        .values(status=new_status, revision=expected_revision + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        return None
    return expected_revision + 1


@translate_store_errors
def set_last_scan(session: Session, service_id: int, when: datetime) -> None:
    session.execute(
        update(Service)
        .where(Service.id == service_id)
        .values(last_scan=when)
        .execution_options(synchronize_session=False)
    )


@translate_store_errors
def services_referencing_component(session: Session, component_id: int) -> Sequence[Service]:
    return session.scalars(
        select(Service)
        .join(ServiceComponent, ServiceComponent.service_id == Service.id)
        .where(ServiceComponent.component_id == component_id)
        .order_by(Service.id)
    ).all()


@translate_store_errors
def services_referencing_vulnerability(session: Session, vulnerability_id: int) -> Sequence[Service]:
    return session.scalars(
        select(Service)
        .where(
            Service.id.in_(
                select(ServiceVulnerability.service_id).where(
                    ServiceVulnerability.vulnerability_id == vulnerability_id
                )
            )
        )
        .order_by(Service.id)
    ).all()


@translate_store_errors
def find_notification_by_key(session: Session, dedup_key: str) -> Notification | None:
    return session.scalars(select(Notification).where(Notification.dedup_key == dedup_key)).first()


@translate_store_errors
def notification_key_exists(session: Session, dedup_key: str) -> bool:
    return session.get(NotificationKey, dedup_key) is not None


@translate_store_errors
def insert_notification_if_absent(
    session: Session,
    values: dict[str, Any],
    recipient_ids: Iterable[int] = (),
) -> tuple[Notification | None, bool]:
    """
    Conditional insert keyed on values['dedup_key'].

    Returns (notification, created). The key is recorded in notification_keys in
    the same savepoint as the row, so a key that was ever dispatched is refused
    even after its notification was deleted; in that case the first item is None.
    When another writer inserted the same key first, the primary key on the
    ledger rejects ours and the existing row is returned.
    """
    dedup_key = values["dedup_key"]
    if notification_key_exists(session, dedup_key):
        return find_notification_by_key(session, dedup_key), False
    try:
        with session.begin_nested():
            session.add(NotificationKey(dedup_key=dedup_key))
            notification = Notification(**values)
            session.add(notification)
            session.flush()
            for user_id in sorted(set(recipient_ids)):
                session.add(NotificationRecipient(notification_id=notification.id, user_id=user_id))
            session.flush()
    except IntegrityError:
        if not notification_key_exists(session, dedup_key):
            raise
        return find_notification_by_key(session, dedup_key), False
    return notification, True


@translate_store_errors
def recipient_ids(session: Session, notification_id: int) -> set[int]:
    return set(
        session.scalars(
            select(NotificationRecipient.user_id).where(
                NotificationRecipient.notification_id == notification_id
            )
        ).all()
    )


@translate_store_errors
def users_with_role(session: Session, role: str) -> set[int]:
    """Ids of active users holding role."""
    return set(
        session.scalars(
            select(User.id).where(User.role == role, User.is_active.is_(True))
        ).all()
    )


def notification_preference(user: User, notification_type: str) -> bool:
    """True only when the user explicitly opted in to this notification type."""
    prefs = user.notification_preferences or {}
    return prefs.get(notification_type) is True


@translate_store_errors
def users_opted_in(session: Session, notification_type: str) -> set[int]:
    """Ids of active users whose preferences opt in to notification_type."""
    users = session.scalars(select(User).where(User.is_active.is_(True))).all()
    return {u.id for u in users if notification_preference(u, notification_type)}


def _visible_to(user: User):
    explicit = Notification.id.in_(
        select(NotificationRecipient.notification_id).where(NotificationRecipient.user_id == user.id)
    )
    if user.role in PRIVILEGED_ROLES:
        return or_(explicit, Notification.audience == "privileged")
    return explicit


@translate_store_errors
def notifications_for_user(
    session: Session,
    user: User,
    unread_only: bool = False,
    now: datetime | None = None,
) -> Sequence[Notification]:
    """Unexpired notifications addressed to user, newest first."""
    now = now or datetime.now(timezone.utc)
    stmt = select(Notification).where(
        _visible_to(user),
        or_(Notification.expires_at.is_(None), Notification.expires_at > now),
    )
    if unread_only:
        stmt = stmt.where(Notification.read.is_(False))
    return session.scalars(stmt.order_by(Notification.created_at.desc(), Notification.id.desc())).all()


@translate_store_errors
def mark_all_read(session: Session, user: User) -> int:
    result = session.execute(
        update(Notification)
        .where(_visible_to(user), Notification.read.is_(False))
        .values(read=True)
        .execution_options(synchronize_session=False)
    )
    return int(result.rowcount or 0)


@translate_store_errors
def delete_notification(session: Session, notification_id: int) -> bool:
    session.execute(
        delete(NotificationRecipient).where(NotificationRecipient.notification_id == notification_id)
    )
    result = session.execute(delete(Notification).where(Notification.id == notification_id))
    return bool(result.rowcount)


@translate_store_errors
def delete_recipient(session: Session, notification_id: int, user_id: int) -> bool:
    """Remove one user's copy of an opted_in notification; the row stays for other recipients."""
    result = session.execute(
        delete(NotificationRecipient).where(
            NotificationRecipient.notification_id == notification_id,
            NotificationRecipient.user_id == user_id,
        )
    )
    return bool(result.rowcount)


@translate_store_errors
def delete_expired_notifications(session: Session, now: datetime) -> int:
    expired = select(Notification.id).where(
        Notification.expires_at.is_not(None), Notification.expires_at < now
    )
    session.execute(
        delete(NotificationRecipient).where(NotificationRecipient.notification_id.in_(expired))
    )
    result = session.execute(
        delete(Notification)
        .where(Notification.expires_at.is_not(None), Notification.expires_at < now)
        .execution_options(synchronize_session=False)
    )
    return int(result.rowcount or 0)


@translate_store_errors
def recent_reports(session: Session, limit: int = 5) -> Sequence[Report]:
    return session.scalars(
        select(Report).order_by(Report.generated_at.desc(), Report.id.desc()).limit(limit)
    ).all()


@translate_store_errors
def touch_services_for_component(session: Session, component_id: int) -> None:
    """Bump the revision of every service referencing component, after its shared row changed."""
    session.execute(
        update(Service)
        .where(
            Service.id.in_(
                select(ServiceComponent.service_id).where(ServiceComponent.component_id == component_id)
            )
        )
        .values(revision=Service.revision + 1)
        .execution_options(synchronize_session=False)
    )


@translate_store_errors
def set_vulnerability_status(session: Session, vulnerability_id: int, status: str) -> bool:
    """The only mutation a vulnerability allows. Bumps every referencing service's revision."""
    result = session.execute(
        update(Vulnerability)
        .where(Vulnerability.id == vulnerability_id)
        .values(status=status)
        .execution_options(synchronize_session=False)
    )
    if not result.rowcount:
        return False
    session.execute(
        update(Service)
        .where(
            Service.id.in_(
                select(ServiceVulnerability.service_id).where(
                    ServiceVulnerability.vulnerability_id == vulnerability_id
                )
            )
        )
        .values(revision=Service.revision + 1)
        .execution_options(synchronize_session=False)
    )
    return True


@translate_store_errors
def notification_for_user(session: Session, user: User, notification_id: int) -> Notification | None:
    """The notification if it exists and is addressed to user."""
    return session.scalars(
        select(Notification).where(Notification.id == notification_id, _visible_to(user))
    ).first()


@translate_store_errors
def active_user_ids(session: Session, user_ids: Iterable[int]) -> set[int]:
    """The subset of user_ids that belong to active users."""
    ids = set(user_ids)
    if not ids:
        return set()
    return set(
        session.scalars(select(User.id).where(User.id.in_(ids), User.is_active.is_(True))).all()
    )
