"""Unit and integration tests for notification retention: delete-only run_retention."""

import unittest
from datetime import datetime, timezone, timedelta
from unittest.mock import MagicMock, patch

from app.models import Notification, NotificationRecipient, Report
from app.services import retention
from app.services.retention import run_retention
from app.store.repository import Repository

from support import add_user, make_settings, make_store


class TestRetentionDisabled(unittest.TestCase):
    """When RETENTION_ENABLED is False, run_retention does nothing."""

    def test_returns_zero_and_does_not_touch_the_store(self) -> None:
        settings = MagicMock()
        settings.RETENTION_ENABLED = False
        session = MagicMock()
        with patch.object(retention, "delete_expired_notifications") as delete:
            self.assertEqual(run_retention(session, settings), 0)
        delete.assert_not_called()
        session.commit.assert_not_called()


class TestRetentionMocked(unittest.TestCase):
    def test_commits_and_returns_count(self) -> None:
        settings = MagicMock()
        settings.RETENTION_ENABLED = True
        session = MagicMock()
        with patch.object(retention, "delete_expired_notifications", return_value=2) as delete:
            self.assertEqual(run_retention(session, settings), 2)
        delete.assert_called_once()
        session.commit.assert_called_once()


def _notification(key: str, expires_at: datetime | None) -> Notification:
    return Notification(
        dedup_key=key,
        fact_kind="update",
        title="Update available",
        message="A new version is available.",
        type="update",
        severity="info",
        audience="opted_in",
        expires_at=expires_at,
    )


class TestRetentionIntegration(unittest.TestCase):
    """Against an in-memory store: expired notifications and their recipients go, everything else stays."""

    def setUp(self) -> None:
        self.store = make_store()
        self.session = self.store.session()

    def tearDown(self) -> None:
        self.session.close()
        self.store.dispose()

    def test_deletes_only_expired(self) -> None:
        now = datetime.now(timezone.utc)
        user = add_user(self.session, "watcher")
        expired = _notification("update:1:1", now - timedelta(days=1))
        live = _notification("update:1:2", now + timedelta(days=1))
        forever = _notification("update:1:3", None)
        self.session.add_all([expired, live, forever])
        self.session.flush()
        self.session.add(NotificationRecipient(notification_id=expired.id, user_id=user.id))
        self.session.add(Report(title="Audit", format="json", service_ids=[1], summary={}, recommendations=[]))
        self.session.commit()

        deleted = run_retention(self.session, make_settings(), now=now)

        self.assertEqual(deleted, 1)
        remaining = {n.dedup_key for n in Repository(self.session, Notification).find_all()}
        self.assertEqual(remaining, {"update:1:2", "update:1:3"})
        self.assertEqual(Repository(self.session, NotificationRecipient).count(), 0)
        self.assertEqual(Repository(self.session, Report).count(), 1)

    def test_second_run_is_a_no_op(self) -> None:
        now = datetime.now(timezone.utc)
        self.session.add(_notification("update:1:1", now - timedelta(hours=1)))
        self.session.commit()
        self.assertEqual(run_retention(self.session, make_settings(), now=now), 1)
        self.assertEqual(run_retention(self.session, make_settings(), now=now), 0)


if __name__ == "__main__":
    unittest.main()
