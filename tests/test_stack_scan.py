"""Tests for app.services.stack_scan: idempotent component upserts and set-add associations."""

import asyncio
import unittest

from app.core.errors import NotFoundError, ValidationError
from app.models import Component, Notification, ServiceComponent
from app.services.stack_scan import scan_service
from app.store.queries import get_service_fresh
from app.store.repository import Repository

from support import add_service, component, make_pipeline, make_store

STACK = [
    component("Node.js", "16.14.0", "language"),
    component("Express", "4.17.1", "framework"),
    component("MongoDB", "5.0.6", "database"),
]


class TestScanService(unittest.TestCase):
    def setUp(self) -> None:
        self.store = make_store()
        self.session = self.store.session()
        self.ctx = make_pipeline(self.session)
        self.service = add_service(self.session)

    def tearDown(self) -> None:
        self.session.close()
        self.store.dispose()

    def _count(self, model) -> int:
        return Repository(self.session, model).count()

    def test_first_scan_records_components_and_sets_secure(self) -> None:
        result = asyncio.run(scan_service(self.ctx, self.service.id, STACK))
        self.assertEqual(result.service.status, "secure")
        self.assertIsNotNone(result.service.last_scan)
        self.assertEqual([c.name for c in result.components], ["Node.js", "Express", "MongoDB"])
        self.assertEqual(result.notifications, [])
        self.assertEqual(self._count(Component), 3)
        self.assertEqual(self._count(ServiceComponent), 3)

    def test_rescan_is_idempotent(self) -> None:
        asyncio.run(scan_service(self.ctx, self.service.id, STACK))
        revision = get_service_fresh(self.session, self.service.id).revision
        result = asyncio.run(scan_service(self.ctx, self.service.id, STACK))
        self.assertEqual(self._count(Component), 3)
        self.assertEqual(self._count(ServiceComponent), 3)
        self.assertEqual(self._count(Notification), 0)
        self.assertEqual(result.service.status, "secure")
        # No association changed and the status held, so nothing was written.
        self.assertEqual(get_service_fresh(self.session, self.service.id).revision, revision)

    def test_duplicate_entries_in_one_scan_are_collapsed(self) -> None:
        asyncio.run(scan_service(self.ctx, self.service.id, STACK + STACK[:1]))
        self.assertEqual(self._count(Component), 3)
        self.assertEqual(self._count(ServiceComponent), 3)

    def test_component_shared_across_services(self) -> None:
        other = add_service(self.session, name="billing-api")
        asyncio.run(scan_service(self.ctx, self.service.id, STACK[:1]))
        asyncio.run(scan_service(self.ctx, other.id, STACK[:1]))
        self.assertEqual(self._count(Component), 1)
        self.assertEqual(self._count(ServiceComponent), 2)

    def test_empty_scan_marks_service_secure(self) -> None:
        result = asyncio.run(scan_service(self.ctx, self.service.id, []))
        self.assertEqual(result.service.status, "secure")

    def test_unknown_service_raises_not_found(self) -> None:
        with self.assertRaises(NotFoundError):
            asyncio.run(scan_service(self.ctx, 4242, STACK))
        self.assertEqual(self._count(Component), 0)

    def test_invalid_component_rejected_before_any_write(self) -> None:
        bad = STACK[:1] + [component("Thing", "1.0", "gadget")]
        with self.assertRaises(ValidationError):
            asyncio.run(scan_service(self.ctx, self.service.id, bad))
        self.assertEqual(self._count(Component), 0)
        self.assertEqual(get_service_fresh(self.session, self.service.id).status, "unknown")

    def test_missing_version_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            asyncio.run(scan_service(self.ctx, self.service.id, [component("Node.js", "  ", "language")]))


if __name__ == "__main__":
    unittest.main()
