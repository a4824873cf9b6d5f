"""Tests for app.services.status: status rules, regressions and the compare-and-swap write."""

import unittest
from datetime import datetime, timezone
from unittest.mock import patch

from app.core.errors import ConflictError, NotFoundError
from app.models import Component, Vulnerability
from app.schemas.events import Trigger
from app.services import status as status_module
from app.services.status import compute_status, is_recovery, is_regression, reevaluate
from app.store.queries import (
    add_component_to_service,
    attach_vulnerability,
    get_service_fresh,
    upsert_component,
    upsert_vulnerability,
)

from support import add_service, make_store


def _component(update_available: bool = False) -> Component:
    return Component(name="lib", version="1.0.0", type="library", update_available=update_available)


def _vuln(severity: str = "critical", status: str = "open") -> Vulnerability:
    return Vulnerability(title=f"{severity} issue", severity=severity, status=status)


class TestComputeStatus(unittest.TestCase):
    def test_no_facts_is_secure(self) -> None:
        self.assertEqual(compute_status([_component()], []), "secure")

    def test_update_available_is_outdated(self) -> None:
        self.assertEqual(compute_status([_component(True)], []), "outdated")

    def test_blocking_vulnerability_overrides_outdated(self) -> None:
        self.assertEqual(compute_status([_component(True)], [_vuln("critical")]), "vulnerable")

    def test_medium_is_blocking(self) -> None:
        self.assertEqual(compute_status([_component()], [_vuln("medium")]), "vulnerable")

    def test_low_and_info_never_block(self) -> None:
        self.assertEqual(compute_status([_component()], [_vuln("low"), _vuln("info")]), "secure")
        self.assertEqual(compute_status([_component(True)], [_vuln("low")]), "outdated")

    def test_closed_vulnerability_does_not_block(self) -> None:
        for closed in ("fixed", "mitigated", "false_positive", "wont_fix"):
            self.assertEqual(compute_status([_component()], [_vuln("critical", closed)]), "secure")

    def test_never_scanned_and_empty_is_unknown(self) -> None:
        self.assertEqual(compute_status([], [], scanned=False), "unknown")

    def test_scanned_and_empty_is_secure(self) -> None:
        self.assertEqual(compute_status([], [], scanned=True), "secure")


class TestTransitions(unittest.TestCase):
    def test_regressions(self) -> None:
        self.assertTrue(is_regression("secure", "vulnerable"))
        self.assertTrue(is_regression("secure", "outdated"))
        self.assertTrue(is_regression("outdated", "vulnerable"))

    def test_not_regressions(self) -> None:
        self.assertFalse(is_regression("vulnerable", "secure"))
        self.assertFalse(is_regression("vulnerable", "outdated"))
        self.assertFalse(is_regression("unknown", "vulnerable"))
        self.assertFalse(is_regression("secure", "secure"))

    def test_recovery(self) -> None:
        self.assertTrue(is_recovery("vulnerable", "secure"))
        self.assertTrue(is_recovery("outdated", "secure"))
        self.assertFalse(is_recovery("unknown", "secure"))


class TestReevaluate(unittest.TestCase):
    """reevaluate against an in-memory store."""

    def setUp(self) -> None:
        self.store = make_store()
        self.session = self.store.session()
        self.service = add_service(self.session, last_scan=datetime.now(timezone.utc))
        comp, _ = upsert_component(self.session, "Express", "4.17.1", "framework")
        add_component_to_service(self.session, self.service.id, comp.id)
        self.session.commit()
        self.component = comp

    def tearDown(self) -> None:
        self.session.close()
        self.store.dispose()

    def _attach(self, severity: str) -> Vulnerability:
        vuln, _ = upsert_vulnerability(self.session, title=f"{severity} bug", severity=severity)
        attach_vulnerability(self.session, self.service.id, self.component.id, vuln.id)
        self.session.commit()
        return vuln

    def test_unknown_service_raises_not_found(self) -> None:
        with self.assertRaises(NotFoundError):
            reevaluate(self.session, 9999, Trigger(kind="scan_completed"))

    def test_baseline_from_unknown_is_not_a_regression(self) -> None:
        result = reevaluate(self.session, self.service.id, Trigger(kind="scan_completed"))
        self.assertEqual(result.new_status, "secure")
        self.assertTrue(result.changed)
        self.assertFalse(result.change.regression)
        self.assertEqual(result.events, [])

    def test_status_write_bumps_revision(self) -> None:
        before = get_service_fresh(self.session, self.service.id).revision
        result = reevaluate(self.session, self.service.id, Trigger(kind="scan_completed"))
        self.assertEqual(result.change.revision, before + 1)
        stored = get_service_fresh(self.session, self.service.id)
        self.assertEqual(stored.status, "secure")
        self.assertEqual(stored.revision, before + 1)

    def test_unchanged_status_writes_nothing(self) -> None:
        reevaluate(self.session, self.service.id, Trigger(kind="scan_completed"))
        revision = get_service_fresh(self.session, self.service.id).revision
        result = reevaluate(self.session, self.service.id, Trigger(kind="scan_completed"))
        self.assertFalse(result.changed)
        self.assertEqual(get_service_fresh(self.session, self.service.id).revision, revision)

    def test_regression_emits_vulnerability_event(self) -> None:
        reevaluate(self.session, self.service.id, Trigger(kind="scan_completed"))
        vuln = self._attach("high")
        result = reevaluate(
            self.session,
            self.service.id,
            Trigger(kind="vulnerability_observed", component_id=self.component.id, vulnerability_id=vuln.id),
        )
        self.assertEqual(result.new_status, "vulnerable")
        self.assertTrue(result.change.regression)
        self.assertEqual(len(result.events), 1)
        self.assertEqual(result.events[0].fact_kind, "vulnerability")
        self.assertEqual(result.events[0].fact_id, vuln.id)

    def test_recovery_event_only_when_enabled(self) -> None:
        reevaluate(self.session, self.service.id, Trigger(kind="scan_completed"))
        vuln = self._attach("critical")
        reevaluate(self.session, self.service.id, Trigger(kind="scan_completed"))
        vuln.status = "fixed"
        self.session.commit()

        trigger = Trigger(kind="vulnerability_status_changed", vulnerability_id=vuln.id)
        result = reevaluate(self.session, self.service.id, trigger, notify_on_recovery=True)
        self.assertEqual(result.new_status, "secure")
        self.assertEqual([e.fact_kind for e in result.events], ["recovery"])
        self.assertEqual(result.events[0].type, "system")

    def test_recovery_is_silent_by_default(self) -> None:
        reevaluate(self.session, self.service.id, Trigger(kind="scan_completed"))
        vuln = self._attach("critical")
        reevaluate(self.session, self.service.id, Trigger(kind="scan_completed"))
        vuln.status = "fixed"
        self.session.commit()

        trigger = Trigger(kind="vulnerability_status_changed", vulnerability_id=vuln.id)
        result = reevaluate(self.session, self.service.id, trigger)
        self.assertEqual(result.new_status, "secure")
        self.assertEqual(result.events, [])

    def test_lost_compare_and_swap_is_retried(self) -> None:
        real_cas = status_module.compare_and_set_status
        calls = []

        def _lose_once(session, service_id, expected_revision, new_status):
            calls.append(expected_revision)
            if len(calls) == 1:
                return None
            return real_cas(session, service_id, expected_revision, new_status)

        with patch.object(status_module, "compare_and_set_status", side_effect=_lose_once):
            result = reevaluate(self.session, self.service.id, Trigger(kind="scan_completed"))
        self.assertEqual(len(calls), 2)
        self.assertEqual(result.new_status, "secure")
        self.assertEqual(get_service_fresh(self.session, self.service.id).status, "secure")

    def test_conflict_after_max_attempts(self) -> None:
        with patch.object(status_module, "compare_and_set_status", return_value=None) as cas:
            with self.assertRaises(ConflictError):
                reevaluate(self.session, self.service.id, Trigger(kind="scan_completed"), max_attempts=3)
        self.assertEqual(cas.call_count, 3)
        self.assertEqual(get_service_fresh(self.session, self.service.id).status, "unknown")

    def test_stale_revision_loses(self) -> None:
        stale = get_service_fresh(self.session, self.service.id).revision
        comp, _ = upsert_component(self.session, "Redis", "6.2.6", "database")
        add_component_to_service(self.session, self.service.id, comp.id)
        self.session.commit()
        self.assertIsNone(
            status_module.compare_and_set_status(self.session, self.service.id, stale, "secure")
        )
        self.session.rollback()


if __name__ == "__main__":
    unittest.main()
