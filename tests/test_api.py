"""HTTP tests for the v1 API: routing, error mapping and auth, against an in-memory store."""

import unittest
from unittest.mock import patch

from fastapi.testclient import TestClient

from app.core.security import hash_password
from app.main import create_app
from app.models import User
from app.services.version_source import StaticVersionSource
from app.services.vulnerability_source import StaticVulnerabilitySource

from support import RecordingDelivery, make_settings, make_store

PREFIX = "/api/v1"


class ApiCase(unittest.TestCase):
    def setUp(self) -> None:
        self.store = make_store()
        self.delivery = RecordingDelivery()
        app = create_app(
            store=self.store,
            version_source=StaticVersionSource({"Node.js": "18.15.0"}),
            vulnerability_source=StaticVulnerabilitySource(),
            delivery=self.delivery,
        )
        self.client = TestClient(app)

    def tearDown(self) -> None:
        self.client.close()
        self.store.dispose()

    def _create_service(self, name: str = "orders-api") -> int:
        resp = self.client.post(f"{PREFIX}/services", json={"name": name, "environment": "production"})
        self.assertEqual(resp.status_code, 201, resp.text)
        return resp.json()["id"]

    def _scan(self, service_id: int, components: list[dict]) -> dict:
        resp = self.client.post(f"{PREFIX}/services/{service_id}/scan", json={"components": components})
        self.assertEqual(resp.status_code, 200, resp.text)
        return resp.json()


class TestPipelineRoutes(ApiCase):
    def test_health(self) -> None:
        resp = self.client.get(f"{PREFIX}/health/")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["database"], "connected")

    def test_duplicate_service_is_conflict(self) -> None:
        self._create_service()
        resp = self.client.post(f"{PREFIX}/services", json={"name": "orders-api"})
        self.assertEqual(resp.status_code, 409)
        self.assertEqual(resp.json()["code"], "CONFLICT")

    def test_invalid_environment_is_422(self) -> None:
        resp = self.client.post(f"{PREFIX}/services", json={"name": "x", "environment": "moon"})
        self.assertEqual(resp.status_code, 422)
        self.assertEqual(resp.json()["code"], "VALIDATION_ERROR")

    def test_scan_check_and_detail(self) -> None:
        service_id = self._create_service()
        scan = self._scan(service_id, [{"name": "Node.js", "version": "16.14.0", "type": "language"}])
        self.assertEqual(scan["service"]["status"], "secure")
        component_id = scan["components"][0]["id"]

        resp = self.client.post(f"{PREFIX}/components/{component_id}/check-updates")
        self.assertEqual(resp.status_code, 200, resp.text)
        body = resp.json()
        self.assertTrue(body["component"]["update_available"])
        self.assertEqual(len(body["notifications"]), 1)

        detail = self.client.get(f"{PREFIX}/services/{service_id}").json()
        self.assertEqual(detail["status"], "outdated")
        self.assertEqual(detail["components"][0]["latest_version"], "18.15.0")

        updates = self.client.get(f"{PREFIX}/components/updates-available").json()
        self.assertEqual(updates["count"], 1)
        by_type = self.client.get(f"{PREFIX}/components/type/language").json()
        self.assertEqual(by_type["count"], 1)

    def test_unknown_service_scan_is_404(self) -> None:
        resp = self.client.post(f"{PREFIX}/services/404/scan", json={"components": []})
        self.assertEqual(resp.status_code, 404)
        self.assertEqual(resp.json()["code"], "NOT_FOUND")

    def test_upstream_failure_is_502(self) -> None:
        service_id = self._create_service()
        scan = self._scan(service_id, [{"name": "Redis", "version": "6.2.6", "type": "database"}])
        resp = self.client.post(f"{PREFIX}/components/{scan['components'][0]['id']}/check-updates")
        self.assertEqual(resp.status_code, 502)
        self.assertEqual(resp.json()["code"], "UPSTREAM_UNAVAILABLE")

    def test_check_all_updates_counts(self) -> None:
        service_id = self._create_service()
        self._scan(
            service_id,
            [
                {"name": "Node.js", "version": "16.14.0", "type": "language"},
                {"name": "Redis", "version": "6.2.6", "type": "database"},
            ],
        )
        resp = self.client.post(f"{PREFIX}/components/check-all-updates")
        self.assertEqual(resp.status_code, 200)
        results = resp.json()["results"]
        self.assertEqual(results["total"], 2)
        self.assertEqual(results["upstream_unavailable"], 1)

    def test_vulnerability_inbox_and_status(self) -> None:
        service_id = self._create_service()
        scan = self._scan(service_id, [{"name": "Express", "version": "4.17.1", "type": "framework"}])
        resp = self.client.post(
            f"{PREFIX}/services/{service_id}/vulnerabilities",
            json={
                "component_id": scan["components"][0]["id"],
                "vulnerability": {"cve_id": "CVE-2022-24999", "title": "qs prototype pollution", "severity": "high"},
            },
        )
        self.assertEqual(resp.status_code, 200, resp.text)
        self.assertEqual(resp.json()["service"]["status"], "vulnerable")
        vuln_id = resp.json()["vulnerability"]["id"]

        inbox = self.client.get(f"{PREFIX}/notifications/unread").json()
        self.assertEqual(inbox["count"], 1)
        notification_id = inbox["notifications"][0]["id"]
        self.assertEqual(self.client.put(f"{PREFIX}/notifications/{notification_id}/read").status_code, 200)
        self.assertEqual(self.client.get(f"{PREFIX}/notifications/unread").json()["count"], 0)

        resp = self.client.put(f"{PREFIX}/vulnerabilities/{vuln_id}/status", json={"status": "fixed"})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["services"][0]["status"], "secure")

        self.assertEqual(self.client.delete(f"{PREFIX}/notifications/{notification_id}").status_code, 204)
        self.assertEqual(self.client.get(f"{PREFIX}/notifications").json()["count"], 0)

    def test_reports(self) -> None:
        service_id = self._create_service()
        self._scan(service_id, [])
        resp = self.client.post(f"{PREFIX}/reports", json={"title": "Weekly", "service_ids": [service_id]})
        self.assertEqual(resp.status_code, 201, resp.text)
        report_id = resp.json()["report"]["id"]
        self.assertEqual(self.client.get(f"{PREFIX}/reports/{report_id}").json()["summary"]["secure_services"], 1)
        self.assertEqual(self.client.get(f"{PREFIX}/reports/recent/5").json()["count"], 1)
        self.assertEqual(self.client.get(f"{PREFIX}/reports").json()["count"], 1)

        empty = self.client.post(f"{PREFIX}/reports", json={"title": "Empty", "service_ids": []})
        self.assertEqual(empty.status_code, 422)
        missing = self.client.post(f"{PREFIX}/reports", json={"title": "Ghosts", "service_ids": [777]})
        self.assertEqual(missing.status_code, 422)

    def test_post_notification_is_idempotent_with_fact_id(self) -> None:
        body = {"title": "Maintenance", "message": "Database failover test at noon.", "fact_id": 7}
        first = self.client.post(f"{PREFIX}/notifications", json=body)
        self.assertEqual(first.status_code, 201, first.text)
        self.assertEqual(first.json()["notification"]["type"], "system")
        again = self.client.post(f"{PREFIX}/notifications", json=body)
        self.assertEqual(again.status_code, 200)
        self.assertFalse(again.json()["created"])
        self.assertEqual(again.json()["notification"]["id"], first.json()["notification"]["id"])

    def test_post_notification_rejects_derived_types(self) -> None:
        resp = self.client.post(
            f"{PREFIX}/notifications",
            json={"title": "Fake", "message": "Not a real CVE.", "type": "vulnerability"},
        )
        self.assertEqual(resp.status_code, 422)


class TestAuth(ApiCase):
    def setUp(self) -> None:
        super().setUp()
        self.settings_patch = patch("app.api.v1.auth.get_settings", return_value=make_settings(AUTH_ENABLED=True))
        self.settings_patch.start()
        session = self.store.session()
        self.user_ids: dict[str, int] = {}
        for username, role in (("alice", "developer"), ("bob", "viewer"), ("carol", "viewer")):
            user = User(username=username, password_hash=hash_password("correct-horse", rounds=4), role=role)
            session.add(user)
            session.commit()
            self.user_ids[username] = user.id
        session.close()

    def tearDown(self) -> None:
        self.settings_patch.stop()
        super().tearDown()

    def _token(self, username: str) -> dict[str, str]:
        resp = self.client.post(f"{PREFIX}/auth", json={"username": username, "password": "correct-horse"})
        self.assertEqual(resp.status_code, 200, resp.text)
        return {"Authorization": f"Bearer {resp.json()['access_token']}"}

    def test_missing_token_is_401(self) -> None:
        self.assertEqual(self.client.get(f"{PREFIX}/services").status_code, 401)

    def test_wrong_password_is_401(self) -> None:
        resp = self.client.post(f"{PREFIX}/auth", json={"username": "alice", "password": "wrong-horse"})
        self.assertEqual(resp.status_code, 401)

    def test_viewer_cannot_mutate(self) -> None:
        headers = self._token("bob")
        self.assertEqual(self.client.get(f"{PREFIX}/services", headers=headers).status_code, 200)
        resp = self.client.post(f"{PREFIX}/services", json={"name": "x"}, headers=headers)
        self.assertEqual(resp.status_code, 403)

    def test_developer_can_mutate(self) -> None:
        headers = self._token("alice")
        resp = self.client.post(f"{PREFIX}/services", json={"name": "orders-api"}, headers=headers)
        self.assertEqual(resp.status_code, 201)
        self.assertEqual(self.client.get(f"{PREFIX}/auth/me", headers=headers).json()["role"], "developer")

    def test_preferences_update(self) -> None:
        headers = self._token("bob")
        resp = self.client.put(
            f"{PREFIX}/notifications/preferences",
            json={"preferences": {"update": True}},
            headers=headers,
        )
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["preferences"], {"update": True})

    def test_writer_posts_notification_viewer_cannot(self) -> None:
        body = {
            "title": "Registry mirror restart",
            "message": "Expect slow installs between 02:00 and 02:15 UTC.",
            "type": "user",
            "recipients": [self.user_ids["bob"]],
        }
        resp = self.client.post(f"{PREFIX}/notifications", json=body, headers=self._token("alice"))
        self.assertEqual(resp.status_code, 201, resp.text)
        self.assertTrue(resp.json()["created"])

        bob = self._token("bob")
        self.assertEqual(self.client.get(f"{PREFIX}/notifications", headers=bob).json()["count"], 1)
        self.assertEqual(self.client.post(f"{PREFIX}/notifications", json=body, headers=bob).status_code, 403)

    def test_viewer_delete_removes_only_own_copy(self) -> None:
        body = {
            "title": "Freeze",
            "message": "Deploy freeze starts Friday.",
            "recipients": [self.user_ids["bob"], self.user_ids["carol"]],
        }
        resp = self.client.post(f"{PREFIX}/notifications", json=body, headers=self._token("alice"))
        notification_id = resp.json()["notification"]["id"]

        bob, carol = self._token("bob"), self._token("carol")
        resp = self.client.delete(f"{PREFIX}/notifications/{notification_id}", headers=bob)
        self.assertEqual(resp.status_code, 204)
        self.assertEqual(self.client.get(f"{PREFIX}/notifications", headers=bob).json()["count"], 0)
        carol_inbox = self.client.get(f"{PREFIX}/notifications", headers=carol).json()
        self.assertEqual([n["id"] for n in carol_inbox["notifications"]], [notification_id])


if __name__ == "__main__":
    unittest.main()
