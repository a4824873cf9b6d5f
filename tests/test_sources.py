"""Tests for the external collaborators: version sources, vulnerability sources and delivery channels.

HTTP is served by httpx.MockTransport; nothing leaves the process.
"""

import asyncio
import json
import unittest

import httpx

from app.core.errors import DeliveryError, UpstreamUnavailable
from app.models import Notification
from app.schemas.vulnerability import VulnerabilityIn
from app.services.delivery import LogDeliveryChannel, WebhookDeliveryChannel, get_delivery_channel
from app.services.version_source import (
    RegistryVersionSource,
    StaticVersionSource,
    get_version_source,
)
from app.services.vulnerability_source import (
    OsvVulnerabilitySource,
    StaticVulnerabilitySource,
    get_vulnerability_source,
)

from support import make_settings


def _run_with_client(handler, make_source, call):
    """Build a source around a mock-transport client, await call(source), close the client."""

    async def _go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await call(make_source(client))

    return asyncio.run(_go())


class TestStaticVersionSource(unittest.TestCase):
    def test_known_component(self) -> None:
        self.assertEqual(asyncio.run(StaticVersionSource().latest_version("Node.js", "language")), "18.15.0")

    def test_unknown_component_is_unavailable(self) -> None:
        with self.assertRaises(UpstreamUnavailable):
            asyncio.run(StaticVersionSource({}).latest_version("Node.js", "language"))


class TestRegistryVersionSource(unittest.TestCase):
    def _latest(self, handler, name: str, ecosystem: str | None) -> str:
        return _run_with_client(
            handler,
            lambda client: RegistryVersionSource(timeout=5, client=client),
            lambda source: source.latest_version(name, "library", ecosystem),
        )

    def test_npm(self) -> None:
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(str(request.url))
            return httpx.Response(200, json={"name": "express", "version": "4.18.2"})

        self.assertEqual(self._latest(handler, "express", "npm"), "4.18.2")
        self.assertEqual(seen, ["https://registry.npmjs.org/express/latest"])

    def test_pypi(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            self.assertEqual(request.url.path, "/pypi/fastapi/json")
            return httpx.Response(200, json={"info": {"version": "0.110.0"}})

        self.assertEqual(self._latest(handler, "fastapi", "PyPI"), "0.110.0")

    def test_missing_package(self) -> None:
        with self.assertRaises(UpstreamUnavailable):
            self._latest(lambda request: httpx.Response(404), "nope", "npm")

    def test_malformed_body(self) -> None:
        with self.assertRaises(UpstreamUnavailable):
            self._latest(lambda request: httpx.Response(200, json={"unexpected": True}), "express", "npm")

    def test_transport_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with self.assertRaises(UpstreamUnavailable):
            self._latest(handler, "express", "npm")

    def test_unknown_ecosystem(self) -> None:
        with self.assertRaises(UpstreamUnavailable):
            self._latest(lambda request: httpx.Response(200), "Redis", None)


class TestOsvVulnerabilitySource(unittest.TestCase):
    def _query(self, handler, ecosystem: str | None = "npm") -> list[VulnerabilityIn]:
        return _run_with_client(
            handler,
            lambda client: OsvVulnerabilitySource("https://osv.test", timeout=5, client=client),
            lambda source: source.vulnerabilities_for("qs", "6.5.2", ecosystem),
        )

    def test_maps_osv_records(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            self.assertEqual(request.url.path, "/v1/query")
            body = json.loads(request.content)
            self.assertEqual(body["package"], {"name": "qs", "ecosystem": "npm"})
            return httpx.Response(
                200,
                json={
                    "vulns": [
                        {
                            "id": "GHSA-hrpp-h998-j3pp",
                            "aliases": ["CVE-2022-24999"],
                            "summary": "qs vulnerable to Prototype Pollution",
                            "database_specific": {"severity": "HIGH"},
                            "references": [{"type": "WEB", "url": "https://example.test/advisory"}],
                        },
                        {"id": "OSV-2024-1", "database_specific": {"severity": "MODERATE"}},
                    ]
                },
            )

        records = self._query(handler)
        self.assertEqual([r.cve_id for r in records], ["CVE-2022-24999", "OSV-2024-1"])
        self.assertEqual([r.severity for r in records], ["high", "medium"])
        self.assertEqual(records[0].affected_versions, ["6.5.2"])
        self.assertEqual(records[0].references, ["https://example.test/advisory"])

    def test_no_vulns(self) -> None:
        self.assertEqual(self._query(lambda request: httpx.Response(200, json={})), [])

    def test_unknown_ecosystem_is_skipped_without_a_request(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        self.assertEqual(self._query(handler, ecosystem=None), [])

    def test_server_error(self) -> None:
        with self.assertRaises(UpstreamUnavailable):
            self._query(lambda request: httpx.Response(503))


class TestStaticVulnerabilitySource(unittest.TestCase):
    def test_filters_by_affected_version(self) -> None:
        source = StaticVulnerabilitySource(
            {
                "Express": [
                    VulnerabilityIn(title="any version", severity="low"),
                    VulnerabilityIn(title="old only", severity="high", affected_versions=["3.0.0"]),
                ]
            }
        )
        records = asyncio.run(source.vulnerabilities_for("Express", "4.17.1"))
        self.assertEqual([r.title for r in records], ["any version"])


def _notification() -> Notification:
    return Notification(
        id=7,
        dedup_key="vulnerability:1:2",
        fact_kind="vulnerability",
        title="Critical vulnerability detected",
        message="CVE-2022-24999 affects Express 4.17.1 in service orders-api.",
        type="vulnerability",
        severity="critical",
        audience="privileged",
        service_id=1,
    )


class TestWebhookDelivery(unittest.TestCase):
    def _deliver(self, handler) -> None:
        _run_with_client(
            handler,
            lambda client: WebhookDeliveryChannel("https://hooks.test/notify", timeout=5, client=client),
            lambda channel: channel.deliver(_notification(), {3, 1}),
        )

    def test_posts_payload(self) -> None:
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured.update(json.loads(request.content))
            return httpx.Response(204)

        self._deliver(handler)
        self.assertEqual(captured["id"], 7)
        self.assertEqual(captured["recipients"], [1, 3])
        self.assertEqual(captured["severity"], "critical")

    def test_rejection_raises_delivery_error(self) -> None:
        with self.assertRaises(DeliveryError):
            self._deliver(lambda request: httpx.Response(500))


class TestFactories(unittest.TestCase):
    def test_defaults_are_static_and_log_only(self) -> None:
        settings = make_settings()
        self.assertIsInstance(get_version_source(settings), StaticVersionSource)
        self.assertIsInstance(get_vulnerability_source(settings), StaticVulnerabilitySource)
        self.assertIsInstance(get_delivery_channel(settings), LogDeliveryChannel)

    def test_configured_sources(self) -> None:
        settings = make_settings(
            VERSION_SOURCE="registry",
            VULNERABILITY_SOURCE="osv",
            NOTIFY_WEBHOOK_URL="https://hooks.test/notify",
        )
        self.assertIsInstance(get_version_source(settings), RegistryVersionSource)
        self.assertIsInstance(get_vulnerability_source(settings), OsvVulnerabilitySource)
        self.assertIsInstance(get_delivery_channel(settings), WebhookDeliveryChannel)


if __name__ == "__main__":
    unittest.main()
