"""Vulnerability sources: known vulnerabilities for a component at a given version.

StaticVulnerabilitySource serves a seeded table; OsvVulnerabilitySource queries
the OSV API (https://osv.dev) for components with a known ecosystem.
"""

import logging
from typing import TYPE_CHECKING, Any, Protocol

import httpx

from app.core.errors import UpstreamUnavailable
from app.schemas.vulnerability import VulnerabilityIn

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)

# Our ecosystem spellings -> OSV ecosystem names.
OSV_ECOSYSTEMS = {
    "npm": "npm",
    "node.js": "npm",
    "pypi": "PyPI",
    "python": "PyPI",
    "maven": "Maven",
    "go": "Go",
    "crates.io": "crates.io",
    "rubygems": "RubyGems",
    "nuget": "NuGet",
}

# OSV / GHSA severity labels -> our severity levels.
OSV_SEVERITY_MAP = {
    "CRITICAL": "critical",
    "HIGH": "high",
    "MODERATE": "medium",
    "MEDIUM": "medium",
    "LOW": "low",
}

TITLE_MAX_LEN = 512


class VulnerabilitySource(Protocol):
    async def vulnerabilities_for(
        self, name: str, version: str, ecosystem: str | None = None
    ) -> list[VulnerabilityIn]:
        """Return zero or more vulnerability records, or raise UpstreamUnavailable."""
        ...


class StaticVulnerabilitySource:
    """
    Serves records from a table keyed by component name.

    A record applies when its affected_versions is empty or lists the version.
    """

    def __init__(self, records: dict[str, list[VulnerabilityIn]] | None = None) -> None:
        self.records = dict(records or {})

    async def vulnerabilities_for(
        self, name: str, version: str, ecosystem: str | None = None
    ) -> list[VulnerabilityIn]:
        return [
            r
            for r in self.records.get(name, [])
            if not r.affected_versions or version in r.affected_versions
        ]


def _osv_severity(vuln: dict[str, Any]) -> str:
    label = (vuln.get("database_specific") or {}).get("severity")
    if isinstance(label, str):
        return OSV_SEVERITY_MAP.get(label.strip().upper(), "info")
    return "info"


def _osv_to_vulnerability(vuln: dict[str, Any], version: str) -> VulnerabilityIn:
    aliases = [a for a in vuln.get("aliases") or [] if isinstance(a, str)]
    cve_id = next((a for a in aliases if a.upper().startswith("CVE-")), None)
    osv_id = str(vuln.get("id") or "")
    title = (vuln.get("summary") or osv_id or "Unnamed vulnerability").strip()[:TITLE_MAX_LEN]
    references = [r.get("url") for r in vuln.get("references") or [] if isinstance(r, dict) and r.get("url")]
    return VulnerabilityIn(
        cve_id=cve_id or osv_id or None,
        title=title,
        description=(vuln.get("details") or "").strip(),
        severity=_osv_severity(vuln),
        affected_versions=[version],
        references=references,
    )


class OsvVulnerabilitySource:
    """Queries OSV /v1/query per component; components without a mapped ecosystem are skipped."""

    def __init__(self, base_url: str, timeout: float, client: httpx.AsyncClient | None = None) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client

    async def _post(self, url: str, payload: dict[str, Any]) -> httpx.Response:
        if self._client is not None:
            return await self._client.post(url, json=payload, timeout=self.timeout)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.post(url, json=payload)

    async def vulnerabilities_for(
        self, name: str, version: str, ecosystem: str | None = None
    ) -> list[VulnerabilityIn]:
        osv_ecosystem = OSV_ECOSYSTEMS.get((ecosystem or "").strip().lower())
        if not osv_ecosystem:
            logger.info("Skipping OSV query for %s@%s: unknown ecosystem %r", name, version, ecosystem)
            return []
        payload = {"version": version, "package": {"name": name, "ecosystem": osv_ecosystem}}
        try:
            resp = await self._post(f"{self.base_url}/v1/query", payload)
        except httpx.HTTPError as e:
            raise UpstreamUnavailable(f"OSV request failed for {name}@{version}.", cause=e) from e
        if resp.status_code >= 400:
            raise UpstreamUnavailable(f"OSV returned {resp.status_code} for {name}@{version}.")
        try:
            body = resp.json()
        except ValueError as e:
            raise UpstreamUnavailable("OSV response body is not valid JSON.", cause=e) from e
        vulns = (body.get("vulns") or []) if isinstance(body, dict) else []
        return [_osv_to_vulnerability(v, version) for v in vulns if isinstance(v, dict)]


def get_vulnerability_source(settings: "Settings") -> VulnerabilitySource:
    if settings.VULNERABILITY_SOURCE == "osv":
        return OsvVulnerabilitySource(settings.OSV_API_URL, settings.OSV_REQUEST_TIMEOUT_SEC)
    return StaticVulnerabilitySource()
