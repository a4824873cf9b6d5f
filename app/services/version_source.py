"""Version sources: where the latest released version of a component comes from.

The pipeline only needs latest_version(name, type, ecosystem) -> "x.y.z" or an
UpstreamUnavailable error. StaticVersionSource is a fixed lookup table;
RegistryVersionSource asks the npm and PyPI registries.
"""

import logging
from typing import TYPE_CHECKING, Protocol

import httpx

from app.core.errors import UpstreamUnavailable

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)

# Latest versions served by the static source (name -> version).
KNOWN_LATEST_VERSIONS: dict[str, str] = {
    "Node.js": "18.15.0",
    "Express": "4.18.2",
    "MongoDB": "6.0.5",
    "React": "18.2.0",
    "Angular": "15.2.0",
    "Vue.js": "3.2.47",
    "PostgreSQL": "15.2",
    "MySQL": "8.0.32",
    "Redis": "7.0.10",
    "Docker": "23.0.1",
    "Kubernetes": "1.26.3",
}

NPM_REGISTRY_URL = "https://registry.npmjs.org"
PYPI_REGISTRY_URL = "https://pypi.org/pypi"

# Accepted ecosystem spellings -> registry.
ECOSYSTEM_REGISTRY = {
    "npm": "npm",
    "node.js": "npm",
    "pypi": "pypi",
    "python": "pypi",
}


class VersionSource(Protocol):
    async def latest_version(self, name: str, type: str, ecosystem: str | None = None) -> str:
        """Return the latest released version, or raise UpstreamUnavailable."""
        ...


class StaticVersionSource:
    """Serves versions from a fixed table; unknown components are unavailable."""

    def __init__(self, versions: dict[str, str] | None = None) -> None:
        self.versions = dict(KNOWN_LATEST_VERSIONS if versions is None else versions)

    async def latest_version(self, name: str, type: str, ecosystem: str | None = None) -> str:
        try:
            return self.versions[name]
        except KeyError:
            raise UpstreamUnavailable(f"No version data for component '{name}' ({type}).") from None


class RegistryVersionSource:
    """Queries npm or PyPI depending on the component's ecosystem."""

    def __init__(self, timeout: float, client: httpx.AsyncClient | None = None) -> None:
        self.timeout = timeout
        self._client = client

    def _url_for(self, name: str, ecosystem: str | None) -> tuple[str, str]:
        registry = ECOSYSTEM_REGISTRY.get((ecosystem or "").strip().lower())
        if registry == "npm":
            return registry, f"{NPM_REGISTRY_URL}/{name}/latest"
        if registry == "pypi":
            return registry, f"{PYPI_REGISTRY_URL}/{name}/json"
        raise UpstreamUnavailable(
            f"No registry for component '{name}' (ecosystem {ecosystem!r}); set ecosystem to npm or PyPI."
        )

    async def _get(self, url: str) -> httpx.Response:
        if self._client is not None:
            return await self._client.get(url, timeout=self.timeout)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.get(url)

    async def latest_version(self, name: str, type: str, ecosystem: str | None = None) -> str:
        registry, url = self._url_for(name, ecosystem)
        try:
            resp = await self._get(url)
        except httpx.HTTPError as e:
            raise UpstreamUnavailable(f"{registry} registry request failed for '{name}'.", cause=e) from e
        if resp.status_code == 404:
            raise UpstreamUnavailable(f"'{name}' not found in the {registry} registry.")
        if resp.status_code >= 400:
            raise UpstreamUnavailable(f"{registry} registry returned {resp.status_code} for '{name}'.")
        try:
            body = resp.json()
            version = body["version"] if registry == "npm" else body["info"]["version"]
        except (ValueError, KeyError, TypeError) as e:
            raise UpstreamUnavailable(f"Unexpected {registry} registry response for '{name}'.", cause=e) from e
        if not isinstance(version, str) or not version.strip():
            raise UpstreamUnavailable(f"{registry} registry returned no version for '{name}'.")
        logger.debug("Registry %s latest version for %s: %s", registry, name, version)
        return version.strip()


def get_version_source(settings: "Settings") -> VersionSource:
    if settings.VERSION_SOURCE == "registry":
        return RegistryVersionSource(timeout=settings.REGISTRY_REQUEST_TIMEOUT_SEC)
    return StaticVersionSource()
