"""Registry backend: packuments and tarballs from an npm-style registry."""
import base64
import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

import requests

from pkgfetch.core.errors import ManifestReadError, RemoteUnreachableError
from pkgfetch.fetcher.base import Fetcher
from pkgfetch.fetcher.remote import stream_tarball_url
from pkgfetch.integrity import Integrity
from pkgfetch.pick_manifest import pick_manifest
from pkgfetch.stream import TarballStream

logger = logging.getLogger(__name__)

CORGI_ACCEPT = "application/vnd.npm.install-v1+json; q=1.0, application/json; q=0.8, */*"


def packument_url(registry: str, name: str) -> str:
    # @scope/name -> @scope%2Fname
    return f"{registry.rstrip('/')}/{quote(name, safe='@')}"


def fetch_packument(registry: str, name: str, timeout: float = 30.0) -> Dict[str, Any]:
    """GET the packument for ``name``.

    Raises:
        RemoteUnreachableError: On connection failure or HTTP error
        ManifestReadError: If the body is not a JSON object
    """
    url = packument_url(registry, name)
    logger.info(f"Fetching packument {url}")
    try:
        resp = requests.get(url, headers={"Accept": CORGI_ACCEPT}, timeout=timeout)
        resp.raise_for_status()
        data = resp.json()
    except requests.RequestException as e:
        raise RemoteUnreachableError(f"Failed to fetch packument for {name}: {e}") from e
    except ValueError as e:
        raise ManifestReadError(f"Invalid packument JSON for {name}: {e}") from e
    if not isinstance(data, dict):
        raise ManifestReadError(f"Packument for {name} is not an object")
    return data


class RegistryFetcher(Fetcher):
    """Fetcher for ``name``, ``name@version``, ``name@range`` and ``name@tag``."""

    types = ("version", "range", "tag")

    def __init__(self, spec, opts=None):
        super().__init__(spec, opts)
        self._packument: Optional[Dict[str, Any]] = None

    def packument(self) -> Dict[str, Any]:
        if self._packument is None:
            with self._lock:
                if self._packument is None:
                    self._packument = fetch_packument(
                        self.opts.registry,
                        self.spec.name,
                        timeout=self.opts.http_timeout,
                    )
        return self._packument

    def _pick(self) -> Dict[str, Any]:
        return pick_manifest(
            self.packument(),
            self.spec.fetch_spec or self.opts.default_tag,
            default_tag=self.opts.default_tag,
        )

    def _resolve(self) -> str:
        return self._dist(self._pick())

    def _dist(self, mani: Dict[str, Any]) -> str:
        dist = mani.get("dist") or {}
        tarball = dist.get("tarball")
        if not tarball:
            raise ManifestReadError(f"{self.spec.name}@{mani.get('version')} has no dist.tarball")
        if self.integrity is None and (dist.get("integrity") or dist.get("shasum")):
            self.integrity = Integrity.parse(dist.get("integrity") or _shasum_integrity(dist["shasum"]))
        return tarball

    def _manifest(self) -> Dict[str, Any]:
        mani = self._pick()
        if not self.resolved:
            self.resolved = self._dist(mani)
        return self._decorate(mani)

    def _tarball_from_resolved(self, sink: TarballStream) -> None:
        for chunk in stream_tarball_url(self.resolved, timeout=self.opts.http_timeout):
            sink.write(chunk)


def _shasum_integrity(shasum: str) -> str:
    return "sha1-" + base64.b64encode(bytes.fromhex(shasum)).decode("ascii")
