"""Remote tarball backend: download a tarball over HTTP(S)."""
import logging
from typing import Any, Dict, Iterator

import requests

from pkgfetch.core.errors import RemoteUnreachableError, SpecifierError
from pkgfetch.fetcher.base import Fetcher
from pkgfetch.fetcher.file import read_tarball_manifest
from pkgfetch.stream import TarballStream

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


def stream_tarball_url(url: str, timeout: float = 30.0) -> Iterator[bytes]:
    """Yield the body of ``url`` in chunks.

    Raises:
        RemoteUnreachableError: On connection failure or an HTTP error status
    """
    logger.info(f"Downloading {url}")
    try:
        with requests.get(url, stream=True, timeout=timeout) as resp:
            resp.raise_for_status()
            for chunk in resp.iter_content(chunk_size=CHUNK_SIZE):
                if chunk:
                    yield chunk
    except requests.RequestException as e:
        raise RemoteUnreachableError(f"Failed to download {url}: {e}") from e


class RemoteFetcher(Fetcher):
    """Fetcher for ``https://.../pkg.tgz`` style specifiers."""

    types = ("remote",)

    def _resolve(self) -> str:
        if not self.spec.fetch_spec:
            raise SpecifierError(f"No URL for {self.spec}")
        return self.spec.fetch_spec

    def _manifest(self) -> Dict[str, Any]:
        return read_tarball_manifest(self)

    def _tarball_from_resolved(self, sink: TarballStream) -> None:
        for chunk in stream_tarball_url(self.resolved, timeout=self.opts.http_timeout):
            sink.write(chunk)
