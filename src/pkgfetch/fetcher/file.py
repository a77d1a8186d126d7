"""Tarball file backend and manifest extraction from tarballs."""
import json
import logging
import tarfile
from pathlib import Path, PurePosixPath
from typing import Any, Dict

from pkgfetch.core.errors import ManifestReadError, SpecifierError
from pkgfetch.fetcher.base import Fetcher
from pkgfetch.package_json import decorate
from pkgfetch.stream import TarballStream

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


def read_manifest_member(archive: Path) -> Dict[str, Any]:
    """Read ``<top>/package.json`` out of a tarball without unpacking it."""
    try:
        with tarfile.open(archive, mode="r:*") as tar:
            for member in tar:
                parts = PurePosixPath(member.name).parts
                if member.isfile() and len(parts) == 2 and parts[1] == "package.json":
                    data = tar.extractfile(member).read()
                    mani = json.loads(data.decode("utf-8"))
                    if not isinstance(mani, dict):
                        raise ManifestReadError(f"package.json in {archive} is not an object")
                    return mani
    except (tarfile.TarError, OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ManifestReadError(f"Failed to read package.json from {archive}: {e}") from e
    raise ManifestReadError(f"No package.json in {archive}")


def read_tarball_manifest(fetcher: Fetcher) -> Dict[str, Any]:
    """Manifest for any fetcher whose tarball is the cheapest way in.

    Consumes ``fetcher.tarball()`` so the returned ``_integrity`` is the
    digest of exactly the bytes a tarball call produces.
    """
    # Resolve on this thread; the producer thread must not wait on our lock
    fetcher.resolve()
    stream = fetcher.tarball()
    with fetcher.cache.tmp("manifest") as tmp:
        archive = tmp / "package.tgz"
        with archive.open("wb") as fh:
            stream.pipe(fh)
        mani = read_manifest_member(archive)
    return decorate(mani, stream.integrity, stream.resolved or fetcher.resolved)


class FileFetcher(Fetcher):
    """Fetcher for local ``.tgz`` files."""

    types = ("file",)

    @property
    def path(self) -> Path:
        if not self.spec.fetch_spec:
            raise SpecifierError(f"No tarball path for {self.spec}")
        return Path(self.spec.fetch_spec)

    def _resolve(self) -> str:
        return str(self.path)

    def _manifest(self) -> Dict[str, Any]:
        return read_tarball_manifest(self)

    def _tarball_from_resolved(self, sink: TarballStream) -> None:
        try:
            with self.path.open("rb") as fh:
                for chunk in iter(lambda: fh.read(CHUNK_SIZE), b""):
                    sink.write(chunk)
        except FileNotFoundError as e:
            raise SpecifierError(f"Tarball not found: {self.path}") from e
