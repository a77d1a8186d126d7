"""Fetcher contract shared by every source type."""
import logging
import tarfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path, PurePosixPath
from typing import Any, ClassVar, Dict, Optional, Tuple, Union

from pkgfetch.cache import CacheStore
from pkgfetch.core.config import FetchOptions
from pkgfetch.core.errors import IntegrityError, SpecifierError
from pkgfetch.integrity import Integrity
from pkgfetch.package_json import decorate
from pkgfetch.spec import Specifier, parse_spec
from pkgfetch.stream import TarballStream

logger = logging.getLogger(__name__)


class Fetcher(ABC):
    """Resolve a specifier and produce its manifest and tarball.

    Subclasses implement ``_resolve``, ``_manifest`` and
    ``_tarball_from_resolved``; this class supplies memoization, the
    content cache and integrity bookkeeping.
    """

    types: ClassVar[Tuple[str, ...]] = ()

    def __init__(self, spec: Union[str, Specifier], opts: Optional[FetchOptions] = None):
        self.opts = opts or FetchOptions()
        self.spec = parse_spec(spec, where=self.opts.where)
        if self.types and self.spec.type not in self.types:
            raise SpecifierError(
                f"{type(self).__name__} cannot fetch {self.spec.type} specifier '{self.spec}'"
            )
        self.cache = CacheStore(self.opts.cache)
        self.resolved: Optional[str] = self.opts.resolved
        self.integrity: Optional[Integrity] = Integrity.parse(self.opts.integrity)
        self.package: Optional[Dict[str, Any]] = None
        self._lock = threading.RLock()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({str(self.spec)!r})"

    # -- contract --------------------------------------------------------

    def resolve(self) -> str:
        """Return the canonical identifier for this source (idempotent)."""
        if self.resolved:
            return self.resolved
        with self._lock:
            if not self.resolved:
                self.resolved = self._resolve()
            return self.resolved

    def manifest(self) -> Dict[str, Any]:
        """Return package.json decorated with ``_integrity``/``_resolved``.

        Computed at most once per instance.
        """
        if self.package is not None:
            return self.package
        with self._lock:
            if self.package is None:
                self.package = self._manifest()
            return self.package

    def packument(self) -> Dict[str, Any]:
        """Single-version packument derived from ``manifest()``."""
        mani = self.manifest()
        version = mani.get("version")
        return {
            "name": mani.get("name"),
            "dist-tags": {"latest": version},
            "versions": {version: mani},
        }

    def tarball(self) -> TarballStream:
        """Return a stream of the package tarball.

        The stream is returned before any work happens; resolution and
        production run on a background thread and failures surface when
        the stream is consumed.
        """
        stream = TarballStream(resolved=self.resolved, integrity=self.integrity)
        stream.on_integrity(self._record_integrity)
        return stream.start(self._produce_tarball)

    def extract(self, dest: Union[str, Path]) -> Dict[str, Optional[str]]:
        """Unpack the tarball into ``dest``, dropping its top-level directory."""
        dest = Path(dest)
        dest.mkdir(parents=True, exist_ok=True)
        stream = self.tarball()
        with self.cache.tmp("extract") as tmp:
            archive = tmp / "package.tgz"
            with archive.open("wb") as fh:
                stream.pipe(fh)
            extract_archive(archive, dest)
        return {
            "resolved": stream.resolved,
            "integrity": str(stream.integrity) if stream.integrity else None,
        }

    # -- hooks -----------------------------------------------------------

    @abstractmethod
    def _resolve(self) -> str:
        ...

    @abstractmethod
    def _manifest(self) -> Dict[str, Any]:
        ...

    @abstractmethod
    def _tarball_from_resolved(self, sink: TarballStream) -> None:
        """Write the tarball for the already-resolved source into ``sink``."""

    # -- plumbing --------------------------------------------------------

    def _produce_tarball(self, sink: TarballStream) -> None:
        sink.resolved = self.resolve()
        if sink.expected is None and self.integrity is not None:
            sink.expect(self.integrity)
        if self.integrity is not None:
            try:
                cached = self.cache.get(self.integrity)
            except IntegrityError as e:
                logger.warning(f"Ignoring cache entry for {self.spec}: {e}")
                cached = None
            if cached is not None:
                logger.debug(f"Serving {self.spec} from cache")
                sink.write(cached)
                return
        with self.cache.writer() as writer:
            sink.tee(writer)
            self._tarball_from_resolved(sink)

    def _record_integrity(self, integrity: Integrity) -> None:
        self.integrity = integrity
        package = self.package
        if package is not None and "_integrity" not in package:
            # Callers may hold the old dict; swap in a decorated copy
            self.package = {**package, "_integrity": str(integrity)}

    def _decorate(self, mani: Dict[str, Any]) -> Dict[str, Any]:
        return decorate(mani, self.integrity, self.resolved)

    def _child_opts(self, **update: Any) -> FetchOptions:
        return self.opts.model_copy(update=update)


def _strip_member(name: str) -> Optional[str]:
    parts = PurePosixPath(name).parts[1:]
    if not parts or any(part in ("..", "") for part in parts):
        return None
    return "/".join(parts)


def extract_archive(archive: Path, dest: Path) -> int:
    """Extract a (gzipped) tarball into ``dest`` stripping one path level."""
    count = 0
    with tarfile.open(archive, mode="r:*") as tar:
        for member in tar:
            if not (member.isfile() or member.isdir()):
                continue
            stripped = _strip_member(member.name)
            if stripped is None:
                continue
            member.name = stripped
            tar.extract(member, dest, filter="data")
            count += 1
    logger.debug(f"Extracted {count} entries into {dest}")
    return count
