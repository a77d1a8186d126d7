"""On-disk cache: scoped temp directories and content-addressed blobs."""
import logging
import os
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Union

from pkgfetch.core.errors import IntegrityError
from pkgfetch.integrity import Integrity, IntegrityHasher

logger = logging.getLogger(__name__)


class ContentWriter:
    """Incremental writer for one blob; committed under its own digest."""

    def __init__(self, handle, path: Path, algorithm: str = "sha512"):
        self._handle = handle
        self.path = path
        self._hasher = IntegrityHasher(algorithm)
        self.integrity: Optional[Integrity] = None

    def write(self, chunk: bytes) -> None:
        self._hasher.update(chunk)
        self._handle.write(chunk)

    def finish(self) -> Integrity:
        self.integrity = self._hasher.result()
        return self.integrity


class CacheStore:
    """Cache rooted at ``root``.

    Layout:
        tmp/                               scoped working directories
        content-v2/<algo>/<aa>/<bb>/<rest> blobs addressed by digest
    """

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)

    @property
    def tmp_root(self) -> Path:
        return self.root / "tmp"

    def content_path(self, integrity: Union[str, Integrity]) -> Path:
        parsed = Integrity.parse(integrity)
        hexdigest = parsed.hexdigest
        return self.root / "content-v2" / parsed.algorithm / hexdigest[:2] / hexdigest[2:4] / hexdigest[4:]

    @contextmanager
    def tmp(self, prefix: str = "tmp") -> Iterator[Path]:
        """Yield a fresh directory that is removed when the block exits."""
        self.tmp_root.mkdir(parents=True, exist_ok=True)
        path = Path(tempfile.mkdtemp(prefix=f"{prefix}-", dir=str(self.tmp_root)))
        try:
            yield path
        finally:
            if path.exists():
                shutil.rmtree(path)

    def has(self, integrity: Union[str, Integrity]) -> bool:
        return self.content_path(integrity).exists()

    def get(self, integrity: Union[str, Integrity]) -> Optional[bytes]:
        """Return cached bytes for ``integrity``, or None on a miss."""
        parsed = Integrity.parse(integrity)
        path = self.content_path(parsed)
        if not path.exists():
            return None
        data = path.read_bytes()
        actual = Integrity.from_bytes(data, parsed.algorithm)
        if not parsed.matches(actual):
            logger.warning(f"Removing corrupt cache entry {path}")
            path.unlink()
            raise IntegrityError(
                "Cached content digest mismatch",
                expected=str(parsed),
                actual=str(actual),
            )
        logger.debug(f"Cache hit for {parsed}")
        return data

    def put(self, data: bytes, algorithm: str = "sha512") -> Integrity:
        with self.writer(algorithm) as writer:
            writer.write(data)
        return writer.integrity

    @contextmanager
    def writer(self, algorithm: str = "sha512") -> Iterator[ContentWriter]:
        """Stream a blob into the cache; it is moved into place on clean exit."""
        self.tmp_root.mkdir(parents=True, exist_ok=True)
        fd, name = tempfile.mkstemp(prefix="content-", dir=str(self.tmp_root))
        temp_path = Path(name)
        try:
            with os.fdopen(fd, "wb") as handle:
                writer = ContentWriter(handle, temp_path, algorithm)
                yield writer
            target = self.content_path(writer.finish())
            target.parent.mkdir(parents=True, exist_ok=True)
            os.replace(temp_path, target)
        finally:
            if temp_path.exists():
                temp_path.unlink()
